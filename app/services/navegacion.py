import logging
from typing import List, Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session
from sqlalchemy import select

from app.models.modulo import Modulo
from app.models.pestana import Pestana
from app.schemas.navegacion import PestanaAccesible, PermisosNodo
from .arbol import IndiceModulos, pestanas_vivas
from .asignacion import AsignacionStore, TipoNodo, asignacion_store
from .permiso import permiso_resolver

logger = logging.getLogger(__name__)

class NavegacionService:
    """
    Resolución de rutas navegables para el rol del usuario autenticado:
    a qué pestaña llevar al entrar a un módulo y qué pestañas mostrar.
    """

    def __init__(self, store: AsignacionStore = asignacion_store):
        self.store = store

    def _pestanas_con_acceso(self, db: Session, modulo: Modulo, rol_id: Optional[int]) -> List[Pestana]:
        if rol_id is None:
            return []
        asignadas = {a.pestana_id for a in self.store.aristas_de_rol(db, rol_id, TipoNodo.PESTANA)}
        return [p for p in pestanas_vivas(modulo) if p.id in asignadas]

    def primera_ruta(self, db: Session, *, ruta: str, rol_id: Optional[int]) -> str:
        """
        Ruta completa de la primera pestaña accesible de un módulo (por ruta).
        Para un padre recorre sus hijos asignados por id; para un módulo
        con pestañas, sus pestañas asignadas por id.
        """
        modulo = db.execute(
            select(Modulo).where(Modulo.ruta == ruta, Modulo.deleted_at.is_(None))
        ).scalar_one_or_none()
        if modulo is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Módulo no encontrado")

        indice = IndiceModulos.cargar(db)

        if modulo.es_padre:
            asignados = set()
            if rol_id is not None:
                asignados = {a.modulo_id for a in self.store.aristas_de_rol(db, rol_id, TipoNodo.MODULO)}
            hijos = [h for h in indice.hijos(modulo.id) if h.id in asignados]
            if not hijos:
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail=f"No tienes acceso a ningún módulo dentro de '{modulo.nombre}'",
                )
            for hijo in sorted(hijos, key=lambda m: m.id):
                pestanas = self._pestanas_con_acceso(db, hijo, rol_id)
                if pestanas:
                    return f"{modulo.ruta}{hijo.ruta}{pestanas[0].ruta}"
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"No tienes acceso a ninguna sección dentro de '{modulo.nombre}'",
            )

        pestanas = self._pestanas_con_acceso(db, modulo, rol_id)
        if not pestanas:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"No tienes acceso a ninguna sección de '{modulo.nombre}'",
            )
        return f"{indice.ruta_completa(modulo).ruta}{pestanas[0].ruta}"

    def pestanas_accesibles(self, db: Session, *, modulo_id: int, rol_id: Optional[int]) -> List[PestanaAccesible]:
        modulo = db.get(Modulo, modulo_id)
        if modulo is None or modulo.deleted_at is not None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Módulo con ID {modulo_id} no encontrado.")

        base = IndiceModulos.cargar(db).ruta_completa(modulo).ruta
        permisos = {}
        if rol_id is not None:
            permisos = {a.pestana_id: a.permisos for a in self.store.aristas_de_rol(db, rol_id, TipoNodo.PESTANA)}
        return [
            PestanaAccesible(
                id=p.id,
                nombre=p.nombre,
                ruta=p.ruta,
                ruta_completa=f"{base}{p.ruta}",
                permisos=permisos.get(p.id) or [],
            )
            for p in pestanas_vivas(modulo) if p.id in permisos
        ]

    def permisos_pestana(self, db: Session, *, pestana_id: int, rol_id: Optional[int]) -> PermisosNodo:
        pestana = db.get(Pestana, pestana_id)
        if pestana is None or pestana.deleted_at is not None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Pestaña con ID {pestana_id} no encontrada.")
        tokens = permiso_resolver.permisos(db, rol_id, pestana_id, TipoNodo.PESTANA)
        arista = self.store.get_edge(db, rol_id, pestana_id, TipoNodo.PESTANA) if rol_id is not None else None
        # Conserva el orden en que se asignaron los tokens
        ordenados = [t for t in (arista.permisos or []) if t in tokens] if arista is not None else []
        return PermisosNodo(nodo_id=pestana_id, tipo=TipoNodo.PESTANA.value, permisos=ordenados)

navegacion_service = NavegacionService()
