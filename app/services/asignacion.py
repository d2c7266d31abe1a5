import logging
from enum import Enum
from typing import List, Optional, Tuple, Type, Union

from sqlalchemy.orm import Session
from sqlalchemy import Select, select, func

from app.models.modulo import Modulo
from app.models.modulo_rol import ModuloRol
from app.models.pestana_rol import PestanaRol

logger = logging.getLogger(__name__)

Arista = Union[ModuloRol, PestanaRol]


class TipoNodo(str, Enum):
    MODULO = "modulo"
    PESTANA = "pestana"


class AsignacionStore:
    """
    Aristas Rol x Módulo y Rol x Pestaña.

    Las mutaciones son idempotentes: `upsert_edge` sobre una arista existente
    reemplaza sus permisos y `remove_edge` sobre una inexistente no hace nada.
    Ningún método realiza commit.
    """

    def _modelo(self, tipo: TipoNodo) -> Type[Arista]:
        return ModuloRol if tipo == TipoNodo.MODULO else PestanaRol

    def _columna_nodo(self, tipo: TipoNodo):
        return ModuloRol.modulo_id if tipo == TipoNodo.MODULO else PestanaRol.pestana_id

    def tabla(self, tipo: TipoNodo) -> str:
        return self._modelo(tipo).__tablename__

    def get_edge(self, db: Session, rol_id: int, nodo_id: int, tipo: TipoNodo) -> Optional[Arista]:
        return db.get(self._modelo(tipo), (rol_id, nodo_id))

    def sentencia_bloqueo(self, rol_id: int, nodo_id: int, tipo: TipoNodo) -> Select:
        modelo = self._modelo(tipo)
        return (
            select(modelo)
            .where(modelo.rol_id == rol_id, self._columna_nodo(tipo) == nodo_id)
            .with_for_update()
        )

    def lock_edge(self, db: Session, rol_id: int, nodo_id: int, tipo: TipoNodo) -> Optional[Arista]:
        """Lee la arista con SELECT ... FOR UPDATE dentro de la transacción en curso."""
        return db.execute(self.sentencia_bloqueo(rol_id, nodo_id, tipo)).scalar_one_or_none()

    def upsert_edge(
        self, db: Session, rol_id: int, nodo_id: int, tipo: TipoNodo, permisos: Optional[List[str]]
    ) -> Tuple[Arista, bool, Optional[List[str]]]:
        """
        Crea o actualiza la arista. Devuelve (arista, creada, permisos_previos).
        """
        arista = self.get_edge(db, rol_id, nodo_id, tipo)
        if arista is None:
            modelo = self._modelo(tipo)
            if tipo == TipoNodo.MODULO:
                arista = modelo(rol_id=rol_id, modulo_id=nodo_id, permisos=permisos)
            else:
                arista = modelo(rol_id=rol_id, pestana_id=nodo_id, permisos=permisos)
            db.add(arista)
            db.flush()
            logger.debug(f"Arista {tipo.value} creada: rol {rol_id} -> nodo {nodo_id}, permisos={permisos}")
            return arista, True, None

        previos = list(arista.permisos) if arista.permisos else None
        arista.permisos = permisos
        db.add(arista)
        db.flush()
        logger.debug(f"Arista {tipo.value} actualizada: rol {rol_id} -> nodo {nodo_id}, {previos} -> {permisos}")
        return arista, False, previos

    def remove_edge(self, db: Session, rol_id: int, nodo_id: int, tipo: TipoNodo) -> Tuple[bool, Optional[List[str]]]:
        """Elimina la arista si existe. Devuelve (eliminada, permisos_previos)."""
        arista = self.lock_edge(db, rol_id, nodo_id, tipo)
        if arista is None:
            logger.debug(f"Arista {tipo.value} inexistente (rol {rol_id}, nodo {nodo_id}); nada que eliminar.")
            return False, None
        previos = list(arista.permisos) if arista.permisos else None
        db.delete(arista)
        db.flush()
        logger.debug(f"Arista {tipo.value} eliminada: rol {rol_id} -> nodo {nodo_id}")
        return True, previos

    def count_assigned_siblings(self, db: Session, rol_id: int, padre_id: int, excluding_id: int) -> int:
        """Hijos de `padre_id` asignados al rol, sin contar `excluding_id`."""
        statement = (
            select(func.count())
            .select_from(ModuloRol)
            .join(Modulo, Modulo.id == ModuloRol.modulo_id)
            .where(
                ModuloRol.rol_id == rol_id,
                Modulo.modulo_padre_id == padre_id,
                Modulo.id != excluding_id,
                Modulo.deleted_at.is_(None),
            )
        )
        return db.execute(statement).scalar_one()

    def aristas_de_rol(self, db: Session, rol_id: int, tipo: TipoNodo) -> List[Arista]:
        modelo = self._modelo(tipo)
        statement = select(modelo).where(modelo.rol_id == rol_id)
        return list(db.execute(statement).scalars().all())

    def aristas_de_nodo(self, db: Session, nodo_id: int, tipo: TipoNodo) -> List[Arista]:
        modelo = self._modelo(tipo)
        statement = select(modelo).where(self._columna_nodo(tipo) == nodo_id).order_by(modelo.rol_id)
        return list(db.execute(statement).scalars().all())

asignacion_store = AsignacionStore()
