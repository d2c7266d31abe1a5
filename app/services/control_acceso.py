import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from fastapi import HTTPException, status
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError, OperationalError
from psycopg import errors as psycopg_errors

from app.core.cache import CacheArbol
from app.core.config import settings
from app.core.permissions import (
    ConjuntoPermisos, PermisoInvalidoError, PERM_CREAR, PERM_EDITAR, PERM_ELIMINAR, permisos_disponibles
)
from app.models.modulo import Modulo
from app.models.pestana import Pestana
from app.models.rol import Rol
from app.schemas.arbol import NodoModulo, GrupoPestanas, PestanaAsignable
from .arbol import ArbolService, IndiceModulos, pestanas_vivas, arbol_service
from .asignacion import AsignacionStore, TipoNodo, asignacion_store
from .auditoria import (
    AuditoriaService, RegistroAuditoria, ACCION_INSERT, ACCION_UPDATE, ACCION_DELETE,
    clave_arista, diff_permisos, auditoria_service,
)
from .permiso import PermisoResolver, permiso_resolver

logger = logging.getLogger(__name__)

MSG_MODULO_ASIGNADO = "Módulo asignado correctamente al rol"
MSG_MODULO_DESASIGNADO = "Módulo desasignado correctamente"
MSG_PESTANA_ASIGNADA = "Pestaña asignada correctamente al rol"
MSG_PESTANA_DESASIGNADA = "Pestaña desasignada correctamente"

# Errores de PostgreSQL que indican otra transacción compitiendo por las mismas aristas
ERRORES_CONCURRENCIA = (
    psycopg_errors.SerializationFailure,
    psycopg_errors.DeadlockDetected,
    psycopg_errors.LockNotAvailable,
)


@dataclass(frozen=True)
class ContextoActor:
    """Quién ejecuta la operación: usuario (para auditoría) y rol (para autorización)."""
    usuario_id: Optional[int]
    rol_id: Optional[int]


class ControlAccesoService:
    """
    Motor de asignación en cascada de módulos y pestañas a roles.

    Invariante central: si un módulo hijo está asignado a un rol, su padre
    también lo está; si el último hijo asignado de un padre se desasigna, el
    padre se desasigna con él. Cada operación es una única transacción que
    este servicio confirma o revierte por completo; la autorización y las
    validaciones ocurren antes de cualquier escritura.
    """

    def __init__(
        self,
        cache: CacheArbol,
        store: AsignacionStore = asignacion_store,
        resolver: PermisoResolver = permiso_resolver,
        auditoria: AuditoriaService = auditoria_service,
        arbol: ArbolService = arbol_service,
    ):
        self.cache = cache
        self.store = store
        self.resolver = resolver
        self.auditoria = auditoria
        self.arbol = arbol

    # ------------------------------------------------------------------
    # Apoyo
    # ------------------------------------------------------------------
    def _autorizar(self, db: Session, actor: ContextoActor, pestana_id: int, permiso: str, detalle: str) -> None:
        if not self.resolver.tiene_permiso(db, actor.rol_id, pestana_id, permiso, TipoNodo.PESTANA):
            logger.warning(
                f"Acceso denegado: usuario {actor.usuario_id} (rol {actor.rol_id}) sin permiso "
                f"'{permiso}' en la pestaña {pestana_id}."
            )
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detalle)

    def _rol_o_404(self, db: Session, rol_id: int) -> Rol:
        rol = db.get(Rol, rol_id)
        if rol is None or rol.deleted_at is not None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Rol con ID {rol_id} no encontrado.")
        return rol

    def _modulo_o_404(self, db: Session, modulo_id: int, incluir_eliminados: bool = False) -> Modulo:
        modulo = db.get(Modulo, modulo_id)
        if modulo is None or (modulo.deleted_at is not None and not incluir_eliminados):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Módulo con ID {modulo_id} no encontrado.")
        return modulo

    def _pestana_o_404(self, db: Session, pestana_id: int, incluir_eliminadas: bool = False) -> Pestana:
        pestana = db.get(Pestana, pestana_id)
        if pestana is None or (pestana.deleted_at is not None and not incluir_eliminadas):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Pestaña con ID {pestana_id} no encontrada.")
        return pestana

    def _validar_permisos(self, permisos: Optional[Iterable[str]], permisos_extra: Optional[List[str]]) -> ConjuntoPermisos:
        try:
            conjunto = ConjuntoPermisos.desde_asignacion(permisos)
        except PermisoInvalidoError as e:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e))
        no_permitidos = conjunto.faltantes_en(permisos_disponibles(permisos_extra))
        if no_permitidos:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"Permisos no disponibles para este nodo: {', '.join(no_permitidos)}.",
            )
        return conjunto

    def _confirmar(self, db: Session, pendientes: List[RegistroAuditoria]) -> None:
        en_transaccion = settings.AUDITORIA_EN_TRANSACCION
        if en_transaccion:
            self.auditoria.agregar(db, pendientes)
        db.commit()
        if not en_transaccion:
            self.auditoria.registrar_despues_de_commit(db, pendientes)
        self.cache.invalidar_todo()

    def _error_inesperado(self, db: Session, detalle: str, rol_id: int, nodo: str, nodo_id: int, exc: Exception) -> HTTPException:
        if isinstance(exc, OperationalError) and isinstance(getattr(exc, "orig", None), ERRORES_CONCURRENCIA):
            return self._conflicto(db, rol_id, nodo, nodo_id, exc)
        db.rollback()
        logger.error(f"{detalle} (rol {rol_id}, {nodo} {nodo_id}): {exc}", exc_info=True)
        return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detalle)

    def _conflicto(self, db: Session, rol_id: int, nodo: str, nodo_id: int, exc: Exception) -> HTTPException:
        db.rollback()
        logger.warning(f"Conflicto de concurrencia en asignación (rol {rol_id}, {nodo} {nodo_id}): {getattr(exc, 'orig', exc)}")
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="La asignación fue modificada por otra operación simultánea. Intente de nuevo.",
        )

    # ------------------------------------------------------------------
    # Módulos
    # ------------------------------------------------------------------
    def asignar_modulo(
        self, db: Session, actor: ContextoActor, *, rol_id: int, modulo_id: int, permisos: Optional[Iterable[str]] = None
    ) -> str:
        existente = self.store.get_edge(db, rol_id, modulo_id, TipoNodo.MODULO)
        requerido = PERM_EDITAR if existente is not None else PERM_CREAR
        self._autorizar(
            db, actor, settings.PESTANA_ACCESOS_MODULOS_ID, requerido,
            f"No tienes permiso para {requerido} asignaciones de módulos",
        )

        try:
            self._rol_o_404(db, rol_id)
            modulo = self._modulo_o_404(db, modulo_id)
            conjunto = self._validar_permisos(permisos, modulo.permisos_extra)
            pendientes: List[RegistroAuditoria] = []

            if modulo.modulo_padre_id is not None:
                padre = self._padre_vivo(db, modulo)
                if padre is None:
                    logger.warning(
                        f"El módulo {modulo_id} referencia al padre {modulo.modulo_padre_id}, que no existe; "
                        f"se asigna sin cascada."
                    )
                elif self.store.lock_edge(db, rol_id, padre.id, TipoNodo.MODULO) is None:
                    self.store.upsert_edge(db, rol_id, padre.id, TipoNodo.MODULO, None)
                    pendientes.append(RegistroAuditoria(
                        "modulo_rol", clave_arista(rol_id, padre.id), ACCION_INSERT, actor.usuario_id
                    ))
                    logger.info(f"Cascada: padre {padre.id} asignado al rol {rol_id} sin permisos.")

            _, creada, previos = self.store.upsert_edge(db, rol_id, modulo_id, TipoNodo.MODULO, conjunto.como_columna())
            if creada:
                pendientes.append(RegistroAuditoria(
                    "modulo_rol", clave_arista(rol_id, modulo_id), ACCION_INSERT, actor.usuario_id
                ))
            else:
                pendientes.append(RegistroAuditoria(
                    "modulo_rol", clave_arista(rol_id, modulo_id), ACCION_UPDATE, actor.usuario_id,
                    diff_permisos(previos, conjunto.como_columna()),
                ))

            self._confirmar(db, pendientes)
        except HTTPException:
            db.rollback()
            raise
        except IntegrityError as e:
            raise self._conflicto(db, rol_id, "módulo", modulo_id, e)
        except Exception as e:
            raise self._error_inesperado(db, "Error al asignar el módulo", rol_id, "módulo", modulo_id, e)

        logger.info(f"Módulo {modulo_id} asignado al rol {rol_id} por usuario {actor.usuario_id} con permisos {conjunto.como_lista()}.")
        return MSG_MODULO_ASIGNADO

    def desasignar_modulo(self, db: Session, actor: ContextoActor, *, rol_id: int, modulo_id: int) -> str:
        self._autorizar(
            db, actor, settings.PESTANA_ACCESOS_MODULOS_ID, PERM_ELIMINAR,
            "No tienes permiso para eliminar asignaciones de módulos",
        )

        try:
            self._rol_o_404(db, rol_id)
            modulo = self._modulo_o_404(db, modulo_id, incluir_eliminados=True)
            padre_id = modulo.modulo_padre_id

            # Bloquear la arista del padre antes de contar hermanos: dos desasignaciones
            # simultáneas de los dos últimos hijos quedan serializadas.
            arista_padre = None
            if padre_id is not None:
                arista_padre = self.store.lock_edge(db, rol_id, padre_id, TipoNodo.MODULO)

            eliminada, _ = self.store.remove_edge(db, rol_id, modulo_id, TipoNodo.MODULO)
            if not eliminada:
                db.rollback()
                logger.info(f"Módulo {modulo_id} no estaba asignado al rol {rol_id}; sin cambios.")
                return MSG_MODULO_DESASIGNADO

            pendientes = [RegistroAuditoria("modulo_rol", clave_arista(rol_id, modulo_id), ACCION_DELETE, actor.usuario_id)]

            if arista_padre is not None:
                restantes = self.store.count_assigned_siblings(db, rol_id, padre_id, modulo_id)
                if restantes == 0:
                    self.store.remove_edge(db, rol_id, padre_id, TipoNodo.MODULO)
                    pendientes.append(RegistroAuditoria(
                        "modulo_rol", clave_arista(rol_id, padre_id), ACCION_DELETE, actor.usuario_id
                    ))
                    logger.info(f"Cascada: padre {padre_id} desasignado del rol {rol_id} (sin hijos asignados).")

            self._confirmar(db, pendientes)
        except HTTPException:
            db.rollback()
            raise
        except IntegrityError as e:
            raise self._conflicto(db, rol_id, "módulo", modulo_id, e)
        except Exception as e:
            raise self._error_inesperado(db, "Error al desasignar el módulo", rol_id, "módulo", modulo_id, e)

        logger.info(f"Módulo {modulo_id} desasignado del rol {rol_id} por usuario {actor.usuario_id}.")
        return MSG_MODULO_DESASIGNADO

    def _padre_vivo(self, db: Session, modulo: Modulo) -> Optional[Modulo]:
        padre = db.get(Modulo, modulo.modulo_padre_id) if modulo.modulo_padre_id is not None else None
        if padre is None or padre.deleted_at is not None:
            return None
        return padre

    # ------------------------------------------------------------------
    # Pestañas
    # ------------------------------------------------------------------
    def asignar_pestana(
        self, db: Session, actor: ContextoActor, *, rol_id: int, pestana_id: int, permisos: Optional[Iterable[str]] = None
    ) -> str:
        existente = self.store.get_edge(db, rol_id, pestana_id, TipoNodo.PESTANA)
        requerido = PERM_EDITAR if existente is not None else PERM_CREAR
        self._autorizar(
            db, actor, settings.PESTANA_ACCESOS_PESTANAS_ID, requerido,
            f"No tienes permiso para {requerido} asignaciones de pestañas",
        )

        try:
            self._rol_o_404(db, rol_id)
            pestana = self._pestana_o_404(db, pestana_id)
            conjunto = self._validar_permisos(permisos, pestana.permisos_extra)

            if self.store.get_edge(db, rol_id, pestana.modulo_id, TipoNodo.MODULO) is None:
                logger.info(f"La pestaña {pestana_id} se asigna al rol {rol_id} sin que su módulo {pestana.modulo_id} esté asignado.")

            _, creada, previos = self.store.upsert_edge(db, rol_id, pestana_id, TipoNodo.PESTANA, conjunto.como_columna())
            if creada:
                registro = RegistroAuditoria("pestana_rol", clave_arista(rol_id, pestana_id), ACCION_INSERT, actor.usuario_id)
            else:
                registro = RegistroAuditoria(
                    "pestana_rol", clave_arista(rol_id, pestana_id), ACCION_UPDATE, actor.usuario_id,
                    diff_permisos(previos, conjunto.como_columna()),
                )
            self._confirmar(db, [registro])
        except HTTPException:
            db.rollback()
            raise
        except IntegrityError as e:
            raise self._conflicto(db, rol_id, "pestaña", pestana_id, e)
        except Exception as e:
            raise self._error_inesperado(db, "Error al asignar la pestaña", rol_id, "pestaña", pestana_id, e)

        logger.info(f"Pestaña {pestana_id} asignada al rol {rol_id} por usuario {actor.usuario_id} con permisos {conjunto.como_lista()}.")
        return MSG_PESTANA_ASIGNADA

    def desasignar_pestana(self, db: Session, actor: ContextoActor, *, rol_id: int, pestana_id: int) -> str:
        self._autorizar(
            db, actor, settings.PESTANA_ACCESOS_PESTANAS_ID, PERM_ELIMINAR,
            "No tienes permiso para eliminar asignaciones de pestañas",
        )

        try:
            self._rol_o_404(db, rol_id)
            self._pestana_o_404(db, pestana_id, incluir_eliminadas=True)
            eliminada, _ = self.store.remove_edge(db, rol_id, pestana_id, TipoNodo.PESTANA)
            if not eliminada:
                db.rollback()
                logger.info(f"Pestaña {pestana_id} no estaba asignada al rol {rol_id}; sin cambios.")
                return MSG_PESTANA_DESASIGNADA
            self._confirmar(db, [
                RegistroAuditoria("pestana_rol", clave_arista(rol_id, pestana_id), ACCION_DELETE, actor.usuario_id)
            ])
        except HTTPException:
            db.rollback()
            raise
        except Exception as e:
            raise self._error_inesperado(db, "Error al desasignar la pestaña", rol_id, "pestaña", pestana_id, e)

        logger.info(f"Pestaña {pestana_id} desasignada del rol {rol_id} por usuario {actor.usuario_id}.")
        return MSG_PESTANA_DESASIGNADA

    # ------------------------------------------------------------------
    # Vistas anotadas para un rol
    # ------------------------------------------------------------------
    def obtener_modulos_jerarquicos(self, db: Session, rol_id: Optional[int] = None) -> List[NodoModulo]:
        asignaciones: Dict[int, Optional[List[str]]] = {}
        if rol_id is not None:
            asignaciones = {a.modulo_id: a.permisos for a in self.store.aristas_de_rol(db, rol_id, TipoNodo.MODULO)}

        def nodo(modulo: Modulo, pestanas: List[Pestana], hijos: List[NodoModulo]) -> NodoModulo:
            return NodoModulo(
                id=modulo.id,
                nombre=modulo.nombre,
                icono=modulo.icono,
                ruta=modulo.ruta,
                es_padre=modulo.es_padre,
                permisos_extra=modulo.permisos_extra or [],
                permisos_disponibles=[] if modulo.es_padre else permisos_disponibles(modulo.permisos_extra),
                tiene_pestanas=len(pestanas) > 0,
                cant_pestanas=len(pestanas),
                asignado=modulo.id in asignaciones,
                permisos_asignados=asignaciones.get(modulo.id) or [],
                hijos=hijos,
            )

        resultado = []
        for entrada in self.arbol.get_module_tree(db):
            hijos = [nodo(h["modulo"], h["pestanas"], []) for h in entrada["hijos"]]
            resultado.append(nodo(entrada["modulo"], entrada["pestanas"], hijos))
        return resultado

    def obtener_pestanas_jerarquicas(self, db: Session, rol_id: Optional[int] = None) -> List[GrupoPestanas]:
        if rol_id is None:
            return []
        asignados = {a.modulo_id for a in self.store.aristas_de_rol(db, rol_id, TipoNodo.MODULO)}
        if not asignados:
            return []

        permisos_pestanas = {a.pestana_id: a.permisos for a in self.store.aristas_de_rol(db, rol_id, TipoNodo.PESTANA)}
        indice = IndiceModulos.cargar(db)

        def grupo_modulo(modulo: Modulo) -> GrupoPestanas:
            return GrupoPestanas(
                modulo_id=modulo.id,
                modulo_nombre=modulo.nombre,
                modulo_icono=modulo.icono,
                modulo_padre_id=modulo.modulo_padre_id,
                pestanas=[
                    PestanaAsignable(
                        id=p.id,
                        nombre=p.nombre,
                        ruta=p.ruta,
                        permisos_extra=p.permisos_extra or [],
                        permisos_disponibles=permisos_disponibles(p.permisos_extra),
                        asignado=p.id in permisos_pestanas,
                        permisos_asignados=permisos_pestanas.get(p.id) or [],
                    )
                    for p in pestanas_vivas(modulo)
                ],
            )

        modulos_asignados = [m for m in indice if m.id in asignados]
        resultado: List[GrupoPestanas] = []

        padres_ids = sorted({m.modulo_padre_id for m in modulos_asignados if indice.padre(m) is not None})
        for padre_id in padres_ids:
            padre = indice.get(padre_id)
            hijos = [
                grupo_modulo(h) for h in indice.hijos(padre_id)
                if h.id in asignados and pestanas_vivas(h)
            ]
            if hijos:
                resultado.append(GrupoPestanas(
                    modulo_id=padre.id,
                    modulo_nombre=padre.nombre,
                    modulo_icono=padre.icono,
                    es_padre=True,
                    hijos=hijos,
                ))

        directos = sorted(
            (m for m in modulos_asignados if indice.padre(m) is None and not m.es_padre and pestanas_vivas(m)),
            key=lambda m: m.nombre,
        )
        for modulo in directos:
            resultado.append(GrupoPestanas(
                modulo_id=modulo.id,
                modulo_nombre=modulo.nombre,
                modulo_icono=modulo.icono,
                es_padre=False,
                hijos=[grupo_modulo(modulo)],
            ))
        return resultado
