import pytest
from datetime import datetime, timezone
from typing import Dict, Any, List

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.cache import CacheArbol, CLAVE_MODULOS, CLAVE_PESTANAS
from app.core.config import settings
from app.models.auditoria import Auditoria
from app.models.modulo_rol import ModuloRol
from app.models.pestana_rol import PestanaRol
from app.models.rol import Rol
from app.services.asignacion import AsignacionStore, TipoNodo
from app.services.auditoria import AuditoriaService, RegistroAuditoria
from app.services.control_acceso import ControlAccesoService, ContextoActor


class AuditoriaQueFalla(AuditoriaService):
    """Simula una bitácora caída: cualquier escritura falla."""

    def agregar(self, db: Session, registros: List[RegistroAuditoria]):
        raise SQLAlchemyError("bitácora no disponible")


class StoreEspia(AsignacionStore):
    """Registra cada llamada con la sesión usada para comprobar el orden de bloqueo."""

    def __init__(self):
        self.llamadas: List[tuple] = []

    def lock_edge(self, db, rol_id, nodo_id, tipo):
        self.llamadas.append(("lock_edge", nodo_id, id(db)))
        return super().lock_edge(db, rol_id, nodo_id, tipo)

    def remove_edge(self, db, rol_id, nodo_id, tipo):
        self.llamadas.append(("remove_edge", nodo_id, id(db)))
        return super().remove_edge(db, rol_id, nodo_id, tipo)

    def count_assigned_siblings(self, db, rol_id, padre_id, excluding_id):
        self.llamadas.append(("count_assigned_siblings", padre_id, id(db)))
        return super().count_assigned_siblings(db, rol_id, padre_id, excluding_id)


@pytest.fixture
def cache() -> CacheArbol:
    return CacheArbol(ttl_segundos=60)


@pytest.fixture
def servicio(cache: CacheArbol) -> ControlAccesoService:
    return ControlAccesoService(cache)


def _arista(db: Session, rol_id: int, modulo_id: int):
    db.expire_all()
    return db.get(ModuloRol, (rol_id, modulo_id))


def _acciones(db: Session) -> List[str]:
    db.expire_all()
    return [a.accion for a in db.execute(select(Auditoria).order_by(Auditoria.id)).scalars().all()]


def test_cascada_completa_asignar_y_desasignar(
    db: Session, servicio: ControlAccesoService, actor_admin: ContextoActor,
    test_rol_analista: Rol, arbol_rrhh: Dict[str, Any]
):
    rol_id = test_rol_analista.id
    padre_id = arbol_rrhh["padre"].id

    servicio.asignar_modulo(db, actor_admin, rol_id=rol_id, modulo_id=arbol_rrhh["empleados"].id, permisos=["crear"])
    servicio.asignar_modulo(db, actor_admin, rol_id=rol_id, modulo_id=arbol_rrhh["nominas"].id, permisos=["exportar"])
    assert _arista(db, rol_id, padre_id) is not None

    servicio.desasignar_modulo(db, actor_admin, rol_id=rol_id, modulo_id=arbol_rrhh["empleados"].id)
    assert _arista(db, rol_id, padre_id) is not None

    servicio.desasignar_modulo(db, actor_admin, rol_id=rol_id, modulo_id=arbol_rrhh["nominas"].id)
    assert _arista(db, rol_id, padre_id) is None
    assert _acciones(db) == ["INSERT", "INSERT", "INSERT", "DELETE", "DELETE", "DELETE"]


def test_asignar_modulo_raiz_no_crea_aristas_extra(
    db: Session, servicio: ControlAccesoService, actor_admin: ContextoActor,
    test_rol_analista: Rol, arbol_rrhh: Dict[str, Any]
):
    rol_id = test_rol_analista.id
    servicio.asignar_modulo(db, actor_admin, rol_id=rol_id, modulo_id=arbol_rrhh["reportes"].id, permisos=[])

    aristas = db.execute(select(ModuloRol).where(ModuloRol.rol_id == rol_id)).scalars().all()
    assert [(a.modulo_id, a.permisos) for a in aristas] == [(arbol_rrhh["reportes"].id, None)]


def test_asignar_con_padre_eliminado_omite_cascada(
    db: Session, servicio: ControlAccesoService, actor_admin: ContextoActor,
    test_rol_analista: Rol, arbol_rrhh: Dict[str, Any]
):
    padre = arbol_rrhh["padre"]
    padre.deleted_at = datetime.now(timezone.utc)
    db.commit()

    mensaje = servicio.asignar_modulo(
        db, actor_admin, rol_id=test_rol_analista.id, modulo_id=arbol_rrhh["empleados"].id, permisos=["editar"]
    )
    assert mensaje == "Módulo asignado correctamente al rol"
    assert _arista(db, test_rol_analista.id, padre.id) is None
    assert _arista(db, test_rol_analista.id, arbol_rrhh["empleados"].id).permisos == ["editar"]


def test_desasignar_con_hermano_eliminado_quita_padre(
    db: Session, servicio: ControlAccesoService, actor_admin: ContextoActor,
    test_rol_analista: Rol, arbol_rrhh: Dict[str, Any]
):
    rol_id = test_rol_analista.id
    servicio.asignar_modulo(db, actor_admin, rol_id=rol_id, modulo_id=arbol_rrhh["empleados"].id, permisos=[])
    servicio.asignar_modulo(db, actor_admin, rol_id=rol_id, modulo_id=arbol_rrhh["nominas"].id, permisos=[])

    # Un hermano eliminado no mantiene vivo al padre
    arbol_rrhh["nominas"].deleted_at = datetime.now(timezone.utc)
    db.commit()

    servicio.desasignar_modulo(db, actor_admin, rol_id=rol_id, modulo_id=arbol_rrhh["empleados"].id)
    assert _arista(db, rol_id, arbol_rrhh["padre"].id) is None


def test_desasignar_modulo_eliminado(
    db: Session, servicio: ControlAccesoService, actor_admin: ContextoActor,
    test_rol_analista: Rol, arbol_rrhh: Dict[str, Any]
):
    rol_id = test_rol_analista.id
    servicio.asignar_modulo(db, actor_admin, rol_id=rol_id, modulo_id=arbol_rrhh["reportes"].id, permisos=["crear"])
    arbol_rrhh["reportes"].deleted_at = datetime.now(timezone.utc)
    db.commit()

    servicio.desasignar_modulo(db, actor_admin, rol_id=rol_id, modulo_id=arbol_rrhh["reportes"].id)
    assert _arista(db, rol_id, arbol_rrhh["reportes"].id) is None


def test_asignar_modulo_eliminado_es_404(
    db: Session, servicio: ControlAccesoService, actor_admin: ContextoActor,
    test_rol_analista: Rol, arbol_rrhh: Dict[str, Any]
):
    arbol_rrhh["reportes"].deleted_at = datetime.now(timezone.utc)
    db.commit()
    with pytest.raises(HTTPException) as exc_info:
        servicio.asignar_modulo(db, actor_admin, rol_id=test_rol_analista.id, modulo_id=arbol_rrhh["reportes"].id)
    assert exc_info.value.status_code == 404


def test_autorizacion_antes_de_validar(
    db: Session, servicio: ControlAccesoService, actor_consulta: ContextoActor
):
    # Sin permiso, un rol inexistente responde 403 y no 404
    with pytest.raises(HTTPException) as exc_info:
        servicio.asignar_modulo(db, actor_consulta, rol_id=9999, modulo_id=9999, permisos=["crear"])
    assert exc_info.value.status_code == 403


def test_asignacion_invalida_cache(
    db: Session, cache: CacheArbol, servicio: ControlAccesoService, actor_admin: ContextoActor,
    test_rol_analista: Rol, arbol_rrhh: Dict[str, Any]
):
    cache.put(CLAVE_MODULOS, ["listado previo"])
    cache.put(CLAVE_PESTANAS, ["listado previo"])

    servicio.asignar_pestana(db, actor_admin, rol_id=test_rol_analista.id, pestana_id=arbol_rrhh["listado"].id)
    assert CLAVE_MODULOS not in cache
    assert CLAVE_PESTANAS not in cache


def test_fallo_de_auditoria_no_revierte_asignacion(
    db: Session, cache: CacheArbol, actor_admin: ContextoActor,
    test_rol_analista: Rol, arbol_rrhh: Dict[str, Any], monkeypatch: pytest.MonkeyPatch
):
    monkeypatch.setattr(settings, "AUDITORIA_EN_TRANSACCION", False)
    servicio = ControlAccesoService(cache, auditoria=AuditoriaQueFalla())

    mensaje = servicio.asignar_pestana(
        db, actor_admin, rol_id=test_rol_analista.id, pestana_id=arbol_rrhh["recibos"].id, permisos=["imprimir"]
    )
    assert mensaje == "Pestaña asignada correctamente al rol"

    db.expire_all()
    assert db.get(PestanaRol, (test_rol_analista.id, arbol_rrhh["recibos"].id)).permisos == ["imprimir"]
    assert _acciones(db) == []


def test_auditoria_en_la_misma_transaccion(
    db: Session, servicio: ControlAccesoService, actor_admin: ContextoActor,
    test_rol_analista: Rol, arbol_rrhh: Dict[str, Any], monkeypatch: pytest.MonkeyPatch
):
    monkeypatch.setattr(settings, "AUDITORIA_EN_TRANSACCION", True)
    servicio.asignar_modulo(db, actor_admin, rol_id=test_rol_analista.id, modulo_id=arbol_rrhh["empleados"].id)
    assert _acciones(db) == ["INSERT", "INSERT"]


def test_fallo_de_auditoria_en_transaccion_revierte_todo(
    db: Session, cache: CacheArbol, actor_admin: ContextoActor,
    test_rol_analista: Rol, arbol_rrhh: Dict[str, Any], monkeypatch: pytest.MonkeyPatch
):
    monkeypatch.setattr(settings, "AUDITORIA_EN_TRANSACCION", True)
    servicio = ControlAccesoService(cache, auditoria=AuditoriaQueFalla())

    with pytest.raises(HTTPException) as exc_info:
        servicio.asignar_modulo(db, actor_admin, rol_id=test_rol_analista.id, modulo_id=arbol_rrhh["empleados"].id)
    assert exc_info.value.status_code == 500
    assert exc_info.value.detail == "Error al asignar el módulo"
    assert _arista(db, test_rol_analista.id, arbol_rrhh["empleados"].id) is None
    assert _arista(db, test_rol_analista.id, arbol_rrhh["padre"].id) is None


def test_obtener_pestanas_jerarquicas_sin_rol(db: Session, servicio: ControlAccesoService, test_admin):
    assert servicio.obtener_pestanas_jerarquicas(db, rol_id=None) == []


# ==============================================================================
# Bloqueo de la arista padre al desasignar
# ==============================================================================

def test_sentencia_bloqueo_usa_for_update():
    sentencia = AsignacionStore().sentencia_bloqueo(3, 14, TipoNodo.MODULO)
    sql = str(sentencia.compile(dialect=postgresql.dialect()))
    assert "FOR UPDATE" in sql
    assert "modulo_rol" in sql


def test_desasignar_bloquea_padre_antes_de_contar_hermanos(
    db: Session, cache: CacheArbol, actor_admin: ContextoActor,
    test_rol_analista: Rol, arbol_rrhh: Dict[str, Any]
):
    rol_id = test_rol_analista.id
    padre_id = arbol_rrhh["padre"].id
    empleados_id = arbol_rrhh["empleados"].id
    ControlAccesoService(cache).asignar_modulo(db, actor_admin, rol_id=rol_id, modulo_id=empleados_id, permisos=None)

    espia = StoreEspia()
    ControlAccesoService(cache, store=espia).desasignar_modulo(db, actor_admin, rol_id=rol_id, modulo_id=empleados_id)

    pasos = [(metodo, nodo) for metodo, nodo, _ in espia.llamadas]
    assert pasos[0] == ("lock_edge", padre_id)
    bloqueo = pasos.index(("lock_edge", padre_id))
    borrado_hijo = pasos.index(("remove_edge", empleados_id))
    conteo = pasos.index(("count_assigned_siblings", padre_id))
    assert bloqueo < borrado_hijo < conteo
    assert ("remove_edge", padre_id) in pasos[conteo:]
    assert {sesion for _, _, sesion in espia.llamadas} == {id(db)}
    assert _arista(db, rol_id, padre_id) is None
