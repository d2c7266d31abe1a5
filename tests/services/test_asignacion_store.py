from datetime import datetime, timezone
from typing import Dict, Any

from sqlalchemy.orm import Session

from app.models.rol import Rol
from app.services.asignacion import asignacion_store, TipoNodo
from app.services.auditoria import diff_permisos, diff_columnas, clave_arista


def test_upsert_edge_crea_y_actualiza(db: Session, test_rol_analista: Rol, arbol_rrhh: Dict[str, Any]):
    rol_id = test_rol_analista.id
    nominas_id = arbol_rrhh["nominas"].id

    arista, creada, previos = asignacion_store.upsert_edge(db, rol_id, nominas_id, TipoNodo.MODULO, ["crear"])
    assert creada is True
    assert previos is None
    assert arista.permisos == ["crear"]

    arista, creada, previos = asignacion_store.upsert_edge(db, rol_id, nominas_id, TipoNodo.MODULO, ["crear", "exportar"])
    assert creada is False
    assert previos == ["crear"]
    assert asignacion_store.get_edge(db, rol_id, nominas_id, TipoNodo.MODULO).permisos == ["crear", "exportar"]


def test_remove_edge_inexistente_no_hace_nada(db: Session, test_rol_analista: Rol, arbol_rrhh: Dict[str, Any]):
    assert asignacion_store.remove_edge(db, test_rol_analista.id, arbol_rrhh["listado"].id, TipoNodo.PESTANA) == (False, None)


def test_remove_edge_devuelve_permisos_previos(db: Session, test_rol_analista: Rol, arbol_rrhh: Dict[str, Any]):
    rol_id = test_rol_analista.id
    recibos_id = arbol_rrhh["recibos"].id
    asignacion_store.upsert_edge(db, rol_id, recibos_id, TipoNodo.PESTANA, ["imprimir"])

    assert asignacion_store.remove_edge(db, rol_id, recibos_id, TipoNodo.PESTANA) == (True, ["imprimir"])
    assert asignacion_store.lock_edge(db, rol_id, recibos_id, TipoNodo.PESTANA) is None


def test_count_assigned_siblings(db: Session, test_rol_analista: Rol, arbol_rrhh: Dict[str, Any]):
    rol_id = test_rol_analista.id
    padre_id = arbol_rrhh["padre"].id
    empleados_id = arbol_rrhh["empleados"].id
    nominas_id = arbol_rrhh["nominas"].id
    asignacion_store.upsert_edge(db, rol_id, empleados_id, TipoNodo.MODULO, None)
    asignacion_store.upsert_edge(db, rol_id, nominas_id, TipoNodo.MODULO, None)

    assert asignacion_store.count_assigned_siblings(db, rol_id, padre_id, empleados_id) == 1

    arbol_rrhh["nominas"].deleted_at = datetime.now(timezone.utc)
    db.flush()
    assert asignacion_store.count_assigned_siblings(db, rol_id, padre_id, empleados_id) == 0


def test_aristas_de_rol(db: Session, test_rol_analista: Rol, arbol_rrhh: Dict[str, Any]):
    rol_id = test_rol_analista.id
    asignacion_store.upsert_edge(db, rol_id, arbol_rrhh["reportes"].id, TipoNodo.MODULO, None)
    asignacion_store.upsert_edge(db, rol_id, arbol_rrhh["mensuales"].id, TipoNodo.PESTANA, ["crear"])

    assert [a.modulo_id for a in asignacion_store.aristas_de_rol(db, rol_id, TipoNodo.MODULO)] == [arbol_rrhh["reportes"].id]
    assert [a.pestana_id for a in asignacion_store.aristas_de_rol(db, rol_id, TipoNodo.PESTANA)] == [arbol_rrhh["mensuales"].id]
    assert asignacion_store.tabla(TipoNodo.PESTANA) == "pestana_rol"


def test_aristas_de_nodo(db: Session, test_admin, test_rol_analista: Rol, arbol_rrhh: Dict[str, Any]):
    reportes_id = arbol_rrhh["reportes"].id
    asignacion_store.upsert_edge(db, test_rol_analista.id, reportes_id, TipoNodo.MODULO, ["crear"])

    roles = [a.rol_id for a in asignacion_store.aristas_de_nodo(db, reportes_id, TipoNodo.MODULO)]
    assert roles == sorted(roles)
    assert test_rol_analista.id in roles


# ==============================================================================
# Diferencias para auditoría
# ==============================================================================

def test_diff_permisos():
    assert diff_permisos(["editar"], ["crear", "editar"]) == [
        {"columna": "permisos", "antes": ["editar"], "despues": ["crear", "editar"]}
    ]
    assert diff_permisos(["crear", "editar"], ["editar", "crear"]) == []
    assert diff_permisos(None, []) == []
    assert diff_permisos(None, ["crear"]) == [{"columna": "permisos", "antes": None, "despues": ["crear"]}]


def test_diff_columnas():
    antes = {"nombre": "Analista", "abreviatura": "AN"}
    despues = {"nombre": "Analista", "abreviatura": "ANA"}
    assert diff_columnas(antes, despues) == [{"columna": "abreviatura", "antes": "AN", "despues": "ANA"}]


def test_clave_arista():
    assert clave_arista(3, 14) == "3-14"
