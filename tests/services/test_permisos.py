import pytest
from datetime import datetime, timezone
from typing import Dict, Any

from sqlalchemy.orm import Session

from app.core.permissions import ConjuntoPermisos, PermisoInvalidoError, permisos_disponibles
from app.models.modulo_rol import ModuloRol
from app.models.pestana_rol import PestanaRol
from app.models.rol import Rol
from app.services.asignacion import TipoNodo
from app.services.permiso import permiso_resolver


# ==============================================================================
# ConjuntoPermisos
# ==============================================================================

def test_desde_asignacion_recorta_y_deduplica():
    conjunto = ConjuntoPermisos.desde_asignacion([" crear", "editar ", "crear", "", "   "])
    assert conjunto.como_lista() == ["crear", "editar"]


def test_desde_asignacion_none_es_vacio():
    conjunto = ConjuntoPermisos.desde_asignacion(None)
    assert len(conjunto) == 0
    assert conjunto.como_columna() is None


@pytest.mark.parametrize("token", ["ver-todo", "crear1", "con espacio"])
def test_desde_asignacion_rechaza_formato(token: str):
    with pytest.raises(PermisoInvalidoError):
        ConjuntoPermisos.desde_asignacion([token])


def test_desde_asignacion_rechaza_token_largo():
    with pytest.raises(PermisoInvalidoError):
        ConjuntoPermisos.desde_asignacion(["a" * 51])


def test_desde_extras_rechaza_duplicados_sin_distinguir_mayusculas():
    with pytest.raises(PermisoInvalidoError):
        ConjuntoPermisos.desde_extras(["exportar", "exportar"])


def test_desde_extras_solo_minusculas():
    with pytest.raises(PermisoInvalidoError):
        ConjuntoPermisos.desde_extras(["Exportar"])
    assert ConjuntoPermisos.desde_extras(["exportar", "ver_detalle"]).como_lista() == ["exportar", "ver_detalle"]


def test_igualdad_ignora_el_orden():
    assert ConjuntoPermisos.desde_asignacion(["crear", "editar"]) == ConjuntoPermisos.desde_asignacion(["editar", "crear"])
    assert ConjuntoPermisos.desde_asignacion(["crear"]) != ConjuntoPermisos.desde_asignacion(["editar"])


def test_faltantes_en():
    conjunto = ConjuntoPermisos.desde_asignacion(["crear", "exportar", "imprimir"])
    assert conjunto.faltantes_en(permisos_disponibles(["exportar"])) == ["imprimir"]


def test_permisos_disponibles():
    assert permisos_disponibles(None) == ["crear", "editar", "eliminar"]
    assert permisos_disponibles(["exportar", "crear"]) == ["crear", "editar", "eliminar", "exportar"]


# ==============================================================================
# PermisoResolver
# ==============================================================================

def test_resolver_permisos_de_pestana(db: Session, test_rol_analista: Rol, arbol_rrhh: Dict[str, Any]):
    recibos_id = arbol_rrhh["recibos"].id
    db.add(PestanaRol(rol_id=test_rol_analista.id, pestana_id=recibos_id, permisos=["crear", "imprimir"]))
    db.commit()

    assert permiso_resolver.permisos(db, test_rol_analista.id, recibos_id) == frozenset({"crear", "imprimir"})
    assert permiso_resolver.tiene_permiso(db, test_rol_analista.id, recibos_id, "imprimir")
    assert not permiso_resolver.tiene_permiso(db, test_rol_analista.id, recibos_id, "eliminar")


def test_resolver_sin_arista(db: Session, test_rol_analista: Rol, arbol_rrhh: Dict[str, Any]):
    assert permiso_resolver.permisos(db, test_rol_analista.id, arbol_rrhh["listado"].id) == frozenset()
    assert permiso_resolver.permisos(db, None, arbol_rrhh["listado"].id) == frozenset()


def test_resolver_arista_sin_permisos_da_acceso_pero_no_permisos(
    db: Session, test_rol_analista: Rol, arbol_rrhh: Dict[str, Any]
):
    padre_id = arbol_rrhh["padre"].id
    db.add(ModuloRol(rol_id=test_rol_analista.id, modulo_id=padre_id, permisos=None))
    db.commit()

    assert permiso_resolver.tiene_acceso(db, test_rol_analista.id, padre_id, TipoNodo.MODULO)
    assert permiso_resolver.permisos(db, test_rol_analista.id, padre_id, TipoNodo.MODULO) == frozenset()
    assert not permiso_resolver.tiene_permiso(db, test_rol_analista.id, padre_id, "crear", TipoNodo.MODULO)


def test_resolver_rol_eliminado(db: Session, test_rol_analista: Rol, arbol_rrhh: Dict[str, Any]):
    nominas_id = arbol_rrhh["nominas"].id
    db.add(ModuloRol(rol_id=test_rol_analista.id, modulo_id=nominas_id, permisos=["exportar"]))
    test_rol_analista.deleted_at = datetime.now(timezone.utc)
    db.commit()

    assert permiso_resolver.permisos(db, test_rol_analista.id, nominas_id, TipoNodo.MODULO) == frozenset()


def test_resolver_rol_eliminado_pierde_acceso(db: Session, test_rol_analista: Rol, arbol_rrhh: Dict[str, Any]):
    padre_id = arbol_rrhh["padre"].id
    listado_id = arbol_rrhh["listado"].id
    db.add(ModuloRol(rol_id=test_rol_analista.id, modulo_id=padre_id, permisos=None))
    db.add(PestanaRol(rol_id=test_rol_analista.id, pestana_id=listado_id, permisos=None))
    db.commit()
    assert permiso_resolver.tiene_acceso(db, test_rol_analista.id, listado_id, TipoNodo.PESTANA)

    test_rol_analista.deleted_at = datetime.now(timezone.utc)
    db.commit()

    assert not permiso_resolver.tiene_acceso(db, test_rol_analista.id, padre_id, TipoNodo.MODULO)
    assert not permiso_resolver.tiene_acceso(db, test_rol_analista.id, listado_id, TipoNodo.PESTANA)
