import pytest
from httpx import AsyncClient
from fastapi import status
from typing import Dict, Any, List, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.auditoria import Auditoria
from app.models.modulo import Modulo
from app.models.modulo_rol import ModuloRol
from app.models.rol import Rol
from app.db.semilla import MODULO_SEGURIDAD_ID, MODULO_CONTROL_ACCESO_ID

pytestmark = pytest.mark.asyncio

URL_MODULOS = f"{settings.API_V1_STR}/gestion/modulos"


async def test_read_modulos_con_ruta_completa(client: AsyncClient, auth_headers_admin: Dict[str, str]):
    response = await client.get(f"{URL_MODULOS}/", headers=auth_headers_admin)
    assert response.status_code == status.HTTP_200_OK, response.text
    modulos = response.json()

    ids = [m["id"] for m in modulos]
    assert ids == sorted(ids, reverse=True)

    control = next(m for m in modulos if m["id"] == MODULO_CONTROL_ACCESO_ID)
    assert control["ruta_completa"] == "/seguridad-acceso/control-acceso"
    assert control["modulo_padre_nombre"] == "Seguridad y Acceso"
    assert control["cant_pestanas"] == 2

    seguridad = next(m for m in modulos if m["id"] == MODULO_SEGURIDAD_ID)
    assert seguridad["ruta_completa"] == "/seguridad-acceso"
    assert seguridad["cant_hijos"] == 3


async def test_read_modulos_sin_acceso(client: AsyncClient, auth_headers_consulta: Dict[str, str]):
    response = await client.get(f"{URL_MODULOS}/", headers=auth_headers_consulta)
    assert response.status_code == status.HTTP_403_FORBIDDEN


async def test_create_modulo_hijo_e_invalida_listado(client: AsyncClient, auth_headers_admin: Dict[str, str]):
    # Primer listado: queda en caché
    antes = await client.get(f"{URL_MODULOS}/", headers=auth_headers_admin)
    assert antes.status_code == status.HTTP_200_OK

    data = {
        "nombre": "Permisos Especiales",
        "icono": "lock",
        "ruta": "/permisos-especiales",
        "es_padre": False,
        "modulo_padre_id": MODULO_SEGURIDAD_ID,
        "permisos_extra": ["aprobar"],
    }
    response = await client.post(f"{URL_MODULOS}/", json=data, headers=auth_headers_admin)
    assert response.status_code == status.HTTP_201_CREATED, response.text
    creado = response.json()
    assert creado["nombre"] == "Permisos Especiales"
    assert creado["permisos_extra"] == ["aprobar"]

    despues = await client.get(f"{URL_MODULOS}/", headers=auth_headers_admin)
    nuevo = next(m for m in despues.json() if m["id"] == creado["id"])
    assert nuevo["ruta_completa"] == "/seguridad-acceso/permisos-especiales"
    assert len(despues.json()) == len(antes.json()) + 1


async def test_create_modulo_nombre_duplicado(client: AsyncClient, auth_headers_admin: Dict[str, str]):
    data = {"nombre": "Seguridad y Acceso", "icono": "shield", "ruta": "/otra-ruta", "es_padre": True}
    response = await client.post(f"{URL_MODULOS}/", json=data, headers=auth_headers_admin)
    assert response.status_code == status.HTTP_409_CONFLICT
    assert "Seguridad y Acceso" in response.json()["detail"]


async def test_create_modulo_padre_con_permisos_extra(client: AsyncClient, auth_headers_admin: Dict[str, str]):
    data = {"nombre": "Finanzas", "icono": "wallet", "ruta": "/finanzas", "es_padre": True, "permisos_extra": ["exportar"]}
    response = await client.post(f"{URL_MODULOS}/", json=data, headers=auth_headers_admin)
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


async def test_create_modulo_con_padre_que_no_es_padre(
    client: AsyncClient, auth_headers_admin: Dict[str, str], arbol_rrhh: Dict[str, Any]
):
    data = {
        "nombre": "Vacaciones",
        "icono": "calendar",
        "ruta": "/vacaciones",
        "modulo_padre_id": arbol_rrhh["empleados"].id,
    }
    response = await client.post(f"{URL_MODULOS}/", json=data, headers=auth_headers_admin)
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert response.json()["detail"] == "El módulo 'Empleados' no es un módulo padre."


async def test_create_modulo_ruta_invalida(client: AsyncClient, auth_headers_admin: Dict[str, str]):
    data = {"nombre": "Compras", "icono": "cart", "ruta": "/Compras/", "es_padre": False}
    response = await client.post(f"{URL_MODULOS}/", json=data, headers=auth_headers_admin)
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


async def test_create_modulo_sin_permiso_crear(client: AsyncClient, auth_headers_consulta: Dict[str, str]):
    data = {"nombre": "Compras", "icono": "cart", "ruta": "/compras"}
    response = await client.post(f"{URL_MODULOS}/", json=data, headers=auth_headers_consulta)
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["detail"] == "No tiene permiso para realizar esta acción."


async def test_update_modulo(client: AsyncClient, auth_headers_admin: Dict[str, str], arbol_rrhh: Dict[str, Any]):
    modulo_id = arbol_rrhh["reportes"].id
    response = await client.put(
        f"{URL_MODULOS}/{modulo_id}", json={"nombre": "Reportes Generales", "icono": "chart-pie"}, headers=auth_headers_admin
    )
    assert response.status_code == status.HTTP_200_OK, response.text
    actualizado = response.json()
    assert actualizado["nombre"] == "Reportes Generales"
    assert actualizado["icono"] == "chart-pie"
    assert actualizado["ruta"] == "/reportes"


async def test_update_padre_con_hijos_no_deja_de_ser_padre(
    client: AsyncClient, auth_headers_admin: Dict[str, str], arbol_rrhh: Dict[str, Any]
):
    response = await client.put(
        f"{URL_MODULOS}/{arbol_rrhh['padre'].id}", json={"es_padre": False}, headers=auth_headers_admin
    )
    assert response.status_code == status.HTTP_409_CONFLICT


async def test_update_modulo_con_pestanas_no_se_convierte_en_padre(
    client: AsyncClient, auth_headers_admin: Dict[str, str], arbol_rrhh: Dict[str, Any]
):
    response = await client.put(
        f"{URL_MODULOS}/{arbol_rrhh['reportes'].id}", json={"es_padre": True}, headers=auth_headers_admin
    )
    assert response.status_code == status.HTTP_409_CONFLICT


def _nuevo_padre(db: Session) -> Modulo:
    padre = Modulo(nombre="Administracion", icono="briefcase", ruta="/administracion", es_padre=True)
    db.add(padre)
    db.commit()
    db.refresh(padre)
    return padre


def _aristas_auditadas(db: Session) -> List[Tuple[str, str]]:
    statement = select(Auditoria).where(Auditoria.tabla_afectada == "modulo_rol").order_by(Auditoria.id)
    return [(a.accion, a.id_registro_afectado) for a in db.execute(statement).scalars().all()]


async def test_update_modulo_asignado_arrastra_asignacion_al_nuevo_padre(
    client: AsyncClient, db: Session, auth_headers_admin: Dict[str, str],
    test_rol_analista: Rol, arbol_rrhh: Dict[str, Any]
):
    rol_id = test_rol_analista.id
    viejo_padre_id = arbol_rrhh["padre"].id
    empleados_id = arbol_rrhh["empleados"].id
    db.add_all([
        ModuloRol(rol_id=rol_id, modulo_id=viejo_padre_id, permisos=None),
        ModuloRol(rol_id=rol_id, modulo_id=empleados_id, permisos=["crear"]),
    ])
    db.commit()
    nuevo_padre = _nuevo_padre(db)

    response = await client.put(
        f"{URL_MODULOS}/{empleados_id}", json={"modulo_padre_id": nuevo_padre.id}, headers=auth_headers_admin
    )
    assert response.status_code == status.HTTP_200_OK, response.text
    assert response.json()["modulo_padre_id"] == nuevo_padre.id

    db.expire_all()
    assert db.get(ModuloRol, (rol_id, empleados_id)).permisos == ["crear"]
    assert db.get(ModuloRol, (rol_id, nuevo_padre.id)).permisos is None
    assert db.get(ModuloRol, (rol_id, viejo_padre_id)) is None
    assert _aristas_auditadas(db) == [
        ("INSERT", f"{rol_id}-{nuevo_padre.id}"),
        ("DELETE", f"{rol_id}-{viejo_padre_id}"),
    ]


async def test_update_modulo_asignado_conserva_padre_con_hermano_asignado(
    client: AsyncClient, db: Session, auth_headers_admin: Dict[str, str],
    test_rol_analista: Rol, arbol_rrhh: Dict[str, Any]
):
    rol_id = test_rol_analista.id
    viejo_padre_id = arbol_rrhh["padre"].id
    empleados_id = arbol_rrhh["empleados"].id
    db.add_all([
        ModuloRol(rol_id=rol_id, modulo_id=viejo_padre_id, permisos=None),
        ModuloRol(rol_id=rol_id, modulo_id=empleados_id, permisos=None),
        ModuloRol(rol_id=rol_id, modulo_id=arbol_rrhh["nominas"].id, permisos=["exportar"]),
    ])
    db.commit()

    # Empleados pasa a ser un módulo raíz
    response = await client.put(
        f"{URL_MODULOS}/{empleados_id}", json={"modulo_padre_id": None}, headers=auth_headers_admin
    )
    assert response.status_code == status.HTTP_200_OK, response.text

    db.expire_all()
    assert db.get(ModuloRol, (rol_id, empleados_id)) is not None
    assert db.get(ModuloRol, (rol_id, viejo_padre_id)) is not None
    assert _aristas_auditadas(db) == []


async def test_delete_modulo_deja_hijos_huerfanos(
    client: AsyncClient, db: Session, auth_headers_admin: Dict[str, str], arbol_rrhh: Dict[str, Any]
):
    padre_id = arbol_rrhh["padre"].id
    response = await client.delete(f"{URL_MODULOS}/{padre_id}", headers=auth_headers_admin)
    assert response.status_code == status.HTTP_200_OK, response.text
    assert response.json() == {"message": "Módulo 'Recursos Humanos' eliminado correctamente."}

    db.expire_all()
    assert db.get(Modulo, padre_id).deleted_at is not None

    listado = (await client.get(f"{URL_MODULOS}/", headers=auth_headers_admin)).json()
    assert padre_id not in [m["id"] for m in listado]
    empleados = next(m for m in listado if m["id"] == arbol_rrhh["empleados"].id)
    assert empleados["padre_eliminado"] is True
    assert empleados["ruta_completa"] == "/empleados"

    detalle = await client.get(f"{URL_MODULOS}/{padre_id}", headers=auth_headers_admin)
    assert detalle.status_code == status.HTTP_404_NOT_FOUND
    assert detalle.json()["detail"] == f"Módulo con ID {padre_id} no encontrado."


async def test_read_modulos_disponibles(
    client: AsyncClient, auth_headers_admin: Dict[str, str], arbol_rrhh: Dict[str, Any]
):
    response = await client.get(f"{URL_MODULOS}/disponibles", headers=auth_headers_admin)
    assert response.status_code == status.HTTP_200_OK
    disponibles = response.json()
    nombres = [m["nombre"] for m in disponibles]
    assert nombres == sorted(nombres)
    assert "Recursos Humanos" not in nombres
    nominas = next(m for m in disponibles if m["id"] == arbol_rrhh["nominas"].id)
    assert nominas["ruta_completa"] == "/recursos-humanos/nominas"


async def test_read_arbol(client: AsyncClient, auth_headers_admin: Dict[str, str], arbol_rrhh: Dict[str, Any]):
    response = await client.get(f"{URL_MODULOS}/arbol", headers=auth_headers_admin)
    assert response.status_code == status.HTTP_200_OK
    arbol = response.json()
    rrhh = next(n for n in arbol if n["id"] == arbol_rrhh["padre"].id)
    assert [h["nombre"] for h in rrhh["hijos"]] == ["Empleados", "Nominas"]
    assert rrhh["hijos"][0]["pestanas"][0]["ruta"] == "/listado"
