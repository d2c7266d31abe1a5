import pytest
from httpx import AsyncClient
from fastapi import status
from typing import Dict, Any

from app.core.config import settings
from app.models.rol import Rol
from app.models.usuario import Usuario

pytestmark = pytest.mark.asyncio

URL_AUDITORIA = f"{settings.API_V1_STR}/auditoria/"


async def test_read_auditoria_tras_crear_rol(client: AsyncClient, auth_headers_admin: Dict[str, str], test_admin: Usuario):
    creado = await client.post(
        f"{settings.API_V1_STR}/gestion/roles/", json={"nombre": "Contadores", "abreviatura": "CONT"}, headers=auth_headers_admin
    )
    assert creado.status_code == status.HTTP_201_CREATED
    rol_id = creado.json()["id"]

    response = await client.get(
        URL_AUDITORIA, params={"tabla_afectada": "roles", "accion": "insert"}, headers=auth_headers_admin
    )
    assert response.status_code == status.HTTP_200_OK, response.text
    registros = response.json()
    assert len(registros) == 1
    assert registros[0]["id_registro_afectado"] == str(rol_id)
    assert registros[0]["accion"] == "INSERT"
    assert registros[0]["usuario_id"] == test_admin.id
    assert registros[0]["cambios"] is None


async def test_read_auditoria_update_con_cambios(
    client: AsyncClient, auth_headers_admin: Dict[str, str], test_rol_analista: Rol
):
    await client.put(
        f"{settings.API_V1_STR}/gestion/roles/{test_rol_analista.id}",
        json={"abreviatura": "ANA"},
        headers=auth_headers_admin,
    )
    response = await client.get(
        URL_AUDITORIA,
        params={"tabla_afectada": "roles", "accion": "UPDATE", "id_registro_afectado": str(test_rol_analista.id)},
        headers=auth_headers_admin,
    )
    assert response.status_code == status.HTTP_200_OK
    registros = response.json()
    assert len(registros) == 1
    assert registros[0]["cambios"] == [{"columna": "abreviatura", "antes": "AN", "despues": "ANA"}]


async def test_read_auditoria_filtra_asignaciones_por_clave(
    client: AsyncClient, auth_headers_admin: Dict[str, str], test_rol_analista: Rol, arbol_rrhh: Dict[str, Any]
):
    rol_id = test_rol_analista.id
    reportes_id = arbol_rrhh["reportes"].id
    await client.post(
        f"{settings.API_V1_STR}/control-acceso/asignar-modulo",
        json={"rol_id": rol_id, "modulo_id": reportes_id, "permisos": ["crear"]},
        headers=auth_headers_admin,
    )
    response = await client.get(
        URL_AUDITORIA, params={"id_registro_afectado": f"{rol_id}-{reportes_id}"}, headers=auth_headers_admin
    )
    assert response.status_code == status.HTTP_200_OK
    registros = response.json()
    assert [(r["tabla_afectada"], r["accion"]) for r in registros] == [("modulo_rol", "INSERT")]


async def test_read_auditoria_rango_de_fechas_invalido(client: AsyncClient, auth_headers_admin: Dict[str, str]):
    params = {"fecha_inicio": "2026-01-10T00:00:00", "fecha_fin": "2026-01-01T00:00:00"}
    response = await client.get(URL_AUDITORIA, params=params, headers=auth_headers_admin)
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert response.json()["detail"] == "La fecha de fin debe ser posterior a la fecha de inicio para el filtro."


async def test_read_auditoria_sin_acceso(client: AsyncClient, auth_headers_consulta: Dict[str, str]):
    response = await client.get(URL_AUDITORIA, headers=auth_headers_consulta)
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["detail"] == "No tienes acceso a este módulo."
