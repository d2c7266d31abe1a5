import os
import tempfile

# La app lee la configuración al importarse: la BD de pruebas debe fijarse antes
os.environ["DATABASE_URI"] = "sqlite://"
os.environ.setdefault("LOGS_DIR", os.path.join(tempfile.gettempdir(), "intranet_acceso_tests_logs"))

import pytest
import pytest_asyncio
from typing import AsyncGenerator, Generator, Dict, Any
import logging

from fastapi import FastAPI
from httpx import AsyncClient, ASGITransport
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from app.db.base import Base
from app.models import Usuario, Rol, Modulo, Pestana  # noqa: F401

from app.main import app as fastapi_app

from app.core import security
from app.core.config import settings
from app.api import deps
from app.api.deps import get_db  # Usado para override
from app.db.semilla import sembrar_administrador
from app.services.control_acceso import ContextoActor

logger = logging.getLogger(__name__)


@pytest.fixture(scope="session")
def app() -> FastAPI:
    """
    Fixture que proporciona la instancia de la aplicación FastAPI para los tests.
    """
    return fastapi_app


@pytest.fixture(scope="function")
def engine() -> Generator[Engine, None, None]:
    """Una BD SQLite en memoria nueva por test, con el esquema completo."""
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=test_engine)
    try:
        yield test_engine
    finally:
        Base.metadata.drop_all(bind=test_engine)
        test_engine.dispose()


@pytest.fixture(scope="function")
def db(engine: Engine) -> Generator[Session, None, None]:
    """Fixture para obtener una sesión de BD por cada test."""
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db_session = TestingSessionLocal()
    try:
        yield db_session
    finally:
        db_session.rollback()
        db_session.close()


@pytest.fixture(autouse=True)
def limpiar_cache_arbol() -> Generator[None, None, None]:
    deps.cache_arbol.invalidar_todo()
    yield
    deps.cache_arbol.invalidar_todo()


@pytest_asyncio.fixture(scope="function")
async def client(app: FastAPI, db: Session) -> AsyncGenerator[AsyncClient, None]:
    """Fixture para obtener un cliente HTTP asíncrono que comparte la sesión del test."""
    def override_get_db_for_test():
        yield db

    app.dependency_overrides[get_db] = override_get_db_for_test
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as test_client:
        yield test_client
    app.dependency_overrides.pop(get_db, None)


def auth_headers(usuario: Usuario) -> Dict[str, str]:
    return {"Authorization": f"Bearer {security.create_access_token(usuario.id)}"}


# ==============================================================================
# Usuarios y roles
# ==============================================================================

@pytest.fixture(scope="function")
def test_admin(db: Session) -> Usuario:
    """Árbol de gestión sembrado y un usuario cuyo rol tiene acceso total."""
    usuario = sembrar_administrador(db, nombre_usuario="admin_test", email="admin@intranet.test")
    db.commit()
    db.refresh(usuario)
    return usuario


@pytest.fixture(scope="function")
def auth_headers_admin(test_admin: Usuario) -> Dict[str, str]:
    return auth_headers(test_admin)


@pytest.fixture(scope="function")
def actor_admin(test_admin: Usuario) -> ContextoActor:
    return ContextoActor(usuario_id=test_admin.id, rol_id=test_admin.rol_id)


@pytest.fixture(scope="function")
def test_rol_consulta(db: Session, test_admin: Usuario) -> Rol:
    """Rol sin ninguna asignación."""
    rol = Rol(nombre="Consulta", abreviatura="CON")
    db.add(rol)
    db.commit()
    db.refresh(rol)
    return rol


@pytest.fixture(scope="function")
def test_usuario_consulta(db: Session, test_rol_consulta: Rol) -> Usuario:
    usuario = Usuario(nombre_usuario="consulta_test", email="consulta@intranet.test", rol_id=test_rol_consulta.id)
    db.add(usuario)
    db.commit()
    db.refresh(usuario)
    return usuario


@pytest.fixture(scope="function")
def auth_headers_consulta(test_usuario_consulta: Usuario) -> Dict[str, str]:
    return auth_headers(test_usuario_consulta)


@pytest.fixture(scope="function")
def actor_consulta(test_usuario_consulta: Usuario) -> ContextoActor:
    return ContextoActor(usuario_id=test_usuario_consulta.id, rol_id=test_usuario_consulta.rol_id)


@pytest.fixture(scope="function")
def test_rol_analista(db: Session, test_admin: Usuario) -> Rol:
    """Rol destino de las asignaciones en los tests de cascada."""
    rol = Rol(nombre="Analista", abreviatura="AN")
    db.add(rol)
    db.commit()
    db.refresh(rol)
    return rol


# ==============================================================================
# Árbol de ejemplo: Recursos Humanos > (Empleados, Nominas) y un módulo raíz
# ==============================================================================

@pytest.fixture(scope="function")
def arbol_rrhh(db: Session, test_admin: Usuario) -> Dict[str, Any]:
    padre = Modulo(nombre="Recursos Humanos", icono="users", ruta="/recursos-humanos", es_padre=True)
    db.add(padre)
    db.flush()

    empleados = Modulo(nombre="Empleados", icono="user", ruta="/empleados", es_padre=False, modulo_padre_id=padre.id)
    nominas = Modulo(
        nombre="Nominas", icono="wallet", ruta="/nominas", es_padre=False,
        modulo_padre_id=padre.id, permisos_extra=["exportar"],
    )
    reportes = Modulo(nombre="Reportes", icono="chart-bar", ruta="/reportes", es_padre=False)
    db.add_all([empleados, nominas, reportes])
    db.flush()

    listado = Pestana(modulo_id=empleados.id, nombre="Listado", ruta="/listado")
    recibos = Pestana(modulo_id=nominas.id, nombre="Recibos", ruta="/recibos", permisos_extra=["imprimir"])
    mensuales = Pestana(modulo_id=reportes.id, nombre="Mensuales", ruta="/mensuales")
    db.add_all([listado, recibos, mensuales])
    db.commit()

    nodos = {
        "padre": padre,
        "empleados": empleados,
        "nominas": nominas,
        "reportes": reportes,
        "listado": listado,
        "recibos": recibos,
        "mensuales": mensuales,
    }
    for nodo in nodos.values():
        db.refresh(nodo)
    logger.debug(f"Árbol de prueba creado: {', '.join(f'{k}={v.id}' for k, v in nodos.items())}")
    return nodos
