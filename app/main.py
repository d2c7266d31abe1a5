import logging
from typing import Callable

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.api import deps
from app.api.routes import api_router
from app.db.semilla import nodos_de_gestion_faltantes
from app.db.session import SessionLocal
from app.core.logging_config import setup_logging
from app.core.error_handlers import register_error_handlers

setup_logging()
logger = logging.getLogger(__name__)

def comprobar_arbol_de_gestion(session_factory: Callable[[], Session] = SessionLocal) -> bool:
    """
    Verifica al arrancar que existan los módulos y pestañas de gestión que
    usan las dependencias de autorización. Solo registra el resultado; una BD
    inaccesible no impide el arranque.
    """
    db = session_factory()
    try:
        faltantes = nodos_de_gestion_faltantes(db)
    except SQLAlchemyError as e:
        logger.error(f"No se pudo verificar el árbol de gestión: {e}", exc_info=True)
        return False
    finally:
        db.close()

    if faltantes:
        logger.warning(
            f"Árbol de gestión incompleto, faltan: {', '.join(faltantes)}. "
            f"Ejecute 'python scripts/manage_cli.py sembrar-arbol'."
        )
        return False
    logger.info("Árbol de gestión verificado.")
    return True

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Iniciando {settings.PROJECT_NAME} (docs en {settings.API_V1_STR}/docs)")
    logger.info(
        f"Compuertas: pestañas de accesos {settings.PESTANA_ACCESOS_MODULOS_ID}/{settings.PESTANA_ACCESOS_PESTANAS_ID}, "
        f"pestañas de gestión {settings.PESTANA_GESTION_MODULOS_ID}/{settings.PESTANA_GESTION_PESTANAS_ID}, "
        f"roles {settings.MODULO_ROLES_ID}, auditorías {settings.MODULO_AUDITORIAS_ID}"
    )
    logger.info(
        f"Caché del árbol: TTL {settings.CACHE_ARBOL_TTL_SEGUNDOS}s; "
        f"auditoría en transacción: {settings.AUDITORIA_EN_TRANSACCION}"
    )
    comprobar_arbol_de_gestion()

    yield

    deps.cache_arbol.invalidar_todo()
    logger.info(f"Deteniendo {settings.PROJECT_NAME}; caché del árbol descartada.")

# --- Crear Instancia de FastAPI ---
app = FastAPI(
    title=settings.PROJECT_NAME,
    description="API de la intranet corporativa para gestionar el árbol de navegación y el acceso de cada rol a módulos y pestañas.",
    version="1.0.0",
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    docs_url=f"{settings.API_V1_STR}/docs",
    redoc_url=f"{settings.API_V1_STR}/redoc",
    lifespan=lifespan
)

# --- Configurar CORS ---
if settings.BACKEND_CORS_ORIGINS:
    logger.info(f"Configurando CORS para los orígenes: {settings.BACKEND_CORS_ORIGINS}")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(origin).strip("/") for origin in settings.BACKEND_CORS_ORIGINS],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
else:
    logger.warning("CORS no configurado (BACKEND_CORS_ORIGINS no definido en .env)")

# --- Registrar Manejadores de Errores ---
register_error_handlers(app)

# --- Incluir Routers de la API ---
app.include_router(api_router, prefix=settings.API_V1_STR)
logger.info(f"Routers de API incluidos bajo el prefijo: {settings.API_V1_STR}")

# --- Endpoint Raíz Básico ---
@app.get("/", tags=["Root"], include_in_schema=False)
def read_root() -> dict:
    return {"status": "ok", "message": f"Bienvenido a {settings.PROJECT_NAME}"}
