import logging
import traceback

from fastapi import FastAPI, Request, status, HTTPException
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError, IntegrityError, NoResultFound
from psycopg import errors as psycopg_errors

PG_UniqueViolation = psycopg_errors.UniqueViolation
PG_ForeignKeyViolation = psycopg_errors.ForeignKeyViolation
PG_CheckViolation = psycopg_errors.CheckViolation
PG_NotNullViolation = psycopg_errors.NotNullViolation
PGCODE_UNIQUE_VIOLATION = PG_UniqueViolation.sqlstate
PGCODE_FOREIGN_KEY_VIOLATION = PG_ForeignKeyViolation.sqlstate
PGCODE_CHECK_VIOLATION = PG_CheckViolation.sqlstate
PGCODE_NOT_NULL_VIOLATION = PG_NotNullViolation.sqlstate

logger = logging.getLogger(__name__)

# Mensajes por nombre de restricción (ver convención de nombres en app/db/base.py)
MENSAJES_UNICIDAD = {
    "uq_roles_nombre": "Ya existe un rol con ese nombre.",
    "uq_roles_abreviatura": "Ya existe un rol con esa abreviatura.",
    "uq_modulos_nombre": "Ya existe un módulo con ese nombre.",
    "uq_modulos_ruta": "Ya existe un módulo con esa ruta.",
    "uq_pestanas_modulo_id_ruta": "Ya existe una pestaña con esa ruta en el módulo.",
    "uq_pestanas_modulo_id_nombre": "Ya existe una pestaña con ese nombre en el módulo.",
    "pk_modulo_rol": "El módulo ya fue asignado al rol por otra operación concurrente.",
    "pk_pestana_rol": "La pestaña ya fue asignada al rol por otra operación concurrente.",
}

async def validation_exception_handler(request: Request, exc: Exception):
    """
    Manejador para errores de validación de Pydantic en las solicitudes.
    """
    if not isinstance(exc, RequestValidationError):
        return await generic_exception_handler(request, exc)

    error_details = []
    for error in exc.errors():
        field_loc = error.get("loc", ["body"])
        if field_loc and field_loc[0] == 'body' and len(field_loc) > 1:
            field = " -> ".join(map(str, field_loc[1:]))
        else:
            field = " -> ".join(map(str, field_loc)) or "body"
        message = error.get("msg", "Error de validación")
        error_details.append({"field": field, "message": message})
    logger.warning(f"Error de Validación en Request: {request.method} {request.url} - Errores: {error_details}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": "Error de validación en los datos de entrada.", "errors": error_details},
    )

async def http_exception_handler(request: Request, exc: Exception):
    """
    Manejador para excepciones HTTP explícitas lanzadas en la aplicación.
    """
    if not isinstance(exc, HTTPException):
        return await generic_exception_handler(request, exc)

    log_message = f"HTTPException - Status: {exc.status_code}, Detail: {exc.detail}, Request: {request.method} {request.url}"
    if exc.status_code >= 500:
        logger.error(log_message, exc_info=False)
    elif exc.status_code >= 400:
        logger.warning(log_message)
    else:
        logger.info(log_message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=getattr(exc, "headers", None),
    )

async def database_exception_handler(request: Request, exc: Exception):
    """
    Manejador para errores relacionados con la base de datos (SQLAlchemy y psycopg).
    """
    if not isinstance(exc, SQLAlchemyError):
        return await generic_exception_handler(request, exc)

    original_exc = getattr(exc, 'orig', None)
    pgcode = getattr(original_exc, 'sqlstate', None)
    constraint_name = None
    diag_obj = getattr(original_exc, 'diag', None)
    if diag_obj is not None:
        constraint_name = getattr(diag_obj, 'constraint_name', None)
    error_message = str(original_exc if original_exc else exc).lower()

    logger.error(
        f"Database Error Handler - Type: {type(original_exc).__name__ if original_exc else type(exc).__name__}, "
        f"PGCode: {pgcode}, Constraint: '{constraint_name}', Request: {request.method} {request.url}",
        exc_info=True
    )

    if pgcode == PGCODE_UNIQUE_VIOLATION or (isinstance(exc, IntegrityError) and "unique" in error_message):
        user_message = MENSAJES_UNICIDAD.get(
            constraint_name or "",
            f"Conflicto: Ya existe un registro con datos que deben ser únicos (restricción: {constraint_name or 'desconocida'})."
        )
        status_code = status.HTTP_409_CONFLICT
    elif pgcode == PGCODE_FOREIGN_KEY_VIOLATION or (isinstance(exc, IntegrityError) and "foreign key" in error_message):
        user_message = f"Error de referencia: El registro vinculado no existe (restricción: {constraint_name or 'desconocida'})."
        status_code = status.HTTP_404_NOT_FOUND
    elif pgcode == PGCODE_CHECK_VIOLATION or (isinstance(exc, IntegrityError) and "check constraint" in error_message):
        user_message = f"Los datos proporcionados violan una regla de negocio (restricción: {constraint_name or 'desconocida'})."
        status_code = status.HTTP_400_BAD_REQUEST
    elif pgcode == PGCODE_NOT_NULL_VIOLATION or (isinstance(exc, IntegrityError) and "not null" in error_message):
        column_name = getattr(diag_obj, 'column_name', None) or 'desconocido'
        user_message = f"Error de datos: El campo '{column_name}' no puede ser nulo."
        status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    elif isinstance(exc, IntegrityError):
        user_message = "Error de integridad en la base de datos. Verifique los datos."
        status_code = status.HTTP_409_CONFLICT
    elif isinstance(exc, NoResultFound):
        user_message = "El recurso solicitado no fue encontrado."
        status_code = status.HTTP_404_NOT_FOUND
    else:
        logger.error(f"DB Handler: Error DB no mapeado resultando en 500. Exception: {type(exc).__name__} - {exc}")
        user_message = "Ocurrió un error interno del servidor al procesar la solicitud de base de datos."
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    logger.info(f"DB Handler: Mapeando error DB a -> Status={status_code}, Detail='{user_message}'")
    return JSONResponse(status_code=status_code, content={"detail": user_message})


async def generic_exception_handler(request: Request, exc: Exception):
    """
    Manejador genérico para cualquier excepción no capturada por otros manejadores.
    """
    logger.critical(
        f"Unhandled Python Exception: {type(exc).__name__} - {exc}, Request: {request.method} {request.url}\n{traceback.format_exc()}"
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Ocurrió un error interno inesperado en la aplicación."},
    )

def register_error_handlers(app: FastAPI):
    """Registra todos los manejadores de excepciones personalizados en la app FastAPI."""
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, database_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
    logger.info("Manejadores de errores personalizados registrados.")
