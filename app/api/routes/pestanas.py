import logging
from typing import Any, List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from app.api import deps
from app.core.cache import CacheArbol, TipoArbol
from app.core.config import settings
from app.core.permissions import PERM_CREAR, PERM_EDITAR, PERM_ELIMINAR
from app.schemas.pestana import Pestana, PestanaCreate, PestanaUpdate, PestanaListado
from app.schemas.common import Msg
from app.services.arbol import arbol_service
from app.services.pestana import pestana_service
from app.services.control_acceso import ContextoActor

logger = logging.getLogger(__name__)
router = APIRouter()

PESTANA_GESTION = settings.PESTANA_GESTION_PESTANAS_ID


@router.get("/",
            response_model=List[PestanaListado],
            dependencies=[Depends(deps.PermisoPestanaChecker(PESTANA_GESTION))],
            summary="Listar pestañas con su ruta completa")
def read_pestanas(
    db: Session = Depends(deps.get_db),
    cache: CacheArbol = Depends(deps.get_cache_arbol),
) -> Any:
    return arbol_service.listado_pestanas(db, cache)


@router.get("/{pestana_id}",
            response_model=Pestana,
            dependencies=[Depends(deps.PermisoPestanaChecker(PESTANA_GESTION))],
            summary="Obtener una pestaña por ID")
def read_pestana(pestana_id: int, db: Session = Depends(deps.get_db)) -> Any:
    return pestana_service.get_or_404(db, id=pestana_id)


@router.post("/",
             response_model=Pestana,
             status_code=status.HTTP_201_CREATED,
             dependencies=[Depends(deps.PermisoPestanaChecker(PESTANA_GESTION, PERM_CREAR))],
             summary="Crear una pestaña")
def create_pestana(
    *,
    db: Session = Depends(deps.get_db),
    pestana_in: PestanaCreate,
    actor: ContextoActor = Depends(deps.get_contexto_actor),
    cache: CacheArbol = Depends(deps.get_cache_arbol),
) -> Any:
    logger.info(f"Intento de creación de pestaña '{pestana_in.nombre}' en módulo {pestana_in.modulo_id} por usuario {actor.usuario_id}")
    try:
        pestana = pestana_service.create(db=db, obj_in=pestana_in, usuario_id=actor.usuario_id)
        db.commit()
        db.refresh(pestana)
    except HTTPException:
        db.rollback()
        raise
    except IntegrityError as e:
        db.rollback()
        logger.error(f"Error de integridad al crear pestaña '{pestana_in.nombre}': {getattr(e, 'orig', e)}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Conflicto: el módulo ya tiene una pestaña con ese nombre o ruta.")
    except Exception as e:
        db.rollback()
        logger.error(f"Error inesperado creando pestaña '{pestana_in.nombre}': {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error interno del servidor al crear la pestaña.")

    # El listado de módulos cuenta pestañas
    cache.invalidar_todo()
    return pestana


@router.put("/{pestana_id}",
            response_model=Pestana,
            dependencies=[Depends(deps.PermisoPestanaChecker(PESTANA_GESTION, PERM_EDITAR))],
            summary="Actualizar una pestaña")
def update_pestana(
    *,
    db: Session = Depends(deps.get_db),
    pestana_id: int,
    pestana_in: PestanaUpdate,
    actor: ContextoActor = Depends(deps.get_contexto_actor),
    cache: CacheArbol = Depends(deps.get_cache_arbol),
) -> Any:
    pestana_db = pestana_service.get_or_404(db, id=pestana_id)
    modulo_previo = pestana_db.modulo_id
    try:
        pestana = pestana_service.update(db=db, db_obj=pestana_db, obj_in=pestana_in, usuario_id=actor.usuario_id)
        db.commit()
        db.refresh(pestana)
    except HTTPException:
        db.rollback()
        raise
    except IntegrityError as e:
        db.rollback()
        logger.error(f"Error de integridad al actualizar pestaña ID {pestana_id}: {getattr(e, 'orig', e)}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Conflicto: el módulo ya tiene una pestaña con ese nombre o ruta.")
    except Exception as e:
        db.rollback()
        logger.error(f"Error inesperado actualizando pestaña ID {pestana_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error interno del servidor al actualizar la pestaña.")

    if pestana.modulo_id != modulo_previo:
        cache.invalidar_todo()
    else:
        cache.invalidar(TipoArbol.PESTANAS)
    return pestana


@router.delete("/{pestana_id}",
               response_model=Msg,
               dependencies=[Depends(deps.PermisoPestanaChecker(PESTANA_GESTION, PERM_ELIMINAR))],
               summary="Eliminar (lógicamente) una pestaña")
def delete_pestana(
    *,
    db: Session = Depends(deps.get_db),
    pestana_id: int,
    actor: ContextoActor = Depends(deps.get_contexto_actor),
    cache: CacheArbol = Depends(deps.get_cache_arbol),
) -> Any:
    logger.warning(f"Intento de eliminación de pestaña ID {pestana_id} por usuario {actor.usuario_id}")
    try:
        pestana = pestana_service.remove(db=db, id=pestana_id, usuario_id=actor.usuario_id)
        nombre = pestana.nombre
        db.commit()
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error inesperado eliminando pestaña ID {pestana_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error interno del servidor al eliminar la pestaña.")

    cache.invalidar_todo()
    return {"message": f"Pestaña '{nombre}' eliminada correctamente."}
