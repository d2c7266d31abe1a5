import logging
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from app.api import deps
from app.core.cache import CacheArbol
from app.core.config import settings
from app.core.permissions import PERM_CREAR, PERM_EDITAR, PERM_ELIMINAR
from app.schemas.modulo import Modulo, ModuloCreate, ModuloUpdate, ModuloListado, ModuloDisponible
from app.schemas.common import Msg
from app.services.arbol import arbol_service
from app.services.modulo import modulo_service
from app.services.control_acceso import ContextoActor

logger = logging.getLogger(__name__)
router = APIRouter()

PESTANA_GESTION = settings.PESTANA_GESTION_MODULOS_ID


@router.get("/",
            response_model=List[ModuloListado],
            dependencies=[Depends(deps.PermisoPestanaChecker(PESTANA_GESTION))],
            summary="Listar módulos con su ruta completa")
def read_modulos(
    db: Session = Depends(deps.get_db),
    cache: CacheArbol = Depends(deps.get_cache_arbol),
) -> Any:
    """Listado plano de módulos vivos, más recientes primero. Se sirve desde la caché del árbol."""
    return arbol_service.listado_modulos(db, cache)


@router.get("/disponibles",
            response_model=List[ModuloDisponible],
            dependencies=[Depends(deps.PermisoPestanaChecker(settings.PESTANA_GESTION_PESTANAS_ID))],
            summary="Módulos que pueden alojar pestañas")
def read_modulos_disponibles(db: Session = Depends(deps.get_db)) -> Any:
    return arbol_service.get_available_tab_hosts(db)


@router.get("/arbol",
            response_model=List[Dict[str, Any]],
            dependencies=[Depends(deps.PermisoPestanaChecker(PESTANA_GESTION))],
            summary="Árbol de módulos con hijos y pestañas")
def read_arbol(db: Session = Depends(deps.get_db)) -> Any:
    def nodo(entrada: Dict) -> Dict[str, Any]:
        modulo = entrada["modulo"]
        return {
            "id": modulo.id,
            "nombre": modulo.nombre,
            "icono": modulo.icono,
            "ruta": modulo.ruta,
            "es_padre": modulo.es_padre,
            "pestanas": [{"id": p.id, "nombre": p.nombre, "ruta": p.ruta} for p in entrada["pestanas"]],
            "hijos": [nodo(h) for h in entrada["hijos"]],
        }
    return [nodo(e) for e in arbol_service.get_module_tree(db)]


@router.get("/{modulo_id}",
            response_model=Modulo,
            dependencies=[Depends(deps.PermisoPestanaChecker(PESTANA_GESTION))],
            summary="Obtener un módulo por ID")
def read_modulo(modulo_id: int, db: Session = Depends(deps.get_db)) -> Any:
    return modulo_service.get_or_404(db, id=modulo_id)


@router.post("/",
             response_model=Modulo,
             status_code=status.HTTP_201_CREATED,
             dependencies=[Depends(deps.PermisoPestanaChecker(PESTANA_GESTION, PERM_CREAR))],
             summary="Crear un módulo")
def create_modulo(
    *,
    db: Session = Depends(deps.get_db),
    modulo_in: ModuloCreate,
    actor: ContextoActor = Depends(deps.get_contexto_actor),
    cache: CacheArbol = Depends(deps.get_cache_arbol),
) -> Any:
    """Requiere `crear` en la pestaña de gestión de módulos."""
    logger.info(f"Intento de creación de módulo '{modulo_in.nombre}' por usuario {actor.usuario_id}")
    try:
        modulo = modulo_service.create(db=db, obj_in=modulo_in, usuario_id=actor.usuario_id)
        db.commit()
        db.refresh(modulo)
    except HTTPException:
        db.rollback()
        raise
    except IntegrityError as e:
        db.rollback()
        logger.error(f"Error de integridad al crear módulo '{modulo_in.nombre}': {getattr(e, 'orig', e)}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Conflicto: ya existe un módulo con ese nombre o ruta.")
    except Exception as e:
        db.rollback()
        logger.error(f"Error inesperado creando módulo '{modulo_in.nombre}': {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error interno del servidor al crear el módulo.")

    cache.invalidar_todo()
    logger.info(f"Módulo '{modulo.nombre}' (ID: {modulo.id}) creado por usuario {actor.usuario_id}.")
    return modulo


@router.put("/{modulo_id}",
            response_model=Modulo,
            dependencies=[Depends(deps.PermisoPestanaChecker(PESTANA_GESTION, PERM_EDITAR))],
            summary="Actualizar un módulo")
def update_modulo(
    *,
    db: Session = Depends(deps.get_db),
    modulo_id: int,
    modulo_in: ModuloUpdate,
    actor: ContextoActor = Depends(deps.get_contexto_actor),
    cache: CacheArbol = Depends(deps.get_cache_arbol),
) -> Any:
    logger.info(f"Intento de actualización de módulo ID {modulo_id} por usuario {actor.usuario_id}: {modulo_in.model_dump(exclude_unset=True)}")
    modulo_db = modulo_service.get_or_404(db, id=modulo_id)
    try:
        modulo = modulo_service.update(db=db, db_obj=modulo_db, obj_in=modulo_in, usuario_id=actor.usuario_id)
        db.commit()
        db.refresh(modulo)
    except HTTPException:
        db.rollback()
        raise
    except IntegrityError as e:
        db.rollback()
        logger.error(f"Error de integridad al actualizar módulo ID {modulo_id}: {getattr(e, 'orig', e)}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Conflicto: ya existe un módulo con ese nombre o ruta.")
    except Exception as e:
        db.rollback()
        logger.error(f"Error inesperado actualizando módulo ID {modulo_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error interno del servidor al actualizar el módulo.")

    cache.invalidar_todo()
    return modulo


@router.delete("/{modulo_id}",
               response_model=Msg,
               dependencies=[Depends(deps.PermisoPestanaChecker(PESTANA_GESTION, PERM_ELIMINAR))],
               summary="Eliminar (lógicamente) un módulo")
def delete_modulo(
    *,
    db: Session = Depends(deps.get_db),
    modulo_id: int,
    actor: ContextoActor = Depends(deps.get_contexto_actor),
    cache: CacheArbol = Depends(deps.get_cache_arbol),
) -> Any:
    logger.warning(f"Intento de eliminación de módulo ID {modulo_id} por usuario {actor.usuario_id}")
    try:
        modulo = modulo_service.remove(db=db, id=modulo_id, usuario_id=actor.usuario_id)
        nombre = modulo.nombre
        db.commit()
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error inesperado eliminando módulo ID {modulo_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error interno del servidor al eliminar el módulo.")

    cache.invalidar_todo()
    return {"message": f"Módulo '{nombre}' eliminado correctamente."}
