import logging
from typing import Any, List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from app.api import deps
from app.core.config import settings
from app.core.permissions import PERM_CREAR, PERM_EDITAR, PERM_ELIMINAR
from app.schemas.rol import Rol, RolCreate, RolUpdate
from app.schemas.common import Msg
from app.services.rol import rol_service
from app.services.control_acceso import ContextoActor

logger = logging.getLogger(__name__)
router = APIRouter()

MODULO_ROLES = settings.MODULO_ROLES_ID

# ==============================================================================
# Endpoints para ROLES
# ==============================================================================

@router.post("/",
             response_model=Rol,
             status_code=status.HTTP_201_CREATED,
             dependencies=[Depends(deps.PermisoModuloChecker(MODULO_ROLES, PERM_CREAR))],
             summary="Crear un nuevo Rol",
             response_description="El rol creado, sin accesos asignados.")
def create_rol(
    *,
    db: Session = Depends(deps.get_db),
    rol_in: RolCreate,
    actor: ContextoActor = Depends(deps.get_contexto_actor),
) -> Any:
    """
    Crea un nuevo rol. Sus módulos y pestañas se asignan desde control de acceso.
    Requiere `crear` en el módulo de roles.
    """
    logger.info(f"Intento de creación de rol '{rol_in.nombre}' por usuario {actor.usuario_id}")
    try:
        rol = rol_service.create(db=db, obj_in=rol_in, usuario_id=actor.usuario_id)
        db.commit()
        db.refresh(rol)
        logger.info(f"Rol '{rol.nombre}' (ID: {rol.id}) creado exitosamente por usuario {actor.usuario_id}.")
        return rol
    except HTTPException as http_exc:
        db.rollback()
        logger.warning(f"Error HTTP al crear rol '{rol_in.nombre}': {http_exc.detail}")
        raise http_exc
    except IntegrityError as e:
        db.rollback()
        error_detail = str(getattr(e, 'orig', e))
        logger.error(f"Error de integridad al crear rol '{rol_in.nombre}': {error_detail}", exc_info=True)
        if "uq_roles_nombre" in error_detail or "uq_roles_abreviatura" in error_detail or "UNIQUE" in error_detail:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Conflicto: Ya existe un rol con el nombre o abreviatura indicados.")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error de base de datos al crear el rol.")
    except Exception as e:
        db.rollback()
        logger.error(f"Error inesperado creando rol '{rol_in.nombre}': {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error interno del servidor al crear el rol.")


@router.get("/",
            response_model=List[Rol],
            dependencies=[Depends(deps.PermisoModuloChecker(MODULO_ROLES))],
            summary="Listar Roles",
            response_description="Una lista de los roles vigentes.")
def read_roles(
    db: Session = Depends(deps.get_db),
    skip: int = 0,
    limit: int = 100,
) -> Any:
    """
    Obtiene los roles vigentes del sistema.
    Requiere acceso al módulo de roles.
    """
    return rol_service.get_multi(db, skip=skip, limit=limit)


@router.get("/{rol_id}",
            response_model=Rol,
            dependencies=[Depends(deps.PermisoModuloChecker(MODULO_ROLES))],
            summary="Obtener un Rol por ID")
def read_rol_by_id(
    rol_id: int,
    db: Session = Depends(deps.get_db),
) -> Any:
    return rol_service.get_or_404(db, id=rol_id)


@router.put("/{rol_id}",
            response_model=Rol,
            dependencies=[Depends(deps.PermisoModuloChecker(MODULO_ROLES, PERM_EDITAR))],
            summary="Actualizar un Rol",
            response_description="Información actualizada del rol.")
def update_rol(
    *,
    db: Session = Depends(deps.get_db),
    rol_id: int,
    rol_in: RolUpdate,
    actor: ContextoActor = Depends(deps.get_contexto_actor),
) -> Any:
    """
    Actualiza nombre y/o abreviatura de un rol.
    Requiere `editar` en el módulo de roles.
    """
    logger.info(f"Intento de actualización de rol ID {rol_id} por usuario {actor.usuario_id} con datos: {rol_in.model_dump(exclude_unset=True)}")
    rol_db = rol_service.get_or_404(db, id=rol_id)

    try:
        updated_rol = rol_service.update(db=db, db_obj=rol_db, obj_in=rol_in, usuario_id=actor.usuario_id)
        db.commit()
        db.refresh(updated_rol)
        logger.info(f"Rol '{updated_rol.nombre}' (ID: {rol_id}) actualizado exitosamente por usuario {actor.usuario_id}.")
        return updated_rol
    except HTTPException as http_exc:
        db.rollback()
        logger.warning(f"Error HTTP al actualizar rol ID {rol_id}: {http_exc.detail}")
        raise http_exc
    except IntegrityError as e:
        db.rollback()
        logger.error(f"Error de integridad al actualizar rol ID {rol_id}: {getattr(e, 'orig', e)}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Conflicto: Ya existe un rol con el nombre o abreviatura proporcionados.")
    except Exception as e:
        db.rollback()
        logger.error(f"Error inesperado actualizando rol ID {rol_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error interno del servidor al actualizar el rol.")


@router.delete("/{rol_id}",
               response_model=Msg,
               dependencies=[Depends(deps.PermisoModuloChecker(MODULO_ROLES, PERM_ELIMINAR))],
               status_code=status.HTTP_200_OK,
               summary="Eliminar un Rol",
               response_description="Mensaje de confirmación.")
def delete_rol(
    *,
    db: Session = Depends(deps.get_db),
    rol_id: int,
    actor: ContextoActor = Depends(deps.get_contexto_actor),
) -> Any:
    """
    Elimina lógicamente un rol. No se podrá eliminar si hay usuarios asignados.
    Un rol eliminado deja de otorgar permisos aunque conserve sus asignaciones.
    Requiere `eliminar` en el módulo de roles.
    """
    logger.warning(f"Intento de eliminación de rol ID: {rol_id} por usuario {actor.usuario_id}")
    try:
        rol = rol_service.remove(db=db, id=rol_id, usuario_id=actor.usuario_id)
        nombre = rol.nombre
        db.commit()
        logger.info(f"Rol '{nombre}' (ID: {rol_id}) eliminado exitosamente por usuario {actor.usuario_id}.")
    except HTTPException as http_exc:
        db.rollback()
        logger.warning(f"Error HTTP al eliminar rol ID {rol_id}: {http_exc.detail}")
        raise http_exc
    except Exception as e:
        db.rollback()
        logger.error(f"Error inesperado eliminando rol ID {rol_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error interno del servidor al eliminar el rol.")

    return {"message": f"Rol '{nombre}' eliminado correctamente."}
