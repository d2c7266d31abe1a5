import logging
from typing import Any, List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api import deps
from app.core.config import settings
from app.schemas.asignacion import AsignarModulo, DesasignarModulo, AsignarPestana, DesasignarPestana
from app.schemas.arbol import NodoModulo, GrupoPestanas
from app.schemas.common import Msg
from app.services.control_acceso import ControlAccesoService, ContextoActor

logger = logging.getLogger(__name__)
router = APIRouter()

# ==============================================================================
# Asignación de módulos y pestañas a roles
# ==============================================================================
# La autorización (crear / editar / eliminar sobre las pestañas de gestión de
# accesos) y la transacción las resuelve ControlAccesoService.

@router.post("/asignar-modulo",
             response_model=Msg,
             summary="Asignar un módulo a un rol",
             response_description="Mensaje de confirmación.")
def asignar_modulo(
    *,
    db: Session = Depends(deps.get_db),
    asignacion_in: AsignarModulo,
    actor: ContextoActor = Depends(deps.get_contexto_actor),
    service: ControlAccesoService = Depends(deps.get_control_acceso_service),
) -> Any:
    """
    Asigna (o actualiza los permisos de) un módulo a un rol. Si el módulo es
    hijo y el rol no tiene asignado al padre, el padre se asigna sin permisos.
    Requiere `crear` (asignación nueva) o `editar` (existente) en la pestaña
    de gestión de accesos a módulos.
    """
    logger.info(
        f"Usuario {actor.usuario_id} asignando módulo {asignacion_in.modulo_id} al rol {asignacion_in.rol_id} "
        f"con permisos {asignacion_in.permisos}"
    )
    mensaje = service.asignar_modulo(
        db, actor, rol_id=asignacion_in.rol_id, modulo_id=asignacion_in.modulo_id, permisos=asignacion_in.permisos
    )
    return {"message": mensaje}


@router.post("/desasignar-modulo",
             response_model=Msg,
             summary="Quitar un módulo a un rol",
             response_description="Mensaje de confirmación.")
def desasignar_modulo(
    *,
    db: Session = Depends(deps.get_db),
    asignacion_in: DesasignarModulo,
    actor: ContextoActor = Depends(deps.get_contexto_actor),
    service: ControlAccesoService = Depends(deps.get_control_acceso_service),
) -> Any:
    """
    Quita un módulo a un rol. Si era el último hijo asignado de su padre, el
    padre también se desasigna. Requiere `eliminar`.
    """
    logger.info(f"Usuario {actor.usuario_id} desasignando módulo {asignacion_in.modulo_id} del rol {asignacion_in.rol_id}")
    mensaje = service.desasignar_modulo(db, actor, rol_id=asignacion_in.rol_id, modulo_id=asignacion_in.modulo_id)
    return {"message": mensaje}


@router.post("/asignar-pestana",
             response_model=Msg,
             summary="Asignar una pestaña a un rol",
             response_description="Mensaje de confirmación.")
def asignar_pestana(
    *,
    db: Session = Depends(deps.get_db),
    asignacion_in: AsignarPestana,
    actor: ContextoActor = Depends(deps.get_contexto_actor),
    service: ControlAccesoService = Depends(deps.get_control_acceso_service),
) -> Any:
    logger.info(
        f"Usuario {actor.usuario_id} asignando pestaña {asignacion_in.pestana_id} al rol {asignacion_in.rol_id} "
        f"con permisos {asignacion_in.permisos}"
    )
    mensaje = service.asignar_pestana(
        db, actor, rol_id=asignacion_in.rol_id, pestana_id=asignacion_in.pestana_id, permisos=asignacion_in.permisos
    )
    return {"message": mensaje}


@router.post("/desasignar-pestana",
             response_model=Msg,
             summary="Quitar una pestaña a un rol",
             response_description="Mensaje de confirmación.")
def desasignar_pestana(
    *,
    db: Session = Depends(deps.get_db),
    asignacion_in: DesasignarPestana,
    actor: ContextoActor = Depends(deps.get_contexto_actor),
    service: ControlAccesoService = Depends(deps.get_control_acceso_service),
) -> Any:
    logger.info(f"Usuario {actor.usuario_id} desasignando pestaña {asignacion_in.pestana_id} del rol {asignacion_in.rol_id}")
    mensaje = service.desasignar_pestana(db, actor, rol_id=asignacion_in.rol_id, pestana_id=asignacion_in.pestana_id)
    return {"message": mensaje}

# ==============================================================================
# Árboles anotados para la pantalla de asignación
# ==============================================================================

@router.get("/modulos-arbol",
            response_model=List[NodoModulo],
            dependencies=[Depends(deps.PermisoPestanaChecker(settings.PESTANA_ACCESOS_MODULOS_ID))],
            summary="Árbol de módulos con las asignaciones de un rol")
def read_modulos_arbol(
    db: Session = Depends(deps.get_db),
    rol_id: Optional[int] = Query(None, description="Rol cuyas asignaciones se marcan en el árbol"),
    service: ControlAccesoService = Depends(deps.get_control_acceso_service),
) -> Any:
    return service.obtener_modulos_jerarquicos(db, rol_id=rol_id)


@router.get("/pestanas-arbol",
            response_model=List[GrupoPestanas],
            dependencies=[Depends(deps.PermisoPestanaChecker(settings.PESTANA_ACCESOS_PESTANAS_ID))],
            summary="Pestañas de los módulos asignados a un rol")
def read_pestanas_arbol(
    db: Session = Depends(deps.get_db),
    rol_id: Optional[int] = Query(None, description="Rol cuyos módulos asignados se listan"),
    service: ControlAccesoService = Depends(deps.get_control_acceso_service),
) -> Any:
    """Vacío si no se indica rol o si el rol no tiene módulos asignados."""
    return service.obtener_pestanas_jerarquicas(db, rol_id=rol_id)
