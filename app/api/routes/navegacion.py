import logging
from typing import Any, List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api import deps
from app.schemas.navegacion import RutaAcceso, PestanaAccesible, PermisosNodo
from app.services.navegacion import navegacion_service
from app.services.control_acceso import ContextoActor

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/primera-ruta",
            response_model=RutaAcceso,
            summary="Primera ruta accesible de un módulo")
def read_primera_ruta(
    db: Session = Depends(deps.get_db),
    ruta: str = Query(..., description="Ruta del módulo (ej: /seguridad-acceso)"),
    actor: ContextoActor = Depends(deps.get_contexto_actor),
) -> Any:
    """
    Para un módulo padre, la primera pestaña accesible de su primer hijo
    asignado; para un módulo con pestañas, su primera pestaña asignada.
    """
    destino = navegacion_service.primera_ruta(db, ruta=ruta, rol_id=actor.rol_id)
    logger.debug(f"Usuario {actor.usuario_id}: '{ruta}' resuelve a '{destino}'.")
    return {"ruta": destino}


@router.get("/modulos/{modulo_id}/pestanas",
            response_model=List[PestanaAccesible],
            summary="Pestañas accesibles de un módulo")
def read_pestanas_accesibles(
    modulo_id: int,
    db: Session = Depends(deps.get_db),
    actor: ContextoActor = Depends(deps.get_contexto_actor),
) -> Any:
    return navegacion_service.pestanas_accesibles(db, modulo_id=modulo_id, rol_id=actor.rol_id)


@router.get("/pestanas/{pestana_id}/permisos",
            response_model=PermisosNodo,
            summary="Permisos del usuario sobre una pestaña")
def read_permisos_pestana(
    pestana_id: int,
    db: Session = Depends(deps.get_db),
    actor: ContextoActor = Depends(deps.get_contexto_actor),
) -> Any:
    return navegacion_service.permisos_pestana(db, pestana_id=pestana_id, rol_id=actor.rol_id)
