import logging
from typing import Any, List, Optional
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session

from app.api import deps
from app.core.config import settings
from app.schemas.auditoria import Auditoria as AuditoriaSchema
from app.services.auditoria import auditoria_service
from app.models.usuario import Usuario as UsuarioModel

logger = logging.getLogger(__name__)

router = APIRouter()

@router.get("/",
            response_model=List[AuditoriaSchema],
            dependencies=[Depends(deps.PermisoModuloChecker(settings.MODULO_AUDITORIAS_ID))],
            summary="Consultar registros de auditoría",
            response_description="Una lista de registros de auditoría, filtrada opcionalmente.")
def read_auditorias(
    db: Session = Depends(deps.get_db),
    current_user: UsuarioModel = Depends(deps.get_current_active_user),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    tabla_afectada: Optional[str] = Query(None, description="Filtrar por tabla afectada (case-insensitive)"),
    accion: Optional[str] = Query(None, description="Filtrar por acción (INSERT, UPDATE, DELETE)"),
    usuario_id: Optional[int] = Query(None, description="Filtrar por ID de usuario de la aplicación"),
    id_registro_afectado: Optional[str] = Query(None, description="Filtrar por registro afectado (ej: '3-7' para asignaciones)"),
    fecha_inicio: Optional[datetime] = Query(None, description="Fecha/hora mínima del registro (formato ISO)"),
    fecha_fin: Optional[datetime] = Query(None, description="Fecha/hora máxima del registro (formato ISO)"),
) -> Any:
    """
    Obtiene los registros de auditoría, más recientes primero.
    Requiere acceso al módulo de auditorías.
    """
    logger.info(
        f"Usuario '{current_user.nombre_usuario}' consultando auditorías con filtros: "
        f"Tabla='{tabla_afectada}', Accion='{accion}', UsuarioID='{usuario_id}', "
        f"Registro='{id_registro_afectado}', Rango='{fecha_inicio}-{fecha_fin}', Skip={skip}, Limit={limit}"
    )

    if fecha_inicio and fecha_fin and fecha_fin <= fecha_inicio:
        logger.warning("Consulta de auditoría rechazada: fecha_fin debe ser posterior a fecha_inicio.")
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="La fecha de fin debe ser posterior a la fecha de inicio para el filtro.")

    registros = auditoria_service.get_multi(
        db,
        skip=skip,
        limit=limit,
        tabla_afectada=tabla_afectada,
        accion=accion,
        usuario_id=usuario_id,
        id_registro_afectado=id_registro_afectado,
        fecha_inicio=fecha_inicio,
        fecha_fin=fecha_fin,
    )
    logger.info(f"Consulta de auditoría devolvió {len(registros)} registro(s).")
    return registros
