from typing import Optional, List, Any
from datetime import datetime

from pydantic import BaseModel, Field, ConfigDict

class CambioAuditoria(BaseModel):
    columna: str
    antes: Any = None
    despues: Any = None

class AuditoriaBase(BaseModel):
    tabla_afectada: str = Field(..., description="Tabla afectada por la operación")
    id_registro_afectado: str = Field(..., description="Clave del registro; 'rolId-nodoId' para asignaciones")
    accion: str = Field(..., description="INSERT, UPDATE o DELETE")
    usuario_id: Optional[int] = Field(None, description="Usuario de la aplicación que realizó la acción")
    cambios: Optional[List[CambioAuditoria]] = Field(None, description="Solo para UPDATE: columnas que cambiaron")

class Auditoria(AuditoriaBase):
    id: int
    fecha_creacion: datetime

    model_config = ConfigDict(from_attributes=True)
