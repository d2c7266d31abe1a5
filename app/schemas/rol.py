from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field, ConfigDict, field_validator

from .validaciones import PATRON_ABREVIATURA

# --- Schema Base ---
class RolBase(BaseModel):
    """Campos base que definen un rol."""
    nombre: str = Field(..., min_length=3, max_length=100, description="Nombre del rol (ej: Estándar)")
    abreviatura: str = Field(..., min_length=1, max_length=10, description="Abreviatura única del rol, solo letras (ej: E)")

    @field_validator("abreviatura")
    @classmethod
    def abreviatura_solo_letras(cls, v: str) -> str:
        if not PATRON_ABREVIATURA.match(v):
            raise ValueError("La abreviatura solo puede contener letras.")
        return v

# --- Schema para Creación ---
class RolCreate(RolBase):
    pass

# --- Schema para Actualización ---
class RolUpdate(BaseModel):
    """Schema para actualizar un rol. Todos los campos son opcionales."""
    nombre: Optional[str] = Field(None, min_length=3, max_length=100)
    abreviatura: Optional[str] = Field(None, min_length=1, max_length=10)

    @field_validator("abreviatura")
    @classmethod
    def abreviatura_solo_letras(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not PATRON_ABREVIATURA.match(v):
            raise ValueError("La abreviatura solo puede contener letras.")
        return v

# --- Schema Interno DB ---
class RolInDBBase(RolBase):
    id: int
    fecha_creacion: Optional[datetime] = None
    fecha_modificacion: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

# --- Schema para Respuestas API ---
class Rol(RolInDBBase):
    pass
