from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, Field, ConfigDict, field_validator

from .validaciones import validar_nombre, validar_ruta, validar_permisos_extra

class PestanaBase(BaseModel):
    """Campos base que definen una pestaña (hoja del árbol)."""
    modulo_id: int = Field(..., description="ID del módulo (no padre) al que pertenece")
    nombre: str = Field(..., max_length=50, description="Nombre visible de la pestaña")
    ruta: str = Field(..., max_length=255, description="Fragmento de ruta (ej: /listado)")
    permisos_extra: Optional[List[str]] = Field(None, description="Permisos adicionales propios de la pestaña")

    @field_validator("nombre")
    @classmethod
    def check_nombre(cls, v):
        return validar_nombre(v)

    @field_validator("ruta")
    @classmethod
    def check_ruta(cls, v):
        return validar_ruta(v)

    @field_validator("permisos_extra")
    @classmethod
    def check_permisos_extra(cls, v):
        return validar_permisos_extra(v)

class PestanaCreate(PestanaBase):
    pass

class PestanaUpdate(BaseModel):
    modulo_id: Optional[int] = None
    nombre: Optional[str] = Field(None, max_length=50)
    ruta: Optional[str] = Field(None, max_length=255)
    permisos_extra: Optional[List[str]] = None

    @field_validator("nombre")
    @classmethod
    def check_nombre(cls, v):
        return validar_nombre(v)

    @field_validator("ruta")
    @classmethod
    def check_ruta(cls, v):
        return validar_ruta(v)

    @field_validator("permisos_extra")
    @classmethod
    def check_permisos_extra(cls, v):
        return validar_permisos_extra(v)

class Pestana(PestanaBase):
    id: int
    fecha_creacion: Optional[datetime] = None
    fecha_modificacion: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PestanaListado(BaseModel):
    """Fila del listado de pestañas con ruta completa padre + módulo + pestaña."""
    id: int
    nombre: str
    ruta: str
    ruta_completa: str
    modulo_id: int
    modulo_nombre: Optional[str] = None
    modulo_ruta_completa: Optional[str] = None
    jerarquia: str
    modulo_eliminado: bool = False
    padre_eliminado: bool = False
    permisos_extra: List[str] = Field(default_factory=list)
