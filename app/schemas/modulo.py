from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel, Field, ConfigDict, field_validator, model_validator

from .validaciones import validar_nombre, validar_icono, validar_ruta, validar_permisos_extra

# ===============================================================
# Schema Base
# ===============================================================
class ModuloBase(BaseModel):
    """Campos base que definen un módulo del árbol de navegación."""
    nombre: str = Field(..., max_length=50, description="Nombre visible del módulo (letras y espacios)")
    icono: str = Field(..., max_length=50, description="Nombre del ícono (ej: user-cog)")
    ruta: str = Field(..., max_length=255, description="Fragmento de ruta (ej: /usuarios)")
    es_padre: bool = Field(False, description="Si es un módulo contenedor de otros módulos")
    modulo_padre_id: Optional[int] = Field(None, description="ID del módulo padre (solo para módulos hijos)")
    permisos_extra: Optional[List[str]] = Field(None, description="Permisos adicionales propios del módulo")

    @field_validator("nombre")
    @classmethod
    def check_nombre(cls, v):
        return validar_nombre(v)

    @field_validator("icono")
    @classmethod
    def check_icono(cls, v):
        return validar_icono(v)

    @field_validator("ruta")
    @classmethod
    def check_ruta(cls, v):
        return validar_ruta(v)

    @field_validator("permisos_extra")
    @classmethod
    def check_permisos_extra(cls, v):
        return validar_permisos_extra(v)

# ===============================================================
# Schema para Creación
# ===============================================================
class ModuloCreate(ModuloBase):

    @model_validator(mode='after')
    def check_padre(self) -> 'ModuloCreate':
        if self.es_padre:
            if self.modulo_padre_id is not None:
                raise ValueError("Un módulo padre no puede tener módulo padre.")
            if self.permisos_extra:
                raise ValueError("Un módulo padre no puede tener permisos extra.")
        return self

# ===============================================================
# Schema para Actualización
# ===============================================================
class ModuloUpdate(BaseModel):
    """
    Todos los campos son opcionales. Las reglas entre campos (padre sin padre,
    sin permisos extra) se validan en el servicio contra el estado combinado.
    """
    nombre: Optional[str] = Field(None, max_length=50)
    icono: Optional[str] = Field(None, max_length=50)
    ruta: Optional[str] = Field(None, max_length=255)
    es_padre: Optional[bool] = None
    modulo_padre_id: Optional[int] = None
    permisos_extra: Optional[List[str]] = None

    @field_validator("nombre")
    @classmethod
    def check_nombre(cls, v):
        return validar_nombre(v)

    @field_validator("icono")
    @classmethod
    def check_icono(cls, v):
        return validar_icono(v)

    @field_validator("ruta")
    @classmethod
    def check_ruta(cls, v):
        return validar_ruta(v)

    @field_validator("permisos_extra")
    @classmethod
    def check_permisos_extra(cls, v):
        return validar_permisos_extra(v)

# ===============================================================
# Schemas para Respuesta API
# ===============================================================
class Modulo(ModuloBase):
    id: int
    fecha_creacion: Optional[datetime] = None
    fecha_modificacion: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ModuloListado(BaseModel):
    """Fila del listado de módulos con la ruta completa ya resuelta."""
    id: int
    nombre: str
    icono: str
    ruta: str
    ruta_completa: str
    es_padre: bool
    modulo_padre_id: Optional[int] = None
    modulo_padre_nombre: Optional[str] = None
    modulo_padre_ruta: Optional[str] = None
    padre_eliminado: bool = False
    permisos_extra: List[str] = Field(default_factory=list)
    cant_hijos: int = 0
    cant_pestanas: int = 0


class ModuloDisponible(BaseModel):
    """Módulo no padre que puede alojar pestañas."""
    id: int
    nombre: str
    ruta: str
    ruta_completa: str
    padre_eliminado: bool = False
