from typing import List
from pydantic import BaseModel, Field, field_validator

from .validaciones import validar_permisos_asignacion

class AsignarModulo(BaseModel):
    rol_id: int = Field(..., description="Rol que recibe el acceso")
    modulo_id: int = Field(..., description="Módulo a asignar")
    permisos: List[str] = Field(default_factory=list, description="Permisos otorgados sobre el módulo")

    @field_validator("permisos", mode="before")
    @classmethod
    def check_permisos(cls, v):
        return validar_permisos_asignacion(v)

class DesasignarModulo(BaseModel):
    rol_id: int
    modulo_id: int

class AsignarPestana(BaseModel):
    rol_id: int = Field(..., description="Rol que recibe el acceso")
    pestana_id: int = Field(..., description="Pestaña a asignar")
    permisos: List[str] = Field(default_factory=list, description="Permisos otorgados sobre la pestaña")

    @field_validator("permisos", mode="before")
    @classmethod
    def check_permisos(cls, v):
        return validar_permisos_asignacion(v)

class DesasignarPestana(BaseModel):
    rol_id: int
    pestana_id: int
