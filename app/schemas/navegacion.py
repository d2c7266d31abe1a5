from typing import List
from pydantic import BaseModel, Field

class RutaAcceso(BaseModel):
    ruta: str

class PestanaAccesible(BaseModel):
    id: int
    nombre: str
    ruta: str
    ruta_completa: str
    permisos: List[str] = Field(default_factory=list)

class PermisosNodo(BaseModel):
    nodo_id: int
    tipo: str
    permisos: List[str] = Field(default_factory=list)
