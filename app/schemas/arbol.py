from typing import List, Optional
from pydantic import BaseModel, Field

# ===============================================================
# Árbol de módulos anotado para un rol
# ===============================================================
class NodoModulo(BaseModel):
    id: int
    nombre: str
    icono: str
    ruta: str
    es_padre: bool
    permisos_extra: List[str] = Field(default_factory=list)
    permisos_disponibles: List[str] = Field(default_factory=list)
    tiene_pestanas: bool = False
    cant_pestanas: int = 0
    asignado: bool = False
    permisos_asignados: List[str] = Field(default_factory=list)
    hijos: List["NodoModulo"] = Field(default_factory=list)

# ===============================================================
# Árbol de pestañas anotado para un rol
# ===============================================================
class PestanaAsignable(BaseModel):
    id: int
    nombre: str
    ruta: str
    permisos_extra: List[str] = Field(default_factory=list)
    permisos_disponibles: List[str] = Field(default_factory=list)
    asignado: bool = False
    permisos_asignados: List[str] = Field(default_factory=list)

class GrupoPestanas(BaseModel):
    """
    Un padre agrupa a sus hijos (en `hijos`); un módulo con pestañas las
    expone en `pestanas`. Los módulos directos sin padre aparecen en la raíz.
    """
    modulo_id: int
    modulo_nombre: str
    modulo_icono: str
    es_padre: bool = False
    modulo_padre_id: Optional[int] = None
    pestanas: List[PestanaAsignable] = Field(default_factory=list)
    hijos: List["GrupoPestanas"] = Field(default_factory=list)
