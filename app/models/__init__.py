from .auditoria import Auditoria
from .modulo import Modulo
from .modulo_rol import ModuloRol
from .pestana import Pestana
from .pestana_rol import PestanaRol
from .rol import Rol
from .usuario import Usuario


__all__ = [
    "Auditoria",
    "Modulo",
    "ModuloRol",
    "Pestana",
    "PestanaRol",
    "Rol",
    "Usuario",
]
