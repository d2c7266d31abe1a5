from .common import Msg

from .token import TokenPayload

from .rol import Rol, RolCreate, RolUpdate
from .modulo import Modulo, ModuloCreate, ModuloUpdate, ModuloListado, ModuloDisponible
from .pestana import Pestana, PestanaCreate, PestanaUpdate, PestanaListado
from .asignacion import AsignarModulo, DesasignarModulo, AsignarPestana, DesasignarPestana
from .arbol import NodoModulo, GrupoPestanas, PestanaAsignable
from .auditoria import Auditoria, CambioAuditoria
from .navegacion import RutaAcceso, PestanaAccesible, PermisosNodo
