from fastapi import APIRouter

# Importar los routers individuales de cada módulo
from . import control_acceso, modulos, pestanas, roles, auditoria, navegacion

# Crear el router principal de la API
api_router = APIRouter()

# Incluir cada router individual con su prefijo y etiquetas
api_router.include_router(control_acceso.router, prefix="/control-acceso", tags=["Control de Acceso"])
api_router.include_router(modulos.router, prefix="/gestion/modulos", tags=["Gestión de Módulos"])
api_router.include_router(pestanas.router, prefix="/gestion/pestanas", tags=["Gestión de Pestañas"])
api_router.include_router(roles.router, prefix="/gestion/roles", tags=["Roles"])
api_router.include_router(auditoria.router, prefix="/auditoria", tags=["Auditoría"])
api_router.include_router(navegacion.router, prefix="/navegacion", tags=["Navegación"])
