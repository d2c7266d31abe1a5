"""
Módulo de Servicios

Este paquete contiene la lógica de negocio y las interacciones
con la base de datos: el árbol de navegación, las asignaciones de
módulos y pestañas a roles, la resolución de permisos y la auditoría.

Cada módulo define un servicio (usualmente una instancia de una clase)
que encapsula las operaciones CRUD y específicas para un modelo ORM.
"""

from .arbol import arbol_service
from .asignacion import asignacion_store
from .permiso import permiso_resolver
from .auditoria import auditoria_service
from .control_acceso import ControlAccesoService, ContextoActor
from .rol import rol_service
from .modulo import modulo_service
from .pestana import pestana_service
from .navegacion import navegacion_service

__all__ = [
    "arbol_service",
    "asignacion_store",
    "permiso_resolver",
    "auditoria_service",
    "ControlAccesoService",
    "ContextoActor",
    "rol_service",
    "modulo_service",
    "pestana_service",
    "navegacion_service",
]
