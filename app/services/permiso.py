import logging
from typing import FrozenSet, Optional

from sqlalchemy.orm import Session
from sqlalchemy import select

from app.models.rol import Rol
from app.models.modulo_rol import ModuloRol
from app.models.pestana_rol import PestanaRol
from .asignacion import TipoNodo

logger = logging.getLogger(__name__)

class PermisoResolver:
    """
    Resuelve los permisos efectivos de un rol sobre un nodo del árbol.

    Es la compuerta que usa el resto del sistema ("¿puede este rol crear
    pestañas?" equivale a `"crear" in permisos(rol, pestana_gestion)`).
    Consulta puntual, sin efectos secundarios y sin caché.
    """

    def permisos(
        self, db: Session, rol_id: Optional[int], nodo_id: int, tipo: TipoNodo = TipoNodo.PESTANA
    ) -> FrozenSet[str]:
        if rol_id is None:
            return frozenset()
        if tipo == TipoNodo.MODULO:
            statement = (
                select(ModuloRol.permisos)
                .join(Rol, Rol.id == ModuloRol.rol_id)
                .where(ModuloRol.rol_id == rol_id, ModuloRol.modulo_id == nodo_id, Rol.deleted_at.is_(None))
            )
        else:
            statement = (
                select(PestanaRol.permisos)
                .join(Rol, Rol.id == PestanaRol.rol_id)
                .where(PestanaRol.rol_id == rol_id, PestanaRol.pestana_id == nodo_id, Rol.deleted_at.is_(None))
            )
        permisos = db.execute(statement).scalar_one_or_none()
        return frozenset(permisos or ())

    def tiene_permiso(
        self, db: Session, rol_id: Optional[int], nodo_id: int, permiso: str, tipo: TipoNodo = TipoNodo.PESTANA
    ) -> bool:
        return permiso in self.permisos(db, rol_id, nodo_id, tipo)

    def tiene_acceso(self, db: Session, rol_id: Optional[int], nodo_id: int, tipo: TipoNodo) -> bool:
        """True si existe la arista, aunque no otorgue permisos operativos."""
        if rol_id is None:
            return False
        modelo = ModuloRol if tipo == TipoNodo.MODULO else PestanaRol
        columna_nodo = ModuloRol.modulo_id if tipo == TipoNodo.MODULO else PestanaRol.pestana_id
        statement = (
            select(modelo.rol_id)
            .join(Rol, Rol.id == modelo.rol_id)
            .where(modelo.rol_id == rol_id, columna_nodo == nodo_id, Rol.deleted_at.is_(None))
        )
        return db.execute(statement).first() is not None

permiso_resolver = PermisoResolver()
