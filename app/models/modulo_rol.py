from typing import TYPE_CHECKING, List, Optional
from datetime import datetime

from sqlalchemy import ForeignKey, DateTime, JSON, PrimaryKeyConstraint, func
from sqlalchemy.orm import relationship, Mapped, mapped_column

from app.db.base import Base

if TYPE_CHECKING:
    from .rol import Rol


class ModuloRol(Base):
    """
    Modelo ORM para la tabla de asignación 'modulo_rol' (arista Rol x Módulo).

    `permisos` nulo significa "alcanzable, sin permisos operativos".
    """
    __tablename__ = "modulo_rol"
    __table_args__ = (
        PrimaryKeyConstraint('rol_id', 'modulo_id', name='pk_modulo_rol'),
    )

    rol_id: Mapped[int] = mapped_column(ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True)
    modulo_id: Mapped[int] = mapped_column(ForeignKey("modulos.id", ondelete="CASCADE"), primary_key=True)
    permisos: Mapped[Optional[List[str]]] = mapped_column(JSON(none_as_null=True), nullable=True)
    fecha_creacion: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    fecha_modificacion: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    rol: Mapped["Rol"] = relationship("Rol", back_populates="modulos_asignados")

    def __repr__(self) -> str:
        return f"<ModuloRol(rol_id={self.rol_id}, modulo_id={self.modulo_id}, permisos={self.permisos})>"
