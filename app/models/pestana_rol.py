from typing import TYPE_CHECKING, List, Optional
from datetime import datetime

from sqlalchemy import ForeignKey, DateTime, JSON, PrimaryKeyConstraint, func
from sqlalchemy.orm import relationship, Mapped, mapped_column

from app.db.base import Base

if TYPE_CHECKING:
    from .rol import Rol


class PestanaRol(Base):
    """
    Modelo ORM para la tabla de asignación 'pestana_rol' (arista Rol x Pestaña).
    """
    __tablename__ = "pestana_rol"
    __table_args__ = (
        PrimaryKeyConstraint('rol_id', 'pestana_id', name='pk_pestana_rol'),
    )

    rol_id: Mapped[int] = mapped_column(ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True)
    pestana_id: Mapped[int] = mapped_column(ForeignKey("pestanas.id", ondelete="CASCADE"), primary_key=True)
    permisos: Mapped[Optional[List[str]]] = mapped_column(JSON(none_as_null=True), nullable=True)
    fecha_creacion: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    fecha_modificacion: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    rol: Mapped["Rol"] = relationship("Rol", back_populates="pestanas_asignadas")

    def __repr__(self) -> str:
        return f"<PestanaRol(rol_id={self.rol_id}, pestana_id={self.pestana_id}, permisos={self.permisos})>"
