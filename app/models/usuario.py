import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, ForeignKey, Boolean, String
from sqlalchemy.orm import relationship, Mapped, mapped_column
from sqlalchemy.sql import func

from app.db.base import Base

if TYPE_CHECKING:
    from .rol import Rol


class Usuario(Base):
    """
    Modelo ORM para la tabla 'usuarios'.

    Solo se modela lo necesario para identificar al actor autenticado y su rol;
    el alta de usuarios y el inicio de sesión viven fuera de este servicio.
    """
    __tablename__ = "usuarios"

    id: Mapped[int] = mapped_column(primary_key=True)
    nombre_usuario: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), unique=True, nullable=True)
    rol_id: Mapped[Optional[int]] = mapped_column(ForeignKey("roles.id"), index=True, nullable=True)
    activo: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    rol: Mapped[Optional["Rol"]] = relationship("Rol", back_populates="usuarios", lazy="selectin")

    def __repr__(self) -> str:
        return f"<Usuario(id={self.id}, nombre_usuario='{self.nombre_usuario}')>"
