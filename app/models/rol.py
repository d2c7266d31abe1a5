from typing import TYPE_CHECKING, List, Optional
from datetime import datetime

from sqlalchemy import String, DateTime, func
from sqlalchemy.orm import relationship, Mapped, mapped_column

from app.db.base import Base

if TYPE_CHECKING:
    from .usuario import Usuario
    from .modulo_rol import ModuloRol
    from .pestana_rol import PestanaRol

class Rol(Base):
    __tablename__ = "roles"

    id: Mapped[int] = mapped_column(primary_key=True)
    nombre: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    abreviatura: Mapped[str] = mapped_column(String(10), unique=True)
    fecha_creacion: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    fecha_modificacion: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    usuarios: Mapped[List["Usuario"]] = relationship(
        "Usuario",
        back_populates="rol",
        lazy="selectin"
    )
    modulos_asignados: Mapped[List["ModuloRol"]] = relationship(
        "ModuloRol",
        back_populates="rol",
        cascade="all, delete-orphan",
        lazy="select"
    )
    pestanas_asignadas: Mapped[List["PestanaRol"]] = relationship(
        "PestanaRol",
        back_populates="rol",
        cascade="all, delete-orphan",
        lazy="select"
    )

    def __repr__(self) -> str:
        return f"<Rol(id={self.id}, nombre='{self.nombre}')>"
