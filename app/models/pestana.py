from typing import TYPE_CHECKING, List, Optional
from datetime import datetime

from sqlalchemy import String, DateTime, ForeignKey, JSON, UniqueConstraint, func
from sqlalchemy.orm import relationship, Mapped, mapped_column

from app.db.base import Base

if TYPE_CHECKING:
    from .modulo import Modulo


class Pestana(Base):
    __tablename__ = "pestanas"
    __table_args__ = (
        UniqueConstraint("modulo_id", "ruta"),
        UniqueConstraint("modulo_id", "nombre"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    modulo_id: Mapped[int] = mapped_column(ForeignKey("modulos.id"), index=True)
    nombre: Mapped[str] = mapped_column(String(50))
    ruta: Mapped[str] = mapped_column(String(255))
    permisos_extra: Mapped[Optional[List[str]]] = mapped_column(JSON(none_as_null=True), nullable=True)
    fecha_creacion: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    fecha_modificacion: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    modulo: Mapped["Modulo"] = relationship("Modulo", back_populates="pestanas", lazy="joined")

    def __repr__(self) -> str:
        return f"<Pestana(id={self.id}, modulo_id={self.modulo_id}, nombre='{self.nombre}')>"
