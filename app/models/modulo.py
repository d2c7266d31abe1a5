from typing import TYPE_CHECKING, List, Optional
from datetime import datetime

from sqlalchemy import String, Boolean, Integer, DateTime, JSON, func
from sqlalchemy.orm import relationship, Mapped, mapped_column

from app.db.base import Base

if TYPE_CHECKING:
    from .pestana import Pestana


class Modulo(Base):
    """
    Nodo del árbol de navegación.

    `modulo_padre_id` es un entero simple, sin llave foránea: el padre puede
    haber desaparecido y el árbol debe seguir siendo navegable. La resolución
    del padre se hace siempre a través de un índice (ver services/arbol.py).
    """
    __tablename__ = "modulos"

    id: Mapped[int] = mapped_column(primary_key=True)
    nombre: Mapped[str] = mapped_column(String(50), unique=True)
    icono: Mapped[str] = mapped_column(String(50))
    ruta: Mapped[str] = mapped_column(String(255), unique=True)
    es_padre: Mapped[bool] = mapped_column(Boolean, default=False)
    modulo_padre_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    permisos_extra: Mapped[Optional[List[str]]] = mapped_column(JSON(none_as_null=True), nullable=True)
    fecha_creacion: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    fecha_modificacion: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    pestanas: Mapped[List["Pestana"]] = relationship(
        "Pestana",
        back_populates="modulo",
        order_by="Pestana.id",
        lazy="selectin"
    )

    def __repr__(self) -> str:
        return f"<Modulo(id={self.id}, nombre='{self.nombre}', ruta='{self.ruta}')>"
