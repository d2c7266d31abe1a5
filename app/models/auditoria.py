from typing import Optional, List, Dict, Any
from datetime import datetime

from sqlalchemy import String, DateTime, Integer, JSON, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base

class Auditoria(Base):
    """
    Modelo ORM para la tabla 'auditorias'. Solo se inserta, nunca se modifica.
    """
    __tablename__ = "auditorias"

    id: Mapped[int] = mapped_column(primary_key=True)
    tabla_afectada: Mapped[str] = mapped_column(String(100), index=True)
    id_registro_afectado: Mapped[str] = mapped_column(String(100))
    accion: Mapped[str] = mapped_column(String(10))  # 'INSERT', 'UPDATE', 'DELETE'
    usuario_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    cambios: Mapped[Optional[List[Dict[str, Any]]]] = mapped_column(JSON(none_as_null=True), nullable=True)
    fecha_creacion: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), index=True)

    def __repr__(self) -> str:
        return f"<Auditoria(tabla='{self.tabla_afectada}', accion='{self.accion}', registro='{self.id_registro_afectado}')>"
