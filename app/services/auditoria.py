import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from app.models.auditoria import Auditoria

logger = logging.getLogger(__name__)

ACCION_INSERT = "INSERT"
ACCION_UPDATE = "UPDATE"
ACCION_DELETE = "DELETE"


@dataclass
class RegistroAuditoria:
    """Registro pendiente de escribir; se materializa como fila de 'auditorias'."""
    tabla: str
    registro_id: str
    accion: str
    usuario_id: Optional[int] = None
    cambios: Optional[List[Dict[str, Any]]] = field(default=None)

    def a_modelo(self) -> Auditoria:
        return Auditoria(
            tabla_afectada=self.tabla,
            id_registro_afectado=self.registro_id,
            accion=self.accion,
            usuario_id=self.usuario_id,
            cambios=self.cambios if self.accion == ACCION_UPDATE else None,
        )


def clave_arista(rol_id: int, nodo_id: int) -> str:
    return f"{rol_id}-{nodo_id}"


def diff_permisos(antes: Optional[Iterable[str]], despues: Optional[Iterable[str]]) -> List[Dict[str, Any]]:
    """
    Cambios de la columna 'permisos' entre dos valores. Se comparan como
    conjuntos: reordenar los mismos tokens no es un cambio.
    """
    antes_lista = list(antes) if antes else None
    despues_lista = list(despues) if despues else None
    if set(antes_lista or ()) == set(despues_lista or ()):
        return []
    return [{"columna": "permisos", "antes": antes_lista, "despues": despues_lista}]


def diff_columnas(antes: Dict[str, Any], despues: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Cambios columna a columna entre dos imágenes de un registro."""
    cambios = []
    for columna, valor_nuevo in despues.items():
        valor_previo = antes.get(columna)
        if valor_previo != valor_nuevo:
            cambios.append({"columna": columna, "antes": valor_previo, "despues": valor_nuevo})
    return cambios


class AuditoriaService:
    """
    Registra y consulta la bitácora de auditoría.

    Los registros son de solo inserción. `agregar` los añade a la transacción en
    curso; `registrar_despues_de_commit` los escribe en una transacción propia
    después de que la operación de negocio ya se confirmó, y un fallo ahí se
    registra en el log sin afectar a la operación.
    """
    model = Auditoria

    def agregar(self, db: Session, registros: Iterable[RegistroAuditoria]) -> List[Auditoria]:
        filas = [r.a_modelo() for r in registros]
        db.add_all(filas)
        for fila in filas:
            logger.debug(f"Auditoría preparada: {fila.accion} {fila.tabla_afectada} ({fila.id_registro_afectado})")
        return filas

    def registrar(
        self,
        db: Session,
        *,
        tabla: str,
        registro_id: str,
        accion: str,
        usuario_id: Optional[int] = None,
        cambios: Optional[List[Dict[str, Any]]] = None,
    ) -> Auditoria:
        """Añade un único registro a la transacción en curso. NO realiza commit."""
        return self.agregar(db, [RegistroAuditoria(tabla, registro_id, accion, usuario_id, cambios)])[0]

    def registrar_despues_de_commit(self, db: Session, registros: List[RegistroAuditoria]) -> bool:
        if not registros:
            return True
        try:
            self.agregar(db, registros)
            db.commit()
            logger.info(f"{len(registros)} registro(s) de auditoría escritos.")
            return True
        except SQLAlchemyError as e:
            db.rollback()
            claves = ", ".join(f"{r.accion} {r.tabla}({r.registro_id})" for r in registros)
            logger.error(f"No se pudo escribir la auditoría [{claves}]; la operación ya estaba confirmada: {e}", exc_info=True)
            return False

    def get_multi(
        self,
        db: Session,
        *,
        skip: int = 0,
        limit: int = 100,
        tabla_afectada: Optional[str] = None,
        accion: Optional[str] = None,
        usuario_id: Optional[int] = None,
        id_registro_afectado: Optional[str] = None,
        fecha_inicio: Optional[datetime] = None,
        fecha_fin: Optional[datetime] = None,
    ) -> List[Auditoria]:
        """
        Obtiene registros de auditoría con filtros opcionales, más recientes primero.
        """
        logger.debug(
            f"Listando auditorías con filtros: Tabla='{tabla_afectada}', Accion='{accion}', "
            f"UsuarioID='{usuario_id}', Registro='{id_registro_afectado}', "
            f"Rango='{fecha_inicio}-{fecha_fin}' (Skip: {skip}, Limit: {limit})"
        )
        statement = select(self.model)

        if tabla_afectada:
            statement = statement.where(self.model.tabla_afectada.ilike(f"%{tabla_afectada}%"))
        if accion:
            statement = statement.where(self.model.accion == accion.upper())
        if usuario_id is not None:
            statement = statement.where(self.model.usuario_id == usuario_id)
        if id_registro_afectado:
            statement = statement.where(self.model.id_registro_afectado == id_registro_afectado)
        if fecha_inicio:
            statement = statement.where(self.model.fecha_creacion >= fecha_inicio)
        if fecha_fin:
            fin_inclusivo = fecha_fin
            if fecha_fin.hour == 0 and fecha_fin.minute == 0 and fecha_fin.second == 0:
                # Si solo se pasa la fecha, incluir todo el día
                fin_inclusivo = fecha_fin + timedelta(days=1, microseconds=-1)
            statement = statement.where(self.model.fecha_creacion <= fin_inclusivo)

        statement = statement.order_by(self.model.fecha_creacion.desc(), self.model.id.desc()).offset(skip).limit(limit)
        return list(db.execute(statement).scalars().all())

auditoria_service = AuditoriaService()
