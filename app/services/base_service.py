import logging
from datetime import datetime, timezone
from typing import Any, Dict, Generic, List, Optional, Type, TypeVar, Union

from fastapi import HTTPException, status
from pydantic import BaseModel

from sqlalchemy.orm import Session
from sqlalchemy import func, select

from app.db.base import Base
from .auditoria import auditoria_service, diff_columnas, ACCION_INSERT, ACCION_UPDATE, ACCION_DELETE

ModelType = TypeVar("ModelType", bound=Base)
CreateSchemaType = TypeVar("CreateSchemaType", bound=BaseModel)
UpdateSchemaType = TypeVar("UpdateSchemaType", bound=BaseModel)

logger = logging.getLogger(__name__)

class BaseService(Generic[ModelType, CreateSchemaType, UpdateSchemaType]):
    # Nombre legible para los mensajes de error ("Módulo con ID 3 no encontrado.")
    etiqueta: str = "Registro"
    # Columnas que se comparan al auditar actualizaciones
    columnas_auditadas: tuple = ()

    def __init__(self, model: Type[ModelType]):
        """
        Servicio base con operaciones CRUD por defecto sobre modelos con
        borrado lógico (`deleted_at`).
        Los métodos CUD (Create, Update, Delete) NO realizan commit.
        El commit debe ser manejado en la capa de la ruta (endpoint).
        Cada escritura añade su registro de auditoría a la misma transacción.

        **Parámetros**

        * `model`: Clase del modelo SQLAlchemy
        """
        self.model = model

    def get(self, db: Session, id: Any) -> Optional[ModelType]:
        """Obtiene un registro vivo por ID (los eliminados lógicamente no cuentan)."""
        db_obj = db.get(self.model, id)
        if db_obj is None or getattr(db_obj, "deleted_at", None) is not None:
            return None
        return db_obj

    def get_or_404(self, db: Session, id: Any) -> ModelType:
        """Obtiene un registro por ID o lanza 404 si no existe."""
        db_obj = self.get(db, id=id)
        if not db_obj:
            logger.warning(f"Registro no encontrado en {self.model.__name__} con ID: {id}")
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"{self.etiqueta} con ID {id} no encontrado."
            )
        return db_obj

    def get_multi(
        self, db: Session, *, skip: int = 0, limit: int = 100
    ) -> List[ModelType]:
        """Obtiene múltiples registros vivos con paginación, más recientes primero."""
        statement = (
            select(self.model)
            .where(self.model.deleted_at.is_(None))  # type: ignore[attr-defined]
            .order_by(self.model.id.desc())  # type: ignore[attr-defined]
            .offset(skip)
            .limit(limit)
        )
        result = db.execute(statement)
        return list(result.scalars().all())

    def get_count(self, db: Session) -> int:
        """Cuenta los registros vivos del modelo."""
        count_query = select(func.count(self.model.id)).where(self.model.deleted_at.is_(None))  # type: ignore[attr-defined]
        count = db.execute(count_query).scalar_one_or_none()
        return count or 0

    def imagen(self, db_obj: ModelType) -> Dict[str, Any]:
        """Valores actuales de las columnas auditadas."""
        return {columna: getattr(db_obj, columna) for columna in self.columnas_auditadas}

    def create(self, db: Session, *, obj_in: CreateSchemaType, usuario_id: Optional[int] = None) -> ModelType:
        """
        Crea un nuevo registro.
        NO realiza db.commit(). El commit debe ser manejado por el llamador.
        """
        obj_in_data = obj_in.model_dump()
        db_obj = self.model(**obj_in_data)
        db.add(db_obj)
        db.flush()
        auditoria_service.registrar(
            db, tabla=self.model.__tablename__, registro_id=str(db_obj.id), accion=ACCION_INSERT, usuario_id=usuario_id
        )
        logger.info(f"Nuevo registro preparado para creación en {self.model.__name__} con datos: {obj_in_data}")
        return db_obj

    def update(
        self,
        db: Session,
        *,
        db_obj: ModelType,
        obj_in: Union[UpdateSchemaType, Dict[str, Any]],
        usuario_id: Optional[int] = None,
    ) -> ModelType:
        """
        Actualiza un objeto existente en la base de datos.
        NO realiza db.commit(). El commit debe ser manejado por el llamador.
        """
        if isinstance(obj_in, dict):
            update_data = obj_in
        else:
            update_data = obj_in.model_dump(exclude_unset=True)

        obj_id = getattr(db_obj, 'id', 'N/A')
        logger.debug(f"Actualizando {self.model.__name__} ID {obj_id} con datos: {update_data}")

        if not update_data:
            logger.info(f"No se proporcionaron datos para actualizar en {self.model.__name__} (ID: {obj_id})")
            return db_obj

        antes = self.imagen(db_obj)
        for field, value in update_data.items():
            if hasattr(db_obj, field):
                setattr(db_obj, field, value)
            else:
                logger.warning(f"Intento de actualizar campo '{field}' inexistente en modelo {self.model.__name__}")

        db.add(db_obj)
        cambios = diff_columnas(antes, self.imagen(db_obj))
        if cambios:
            auditoria_service.registrar(
                db, tabla=self.model.__tablename__, registro_id=str(obj_id), accion=ACCION_UPDATE,
                usuario_id=usuario_id, cambios=cambios,
            )
        logger.info(f"Registro preparado para actualización en {self.model.__name__} (ID: {obj_id}), {len(cambios)} cambio(s).")
        return db_obj

    def remove(self, db: Session, *, id: int, usuario_id: Optional[int] = None) -> ModelType:
        """
        Elimina lógicamente un registro por ID (marca `deleted_at`).
        NO realiza db.commit(). El commit debe ser manejado por el llamador.
        """
        obj = self.get_or_404(db, id=id)
        obj.deleted_at = datetime.now(timezone.utc)  # type: ignore[attr-defined]
        db.add(obj)
        auditoria_service.registrar(
            db, tabla=self.model.__tablename__, registro_id=str(id), accion=ACCION_DELETE, usuario_id=usuario_id
        )
        logger.warning(f"Registro preparado para eliminación lógica de {self.model.__name__} (ID: {id})")
        return obj
