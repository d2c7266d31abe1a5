from typing import Any, Dict, Optional, Union
import logging

from sqlalchemy.orm import Session
from sqlalchemy import select
from fastapi import HTTPException, status

from app.models.modulo import Modulo
from app.models.pestana import Pestana
from app.schemas.pestana import PestanaCreate, PestanaUpdate
from .base_service import BaseService

logger = logging.getLogger(__name__)

class PestanaService(BaseService[Pestana, PestanaCreate, PestanaUpdate]):
    """CRUD de pestañas; una pestaña solo cuelga de un módulo vivo que no sea padre."""
    etiqueta = "Pestaña"
    columnas_auditadas = ("modulo_id", "nombre", "ruta", "permisos_extra")

    def _validar_modulo(self, db: Session, modulo_id: int) -> Modulo:
        modulo = db.get(Modulo, modulo_id)
        if modulo is None or modulo.deleted_at is not None:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"El módulo con ID {modulo_id} no existe.",
            )
        if modulo.es_padre:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"El módulo '{modulo.nombre}' es un módulo padre y no puede tener pestañas.",
            )
        return modulo

    def _validar_unicos(self, db: Session, modulo_id: int, nombre: str, ruta: str, pestana_id: Optional[int] = None) -> None:
        statement = select(self.model).where(self.model.modulo_id == modulo_id, self.model.ruta == ruta)
        existente = db.execute(statement).scalar_one_or_none()
        if existente and existente.id != pestana_id:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"El módulo ya tiene una pestaña con la ruta '{ruta}'.",
            )
        statement = select(self.model).where(self.model.modulo_id == modulo_id, self.model.nombre == nombre)
        existente = db.execute(statement).scalar_one_or_none()
        if existente and existente.id != pestana_id:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"El módulo ya tiene una pestaña con el nombre '{nombre}'.",
            )

    def create(self, db: Session, *, obj_in: PestanaCreate, usuario_id: Optional[int] = None) -> Pestana:
        """NO realiza db.commit()."""
        self._validar_modulo(db, obj_in.modulo_id)
        self._validar_unicos(db, obj_in.modulo_id, obj_in.nombre, obj_in.ruta)
        db_obj = super().create(db, obj_in=obj_in, usuario_id=usuario_id)
        logger.info(f"Pestaña '{db_obj.nombre}' preparada para ser creada en el módulo {db_obj.modulo_id}.")
        return db_obj

    def update(
        self,
        db: Session,
        *,
        db_obj: Pestana,
        obj_in: Union[PestanaUpdate, Dict[str, Any]],
        usuario_id: Optional[int] = None,
    ) -> Pestana:
        """NO realiza db.commit()."""
        datos = obj_in if isinstance(obj_in, dict) else obj_in.model_dump(exclude_unset=True)
        datos = {k: v for k, v in datos.items() if v is not None or k == "permisos_extra"}
        modulo_id = datos.get("modulo_id", db_obj.modulo_id)
        if modulo_id != db_obj.modulo_id:
            self._validar_modulo(db, modulo_id)
        self._validar_unicos(
            db, modulo_id, datos.get("nombre") or db_obj.nombre, datos.get("ruta") or db_obj.ruta, pestana_id=db_obj.id
        )
        if "permisos_extra" in datos and not datos["permisos_extra"]:
            datos["permisos_extra"] = None
        return super().update(db, db_obj=db_obj, obj_in=datos, usuario_id=usuario_id)

pestana_service = PestanaService(Pestana)
