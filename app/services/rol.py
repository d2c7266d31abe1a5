from typing import Optional, Union, Dict, Any
import logging

from sqlalchemy.orm import Session
from sqlalchemy import func, select
from fastapi import HTTPException, status

from app.models.rol import Rol
from app.models.usuario import Usuario
from app.schemas.rol import RolCreate, RolUpdate
from .base_service import BaseService

logger = logging.getLogger(__name__)

class RolService(BaseService[Rol, RolCreate, RolUpdate]):
    """
    Servicio para gestionar Roles. El acceso de cada rol al árbol de
    navegación se administra en ControlAccesoService.
    """
    etiqueta = "Rol"
    columnas_auditadas = ("nombre", "abreviatura")

    def get_by_name(self, db: Session, *, name: str) -> Optional[Rol]:
        statement = select(self.model).where(self.model.nombre == name, self.model.deleted_at.is_(None))
        result = db.execute(statement)
        return result.scalar_one_or_none()

    def get_by_abreviatura(self, db: Session, *, abreviatura: str) -> Optional[Rol]:
        statement = select(self.model).where(self.model.abreviatura == abreviatura, self.model.deleted_at.is_(None))
        return db.execute(statement).scalar_one_or_none()

    def _validar_unicos(self, db: Session, datos: Dict[str, Any], rol_id: Optional[int] = None) -> None:
        if datos.get("nombre"):
            existente = self.get_by_name(db, name=datos["nombre"])
            if existente and existente.id != rol_id:
                logger.warning(f"Conflicto de nombre de rol: '{datos['nombre']}' ya existe (ID {existente.id}).")
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail=f"Ya existe un rol con el nombre '{datos['nombre']}'.",
                )
        if datos.get("abreviatura"):
            existente = self.get_by_abreviatura(db, abreviatura=datos["abreviatura"])
            if existente and existente.id != rol_id:
                logger.warning(f"Conflicto de abreviatura de rol: '{datos['abreviatura']}' ya existe (ID {existente.id}).")
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail=f"Ya existe un rol con la abreviatura '{datos['abreviatura']}'.",
                )

    def create(self, db: Session, *, obj_in: RolCreate, usuario_id: Optional[int] = None) -> Rol:
        """
        Crea un nuevo rol sin accesos; los módulos y pestañas se asignan después.
        NO realiza db.commit().
        """
        logger.debug(f"Intentando crear rol con nombre: {obj_in.nombre}")
        self._validar_unicos(db, obj_in.model_dump())
        db_rol = super().create(db, obj_in=obj_in, usuario_id=usuario_id)
        logger.info(f"Rol '{db_rol.nombre}' preparado para ser creado.")
        return db_rol

    def update(
        self,
        db: Session,
        *,
        db_obj: Rol,
        obj_in: Union[RolUpdate, Dict[str, Any]],
        usuario_id: Optional[int] = None,
    ) -> Rol:
        """
        Actualiza nombre y/o abreviatura de un rol.
        NO realiza db.commit().
        """
        update_data_dict = obj_in if isinstance(obj_in, dict) else obj_in.model_dump(exclude_unset=True)
        logger.debug(f"Intentando actualizar rol ID {db_obj.id} con datos: {update_data_dict}")
        self._validar_unicos(db, update_data_dict, rol_id=db_obj.id)
        return super().update(db, db_obj=db_obj, obj_in=update_data_dict, usuario_id=usuario_id)

    def remove(self, db: Session, *, id: int, usuario_id: Optional[int] = None) -> Rol:
        """
        Elimina lógicamente un rol. Verifica primero si tiene usuarios asignados.
        NO realiza db.commit().
        """
        logger.debug(f"Intentando eliminar rol ID: {id}")
        db_obj = self.get_or_404(db, id=id)

        user_count_stmt = select(func.count(Usuario.id)).where(Usuario.rol_id == id)
        user_count = db.execute(user_count_stmt).scalar_one()

        if user_count > 0:
            logger.warning(f"Intento de eliminar rol '{db_obj.nombre}' (ID: {id}) que tiene {user_count} usuario(s) asignado(s).")
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"No se puede eliminar el rol '{db_obj.nombre}' porque tiene {user_count} usuario(s) asignado(s). Reasígnelos primero."
            )

        deleted_obj = super().remove(db, id=id, usuario_id=usuario_id)
        logger.info(f"Rol '{deleted_obj.nombre}' (ID: {id}) preparado para ser eliminado.")
        return deleted_obj

rol_service = RolService(Rol)
