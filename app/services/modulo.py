from typing import Any, Dict, Optional, Union
import logging

from sqlalchemy.orm import Session
from sqlalchemy import select
from fastapi import HTTPException, status

from app.models.modulo import Modulo
from app.schemas.modulo import ModuloCreate, ModuloUpdate
from .base_service import BaseService
from .arbol import pestanas_vivas
from .asignacion import TipoNodo, asignacion_store
from .auditoria import ACCION_INSERT, ACCION_DELETE, auditoria_service, clave_arista

logger = logging.getLogger(__name__)

class ModuloService(BaseService[Modulo, ModuloCreate, ModuloUpdate]):
    """
    CRUD de módulos del árbol de navegación.

    Reglas de forma del árbol (dos niveles):
    - un padre no tiene padre ni permisos extra;
    - un hijo referencia a un módulo padre vivo, nunca a sí mismo;
    - un padre con hijos vivos no deja de ser padre;
    - un módulo con pestañas no se convierte en padre.
    """
    etiqueta = "Módulo"
    columnas_auditadas = ("nombre", "icono", "ruta", "es_padre", "modulo_padre_id", "permisos_extra")

    def get_by_nombre(self, db: Session, *, nombre: str) -> Optional[Modulo]:
        statement = select(self.model).where(self.model.nombre == nombre)
        return db.execute(statement).scalar_one_or_none()

    def get_by_ruta(self, db: Session, *, ruta: str) -> Optional[Modulo]:
        statement = select(self.model).where(self.model.ruta == ruta)
        return db.execute(statement).scalar_one_or_none()

    def hijos_vivos(self, db: Session, modulo_id: int) -> int:
        statement = select(self.model.id).where(self.model.modulo_padre_id == modulo_id, self.model.deleted_at.is_(None))
        return len(db.execute(statement).scalars().all())

    def _validar_unicos(self, db: Session, datos: Dict[str, Any], modulo_id: Optional[int] = None) -> None:
        # La restricción única de la tabla incluye a los eliminados lógicamente
        if datos.get("nombre"):
            existente = self.get_by_nombre(db, nombre=datos["nombre"])
            if existente and existente.id != modulo_id:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail=f"Ya existe un módulo con el nombre '{datos['nombre']}'.",
                )
        if datos.get("ruta"):
            existente = self.get_by_ruta(db, ruta=datos["ruta"])
            if existente and existente.id != modulo_id:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail=f"Ya existe un módulo con la ruta '{datos['ruta']}'.",
                )

    def _validar_forma(self, db: Session, es_padre: bool, modulo_padre_id: Optional[int],
                       permisos_extra: Optional[list], modulo_id: Optional[int] = None) -> None:
        if es_padre:
            if modulo_padre_id is not None:
                raise HTTPException(
                    status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                    detail="Un módulo padre no puede tener módulo padre.",
                )
            if permisos_extra:
                raise HTTPException(
                    status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                    detail="Un módulo padre no puede tener permisos extra.",
                )
            return

        if modulo_padre_id is None:
            return
        if modulo_id is not None and modulo_padre_id == modulo_id:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="Un módulo no puede ser su propio padre.",
            )
        padre = self.get(db, id=modulo_padre_id)
        if padre is None:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"El módulo padre con ID {modulo_padre_id} no existe.",
            )
        if not padre.es_padre:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=f"El módulo '{padre.nombre}' no es un módulo padre.",
            )

    def create(self, db: Session, *, obj_in: ModuloCreate, usuario_id: Optional[int] = None) -> Modulo:
        """
        Crea un módulo validando unicidad y forma del árbol.
        NO realiza db.commit().
        """
        logger.debug(f"Intentando crear módulo '{obj_in.nombre}' ({obj_in.ruta}).")
        self._validar_unicos(db, obj_in.model_dump())
        self._validar_forma(db, obj_in.es_padre, obj_in.modulo_padre_id, obj_in.permisos_extra)
        db_obj = super().create(db, obj_in=obj_in, usuario_id=usuario_id)
        logger.info(f"Módulo '{db_obj.nombre}' preparado para ser creado (ID {db_obj.id}).")
        return db_obj

    def update(
        self,
        db: Session,
        *,
        db_obj: Modulo,
        obj_in: Union[ModuloUpdate, Dict[str, Any]],
        usuario_id: Optional[int] = None,
    ) -> Modulo:
        """
        Actualiza un módulo validando el estado combinado (actual + cambios).
        NO realiza db.commit().
        """
        datos = obj_in if isinstance(obj_in, dict) else obj_in.model_dump(exclude_unset=True)
        # Solo el padre y los permisos extra admiten null
        datos = {k: v for k, v in datos.items() if v is not None or k in ("modulo_padre_id", "permisos_extra")}
        self._validar_unicos(db, datos, modulo_id=db_obj.id)

        es_padre = datos.get("es_padre", db_obj.es_padre)
        modulo_padre_id = datos["modulo_padre_id"] if "modulo_padre_id" in datos else db_obj.modulo_padre_id
        permisos_extra = datos["permisos_extra"] if "permisos_extra" in datos else db_obj.permisos_extra
        self._validar_forma(db, es_padre, modulo_padre_id, permisos_extra, modulo_id=db_obj.id)

        if db_obj.es_padre and not es_padre:
            hijos = self.hijos_vivos(db, db_obj.id)
            if hijos:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail=f"El módulo '{db_obj.nombre}' tiene {hijos} módulo(s) hijo(s); no puede dejar de ser padre.",
                )
        if es_padre and not db_obj.es_padre and pestanas_vivas(db_obj):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"El módulo '{db_obj.nombre}' tiene pestañas; no puede convertirse en padre.",
            )

        if "permisos_extra" in datos and not datos["permisos_extra"]:
            datos = {**datos, "permisos_extra": None}
        padre_previo_id = db_obj.modulo_padre_id
        db_obj = super().update(db, db_obj=db_obj, obj_in=datos, usuario_id=usuario_id)
        if db_obj.modulo_padre_id != padre_previo_id:
            self._reaplicar_cascada(db, db_obj, padre_previo_id, usuario_id)
        return db_obj

    def _reaplicar_cascada(self, db: Session, modulo: Modulo, padre_previo_id: Optional[int],
                           usuario_id: Optional[int]) -> None:
        """
        Mantiene la invariante padre/hijo al mover un módulo asignado: cada rol
        que lo tiene recibe el nuevo padre sin permisos y pierde el anterior si
        ya no le queda ningún hijo asignado bajo él.
        """
        db.flush()
        nuevo_padre_id = modulo.modulo_padre_id
        for arista in asignacion_store.aristas_de_nodo(db, modulo.id, TipoNodo.MODULO):
            rol_id = arista.rol_id
            if nuevo_padre_id is not None and asignacion_store.lock_edge(db, rol_id, nuevo_padre_id, TipoNodo.MODULO) is None:
                asignacion_store.upsert_edge(db, rol_id, nuevo_padre_id, TipoNodo.MODULO, None)
                auditoria_service.registrar(
                    db, tabla="modulo_rol", registro_id=clave_arista(rol_id, nuevo_padre_id),
                    accion=ACCION_INSERT, usuario_id=usuario_id,
                )
                logger.info(f"Cascada: padre {nuevo_padre_id} asignado al rol {rol_id} al mover el módulo {modulo.id}.")

            if padre_previo_id is None or asignacion_store.lock_edge(db, rol_id, padre_previo_id, TipoNodo.MODULO) is None:
                continue
            if asignacion_store.count_assigned_siblings(db, rol_id, padre_previo_id, modulo.id) == 0:
                asignacion_store.remove_edge(db, rol_id, padre_previo_id, TipoNodo.MODULO)
                auditoria_service.registrar(
                    db, tabla="modulo_rol", registro_id=clave_arista(rol_id, padre_previo_id),
                    accion=ACCION_DELETE, usuario_id=usuario_id,
                )
                logger.info(f"Cascada: padre {padre_previo_id} desasignado del rol {rol_id} al mover el módulo {modulo.id}.")

    def remove(self, db: Session, *, id: int, usuario_id: Optional[int] = None) -> Modulo:
        """
        Elimina lógicamente un módulo. Sus hijos y pestañas conservan la
        referencia y se muestran como huérfanos (`padre_eliminado`,
        `modulo_eliminado`) en los listados.
        NO realiza db.commit().
        """
        db_obj = super().remove(db, id=id, usuario_id=usuario_id)
        hijos = self.hijos_vivos(db, id)
        if hijos:
            logger.warning(f"Módulo {id} eliminado con {hijos} hijo(s) vivos; quedarán huérfanos.")
        return db_obj

modulo_service = ModuloService(Modulo)
