"""
Datos iniciales: el árbol de gestión de la propia intranet y un rol
administrador con acceso completo a él.

Los IDs de las pestañas y módulos de gestión se toman de la configuración,
porque las dependencias de autorización los referencian por ID.
"""
import logging
from typing import List, Optional

from sqlalchemy.orm import Session
from sqlalchemy import select, text

from app.core.config import settings
from app.core.permissions import PERMISOS_BASE
from app.models import Modulo, Pestana, Rol, ModuloRol, PestanaRol, Usuario

logger = logging.getLogger(__name__)

MODULO_SEGURIDAD_ID = 1
MODULO_CONTROL_ACCESO_ID = 2
MODULO_GESTION_MODULOS_ID = 3

NOMBRE_ROL_ADMIN = "Administrador"
ABREVIATURA_ROL_ADMIN = "ADM"


def _modulos_gestion() -> List[Modulo]:
    return [
        Modulo(id=MODULO_SEGURIDAD_ID, nombre="Seguridad y Acceso", icono="shield", ruta="/seguridad-acceso", es_padre=True),
        Modulo(id=MODULO_CONTROL_ACCESO_ID, nombre="Control de Acceso", icono="key-round", ruta="/control-acceso",
               es_padre=False, modulo_padre_id=MODULO_SEGURIDAD_ID),
        Modulo(id=MODULO_GESTION_MODULOS_ID, nombre="Gestión de Módulos", icono="layout-grid", ruta="/gestion-modulos",
               es_padre=False, modulo_padre_id=MODULO_SEGURIDAD_ID),
        Modulo(id=settings.MODULO_ROLES_ID, nombre="Roles", icono="user-cog", ruta="/roles",
               es_padre=False, modulo_padre_id=MODULO_SEGURIDAD_ID),
        Modulo(id=settings.MODULO_AUDITORIAS_ID, nombre="Auditorías", icono="file-search", ruta="/auditorias", es_padre=False),
    ]


def _pestanas_gestion() -> List[Pestana]:
    return [
        Pestana(id=settings.PESTANA_ACCESOS_MODULOS_ID, modulo_id=MODULO_CONTROL_ACCESO_ID, nombre="Módulos", ruta="/modulos"),
        Pestana(id=settings.PESTANA_ACCESOS_PESTANAS_ID, modulo_id=MODULO_CONTROL_ACCESO_ID, nombre="Pestañas", ruta="/pestanas"),
        Pestana(id=settings.PESTANA_GESTION_MODULOS_ID, modulo_id=MODULO_GESTION_MODULOS_ID, nombre="Módulos", ruta="/modulos"),
        Pestana(id=settings.PESTANA_GESTION_PESTANAS_ID, modulo_id=MODULO_GESTION_MODULOS_ID, nombre="Pestañas", ruta="/pestanas"),
    ]


def _ajustar_secuencias(db: Session) -> None:
    # Tras insertar IDs explícitos, PostgreSQL debe continuar desde el máximo
    if db.get_bind().dialect.name != "postgresql":
        return
    for tabla in ("modulos", "pestanas", "roles"):
        db.execute(text(
            f"SELECT setval(pg_get_serial_sequence('{tabla}', 'id'), COALESCE((SELECT MAX(id) FROM {tabla}), 1))"
        ))


def sembrar_arbol_gestion(db: Session) -> None:
    """Crea los módulos y pestañas de gestión que falten. NO realiza commit."""
    for modulo in _modulos_gestion():
        if db.get(Modulo, modulo.id) is None:
            db.add(modulo)
            logger.info(f"Semilla: módulo '{modulo.nombre}' (ID {modulo.id}).")
    db.flush()
    for pestana in _pestanas_gestion():
        if db.get(Pestana, pestana.id) is None:
            db.add(pestana)
            logger.info(f"Semilla: pestaña '{pestana.nombre}' (ID {pestana.id}) en módulo {pestana.modulo_id}.")
    db.flush()
    _ajustar_secuencias(db)


def otorgar_acceso_total(db: Session, rol: Rol) -> None:
    """Asigna al rol todo el árbol vivo con los permisos base más los extras de cada nodo. NO realiza commit."""
    modulos = db.execute(select(Modulo).where(Modulo.deleted_at.is_(None))).scalars().all()
    for modulo in modulos:
        permisos = None if modulo.es_padre else list(PERMISOS_BASE) + list(modulo.permisos_extra or [])
        arista = db.get(ModuloRol, (rol.id, modulo.id))
        if arista is None:
            db.add(ModuloRol(rol_id=rol.id, modulo_id=modulo.id, permisos=permisos))
        else:
            arista.permisos = permisos
    pestanas = db.execute(select(Pestana).where(Pestana.deleted_at.is_(None))).scalars().all()
    for pestana in pestanas:
        permisos_pestana = list(PERMISOS_BASE) + list(pestana.permisos_extra or [])
        arista_pestana = db.get(PestanaRol, (rol.id, pestana.id))
        if arista_pestana is None:
            db.add(PestanaRol(rol_id=rol.id, pestana_id=pestana.id, permisos=permisos_pestana))
        else:
            arista_pestana.permisos = permisos_pestana
    db.flush()
    logger.info(f"Semilla: rol '{rol.nombre}' con acceso total ({len(modulos)} módulos).")


def sembrar_administrador(db: Session, nombre_usuario: str, email: Optional[str] = None) -> Usuario:
    """
    Árbol de gestión, rol administrador con acceso total y un usuario con ese rol.
    NO realiza commit.
    """
    sembrar_arbol_gestion(db)
    rol = db.execute(select(Rol).where(Rol.nombre == NOMBRE_ROL_ADMIN)).scalar_one_or_none()
    if rol is None:
        rol = Rol(nombre=NOMBRE_ROL_ADMIN, abreviatura=ABREVIATURA_ROL_ADMIN)
        db.add(rol)
        db.flush()
    otorgar_acceso_total(db, rol)

    usuario = db.execute(select(Usuario).where(Usuario.nombre_usuario == nombre_usuario)).scalar_one_or_none()
    if usuario is None:
        usuario = Usuario(nombre_usuario=nombre_usuario, email=email, rol_id=rol.id, activo=True)
        db.add(usuario)
    else:
        usuario.rol_id = rol.id
    db.flush()
    return usuario


def nodos_de_gestion_faltantes(db: Session) -> List[str]:
    """
    Módulos y pestañas de gestión ausentes o eliminados. Sin ellos las
    dependencias de autorización niegan toda operación de administración.
    """
    faltantes = []
    for modulo in _modulos_gestion():
        existente = db.get(Modulo, modulo.id)
        if existente is None or existente.deleted_at is not None:
            faltantes.append(f"módulo {modulo.id} '{modulo.nombre}'")
    for pestana in _pestanas_gestion():
        existente = db.get(Pestana, pestana.id)
        if existente is None or existente.deleted_at is not None:
            faltantes.append(f"pestaña {pestana.id} '{pestana.nombre}'")
    return faltantes
