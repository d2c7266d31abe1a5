import re
from typing import List, Optional

from app.core.permissions import ConjuntoPermisos

PATRON_NOMBRE = re.compile(r"^[A-Za-zÁÉÍÓÚáéíóúÑñÜü ]+$")
PATRON_ICONO = re.compile(r"^[a-z-]+$")
PATRON_RUTA = re.compile(r"^/[a-z0-9\-/]*$")
PATRON_ABREVIATURA = re.compile(r"^[A-Za-zÁÉÍÓÚáéíóúÑñ]+$")


def validar_nombre(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    v = v.strip()
    if not PATRON_NOMBRE.match(v):
        raise ValueError("El nombre solo puede contener letras y espacios.")
    return v


def validar_icono(v: Optional[str]) -> Optional[str]:
    if v is not None and not PATRON_ICONO.match(v):
        raise ValueError("El ícono solo puede contener minúsculas y guiones.")
    return v


def validar_ruta(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    if not PATRON_RUTA.match(v):
        raise ValueError("La ruta debe iniciar con '/' y solo contener minúsculas, números, guiones y '/'.")
    if v.endswith("/"):
        raise ValueError("La ruta no debe terminar en '/'.")
    return v


def validar_permisos_extra(v: Optional[List[str]]) -> Optional[List[str]]:
    if v is None:
        return v
    return ConjuntoPermisos.desde_extras(v).como_columna()


def validar_permisos_asignacion(v: Optional[List[str]]) -> List[str]:
    if v is not None and not isinstance(v, (list, tuple)):
        raise ValueError("Los permisos deben enviarse como una lista.")
    return ConjuntoPermisos.desde_asignacion(v).como_lista()
