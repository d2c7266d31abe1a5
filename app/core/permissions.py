import re
from typing import Iterable, Iterator, List, Optional, Tuple

# =================================================================
# Permisos Base
# =================================================================
# Tokens que se ofrecen siempre en cada nodo del árbol, junto a los
# permisos extra propios del nodo.
# =================================================================

PERM_CREAR = "crear"
PERM_EDITAR = "editar"
PERM_ELIMINAR = "eliminar"

PERMISOS_BASE = (PERM_CREAR, PERM_EDITAR, PERM_ELIMINAR)


# =================================================================
# Reglas de formato de los tokens
# =================================================================

PATRON_PERMISO = re.compile(r"^[a-z_]+$")
PATRON_PERMISO_ASIGNACION = re.compile(r"^[a-zA-Z_]+$")
LONGITUD_MAXIMA_PERMISO = 50
MAXIMO_PERMISOS_ASIGNACION = 50


class PermisoInvalidoError(ValueError):
    """Un token de permiso no cumple el formato o está repetido."""


class ConjuntoPermisos:
    """
    Conjunto ordenado e inmutable de tokens de permiso ya validados.

    Se construye únicamente con `desde_asignacion` (lo que llega al asignar
    un módulo o pestaña a un rol) o con `desde_extras` (los permisos extra
    que define un nodo). Una vez construido no se vuelve a validar.
    """
    __slots__ = ("_tokens",)

    def __init__(self, tokens: Tuple[str, ...] = ()):
        self._tokens = tokens

    @classmethod
    def desde_asignacion(cls, tokens: Optional[Iterable[str]]) -> "ConjuntoPermisos":
        """Recorta espacios, descarta vacíos y elimina duplicados conservando el orden."""
        if tokens is None:
            return cls()
        vistos: List[str] = []
        for token in tokens:
            if not isinstance(token, str):
                raise PermisoInvalidoError("Cada permiso debe ser un texto.")
            limpio = token.strip()
            if not limpio or limpio in vistos:
                continue
            if len(limpio) > LONGITUD_MAXIMA_PERMISO:
                raise PermisoInvalidoError(f"El permiso '{limpio}' no debe superar {LONGITUD_MAXIMA_PERMISO} caracteres.")
            if not PATRON_PERMISO_ASIGNACION.match(limpio):
                raise PermisoInvalidoError(f"El permiso '{limpio}' solo puede contener letras y guiones bajos.")
            vistos.append(limpio)
        if len(vistos) > MAXIMO_PERMISOS_ASIGNACION:
            raise PermisoInvalidoError(f"No se pueden asignar más de {MAXIMO_PERMISOS_ASIGNACION} permisos.")
        return cls(tuple(vistos))

    @classmethod
    def desde_extras(cls, tokens: Optional[Iterable[str]]) -> "ConjuntoPermisos":
        """Valida los permisos extra de un nodo; los duplicados (sin distinguir mayúsculas) son un error."""
        if tokens is None:
            return cls()
        vistos: List[str] = []
        minusculas = set()
        for token in tokens:
            if not isinstance(token, str) or not token:
                raise PermisoInvalidoError("Los permisos extra no pueden estar vacíos.")
            if len(token) > LONGITUD_MAXIMA_PERMISO:
                raise PermisoInvalidoError(f"El permiso '{token}' no debe superar {LONGITUD_MAXIMA_PERMISO} caracteres.")
            if not PATRON_PERMISO.match(token):
                raise PermisoInvalidoError(f"El permiso '{token}' solo puede contener minúsculas y guiones bajos.")
            if token.lower() in minusculas:
                raise PermisoInvalidoError(f"El permiso '{token}' está repetido.")
            minusculas.add(token.lower())
            vistos.append(token)
        return cls(tuple(vistos))

    @classmethod
    def desde_almacenado(cls, valor: Optional[Iterable[str]]) -> "ConjuntoPermisos":
        # Lo persistido ya pasó por uno de los constructores anteriores
        return cls(tuple(valor or ()))

    def faltantes_en(self, permitidos: Iterable[str]) -> List[str]:
        """Tokens de este conjunto que no están entre `permitidos`."""
        permitidos_set = set(permitidos)
        return [t for t in self._tokens if t not in permitidos_set]

    def como_columna(self) -> Optional[List[str]]:
        """Valor para la columna JSON: un conjunto vacío se guarda como NULL."""
        return list(self._tokens) or None

    def como_lista(self) -> List[str]:
        return list(self._tokens)

    def __iter__(self) -> Iterator[str]:
        return iter(self._tokens)

    def __len__(self) -> int:
        return len(self._tokens)

    def __contains__(self, token: object) -> bool:
        return token in self._tokens

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ConjuntoPermisos):
            return set(self._tokens) == set(other._tokens)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(frozenset(self._tokens))

    def __repr__(self) -> str:
        return f"ConjuntoPermisos({list(self._tokens)!r})"


def permisos_disponibles(permisos_extra: Optional[Iterable[str]]) -> List[str]:
    """Permisos que se pueden asignar en un nodo: los base más sus extras."""
    disponibles = list(PERMISOS_BASE)
    for token in permisos_extra or ():
        if token not in disponibles:
            disponibles.append(token)
    return disponibles
