import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

CLAVE_MODULOS = "modulos_list"
CLAVE_PESTANAS = "pestanas_list"


class TipoArbol(str, Enum):
    MODULOS = "modulos"
    PESTANAS = "pestanas"


_CLAVES_POR_TIPO = {
    TipoArbol.MODULOS: CLAVE_MODULOS,
    TipoArbol.PESTANAS: CLAVE_PESTANAS,
}


@dataclass
class EntradaCache:
    valor: Any
    expira_en: float

    def expirada(self, ahora: float) -> bool:
        return ahora >= self.expira_en


class CacheArbol:
    """
    Caché en memoria, por proceso, de los listados del árbol de navegación
    (módulos y pestañas con sus rutas completas ya calculadas).

    Las claves son fijas por tipo de árbol, no por rol: el contenido no depende
    de las asignaciones. El reloj se inyecta para poder probar la expiración.
    Un fallo de caché simplemente recalcula; no hay protección contra estampidas.
    """

    def __init__(self, ttl_segundos: int = 300, reloj: Callable[[], float] = time.monotonic) -> None:
        self._ttl = ttl_segundos
        self._reloj = reloj
        self._entradas: Dict[str, EntradaCache] = {}

    def get(self, clave: str) -> Optional[Any]:
        entrada = self._entradas.get(clave)
        if entrada is None:
            return None
        if entrada.expirada(self._reloj()):
            self._entradas.pop(clave, None)
            return None
        return entrada.valor

    def put(self, clave: str, valor: Any) -> None:
        self._entradas[clave] = EntradaCache(valor=valor, expira_en=self._reloj() + self._ttl)

    def get_or_compute(self, clave: str, calcular: Callable[[], Any]) -> Any:
        valor = self.get(clave)
        if valor is not None:
            logger.debug(f"Caché del árbol: acierto para '{clave}'.")
            return valor
        logger.debug(f"Caché del árbol: fallo para '{clave}', recalculando.")
        valor = calcular()
        self.put(clave, valor)
        return valor

    def invalidar(self, tipo: TipoArbol) -> None:
        clave = _CLAVES_POR_TIPO[tipo]
        if self._entradas.pop(clave, None) is not None:
            logger.info(f"Caché del árbol invalidada: '{clave}'.")

    def invalidar_todo(self) -> None:
        for tipo in TipoArbol:
            self.invalidar(tipo)

    def __contains__(self, clave: str) -> bool:
        return self.get(clave) is not None
