import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session
from sqlalchemy import select

from app.core.cache import CacheArbol, CLAVE_MODULOS, CLAVE_PESTANAS
from app.models.modulo import Modulo
from app.models.pestana import Pestana
from app.schemas.modulo import ModuloListado, ModuloDisponible
from app.schemas.pestana import PestanaListado

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RutaResuelta:
    ruta: str
    padre_eliminado: bool


def ruta_completa(modulo: Modulo, padre: Optional[Modulo]) -> RutaResuelta:
    """
    Ruta completa de un módulo: la del padre más la propia cuando el padre
    existe; si `modulo_padre_id` apunta a un padre que ya no está, se usa la
    ruta propia y se marca `padre_eliminado`. Nunca lanza excepción.
    """
    if padre is not None:
        return RutaResuelta(ruta=f"{padre.ruta}{modulo.ruta}", padre_eliminado=False)
    return RutaResuelta(ruta=modulo.ruta, padre_eliminado=modulo.modulo_padre_id is not None)


class IndiceModulos:
    """
    Índice por id de los módulos vivos (no eliminados). Toda resolución de
    padres pasa por aquí y devuelve `None` en lugar de seguir una referencia rota.
    """

    def __init__(self, modulos: Iterable[Modulo]):
        self._por_id: Dict[int, Modulo] = {m.id: m for m in modulos if m.deleted_at is None}

    @classmethod
    def cargar(cls, db: Session) -> "IndiceModulos":
        statement = select(Modulo).where(Modulo.deleted_at.is_(None)).order_by(Modulo.id)
        return cls(db.execute(statement).scalars().all())

    def get(self, modulo_id: Optional[int]) -> Optional[Modulo]:
        if modulo_id is None:
            return None
        return self._por_id.get(modulo_id)

    def padre(self, modulo: Modulo) -> Optional[Modulo]:
        return self.get(modulo.modulo_padre_id)

    def ruta_completa(self, modulo: Modulo) -> RutaResuelta:
        return ruta_completa(modulo, self.padre(modulo))

    def raices(self) -> List[Modulo]:
        """
        Módulos de primer nivel ordenados por id: los que no tienen padre y los
        huérfanos cuyo padre ya no existe, que se muestran en la raíz.
        """
        return [m for m in self._por_id.values() if self.padre(m) is None]

    def hijos(self, padre_id: int) -> List[Modulo]:
        return [m for m in self._por_id.values() if m.modulo_padre_id == padre_id]

    def huerfanos(self) -> List[Modulo]:
        """Módulos cuyo padre declarado ya no existe."""
        return [m for m in self._por_id.values() if m.modulo_padre_id is not None and self.padre(m) is None]

    def __iter__(self):
        return iter(self._por_id.values())

    def __len__(self) -> int:
        return len(self._por_id)


def pestanas_vivas(modulo: Modulo) -> List[Pestana]:
    return [p for p in modulo.pestanas if p.deleted_at is None]


class ArbolService:
    """
    Lecturas del árbol de navegación (módulos, hijos y pestañas).

    Los listados planos con rutas completas son costosos de construir y se
    sirven a través de la caché que recibe cada método.
    """

    def get_module_tree(self, db: Session) -> List[Dict]:
        """Raíces ordenadas por nombre (hijos por id), con hijos y pestañas resueltos."""
        indice = IndiceModulos.cargar(db)
        arbol = []
        for raiz in sorted(indice.raices(), key=lambda m: m.nombre):
            arbol.append({
                "modulo": raiz,
                "pestanas": pestanas_vivas(raiz),
                "hijos": [
                    {"modulo": hijo, "pestanas": pestanas_vivas(hijo), "hijos": []}
                    for hijo in indice.hijos(raiz.id)
                ],
            })
        return arbol

    def get_available_tab_hosts(self, db: Session) -> List[ModuloDisponible]:
        """Módulos no padre, candidatos a alojar pestañas, ordenados por nombre."""
        indice = IndiceModulos.cargar(db)
        disponibles = []
        for modulo in sorted((m for m in indice if not m.es_padre), key=lambda m: m.nombre):
            resuelta = indice.ruta_completa(modulo)
            disponibles.append(ModuloDisponible(
                id=modulo.id,
                nombre=modulo.nombre,
                ruta=modulo.ruta,
                ruta_completa=resuelta.ruta,
                padre_eliminado=resuelta.padre_eliminado,
            ))
        return disponibles

    def construir_listado_modulos(self, db: Session) -> List[ModuloListado]:
        indice = IndiceModulos.cargar(db)
        listado = []
        for modulo in sorted(indice, key=lambda m: m.id, reverse=True):
            padre = indice.padre(modulo)
            resuelta = ruta_completa(modulo, padre)
            listado.append(ModuloListado(
                id=modulo.id,
                nombre=modulo.nombre,
                icono=modulo.icono,
                ruta=modulo.ruta,
                ruta_completa=resuelta.ruta,
                es_padre=modulo.es_padre,
                modulo_padre_id=modulo.modulo_padre_id,
                modulo_padre_nombre=padre.nombre if padre else None,
                modulo_padre_ruta=padre.ruta if padre else None,
                padre_eliminado=resuelta.padre_eliminado,
                permisos_extra=modulo.permisos_extra or [],
                cant_hijos=len(indice.hijos(modulo.id)),
                cant_pestanas=len(pestanas_vivas(modulo)),
            ))
        logger.info(f"Listado de módulos construido ({len(listado)} módulos).")
        return listado

    def construir_listado_pestanas(self, db: Session) -> List[PestanaListado]:
        indice = IndiceModulos.cargar(db)
        statement = select(Pestana).where(Pestana.deleted_at.is_(None)).order_by(Pestana.id.desc())
        listado = []
        for pestana in db.execute(statement).scalars().all():
            modulo = indice.get(pestana.modulo_id)
            if modulo is None:
                listado.append(PestanaListado(
                    id=pestana.id,
                    nombre=pestana.nombre,
                    ruta=pestana.ruta,
                    ruta_completa=pestana.ruta,
                    modulo_id=pestana.modulo_id,
                    jerarquia="Módulo eliminado",
                    modulo_eliminado=True,
                    permisos_extra=pestana.permisos_extra or [],
                ))
                continue

            padre = indice.padre(modulo)
            resuelta = ruta_completa(modulo, padre)
            jerarquia = f"{padre.nombre} > {modulo.nombre}" if padre else modulo.nombre
            listado.append(PestanaListado(
                id=pestana.id,
                nombre=pestana.nombre,
                ruta=pestana.ruta,
                ruta_completa=f"{resuelta.ruta}{pestana.ruta}",
                modulo_id=modulo.id,
                modulo_nombre=modulo.nombre,
                modulo_ruta_completa=resuelta.ruta,
                jerarquia=jerarquia,
                padre_eliminado=resuelta.padre_eliminado,
                permisos_extra=pestana.permisos_extra or [],
            ))
        logger.info(f"Listado de pestañas construido ({len(listado)} pestañas).")
        return listado

    def listado_modulos(self, db: Session, cache: CacheArbol) -> List[ModuloListado]:
        return cache.get_or_compute(CLAVE_MODULOS, lambda: self.construir_listado_modulos(db))

    def listado_pestanas(self, db: Session, cache: CacheArbol) -> List[PestanaListado]:
        return cache.get_or_compute(CLAVE_PESTANAS, lambda: self.construir_listado_pestanas(db))

arbol_service = ArbolService()
