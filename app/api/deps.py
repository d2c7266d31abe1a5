from typing import Generator, Optional
from fastapi import Depends, HTTPException, status, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
import logging

from app.core.config import settings
from app.core import security
from app.core.cache import CacheArbol
from app.db.session import SessionLocal

from app.models.usuario import Usuario

from app.services.asignacion import TipoNodo
from app.services.permiso import permiso_resolver
from app.services.control_acceso import ControlAccesoService, ContextoActor

logger = logging.getLogger(__name__)


# --- Dependencia para la Sesión de Base de Datos ---
def get_db() -> Generator[Session, None, None]:
    """Dependency para obtener la sesión de base de datos."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

# --- Caché del árbol (una por proceso) ---
cache_arbol = CacheArbol(ttl_segundos=settings.CACHE_ARBOL_TTL_SEGUNDOS)

def get_cache_arbol() -> CacheArbol:
    return cache_arbol

def get_control_acceso_service(cache: CacheArbol = Depends(get_cache_arbol)) -> ControlAccesoService:
    return ControlAccesoService(cache)

# --- Dependencia para Autenticación ---
# El token lo emite el servicio de inicio de sesión de la intranet.
reusable_oauth2 = OAuth2PasswordBearer(
    tokenUrl=f"{settings.API_V1_STR}/auth/login/access-token"
)

def get_current_user(
    db: Session = Depends(get_db), token: str = Depends(reusable_oauth2)
) -> Usuario:
    """Obtiene el usuario actual a partir del token JWT."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="No se pudieron validar las credenciales",
        headers={"WWW-Authenticate": "Bearer"},
    )
    token_data = security.decode_access_token(token)

    if not token_data or not token_data.sub:
        logger.warning("Error de validación/JWT en token.")
        raise credentials_exception

    user = db.get(Usuario, token_data.sub)

    if not user:
        logger.warning(f"Usuario no encontrado para ID {token_data.sub} en token válido.")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Usuario no encontrado.")

    logger.debug(f"get_current_user: Usuario '{user.nombre_usuario}' (ID: {user.id}) con rol {user.rol_id} cargado.")
    return user

def get_current_active_user(
    current_user: Usuario = Depends(get_current_user),
) -> Usuario:
    """Obtiene el usuario actual y verifica que esté activo."""
    if not current_user.activo:
        logger.warning(f"Acceso denegado: Usuario inactivo {current_user.nombre_usuario} (ID: {current_user.id}).")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="El usuario está inactivo.")
    return current_user

def get_contexto_actor(current_user: Usuario = Depends(get_current_active_user)) -> ContextoActor:
    """Quién ejecuta la operación, para autorización y auditoría."""
    return ContextoActor(usuario_id=current_user.id, rol_id=current_user.rol_id)


class PermisoNodoChecker:
    """
    Clase para usar como dependencia de FastAPI para verificar el acceso del
    rol del usuario a un nodo del árbol (módulo o pestaña).

    Sin `permiso` basta con que exista la asignación; con `permiso` el token
    debe estar entre los permisos asignados.
    """
    tipo: TipoNodo = TipoNodo.PESTANA

    def __init__(self, nodo_id: int, permiso: Optional[str] = None):
        self.nodo_id = nodo_id
        self.permiso = permiso

    def __call__(self, request: Request, db: Session = Depends(get_db), current_user: Usuario = Depends(get_current_active_user)):
        logger.debug(
            f"{type(self).__name__}: Verificando '{self.permiso or 'acceso'}' en {self.tipo.value} {self.nodo_id} "
            f"para '{current_user.nombre_usuario}' en '{request.url.path}'."
        )
        if self.permiso is None:
            permitido = permiso_resolver.tiene_acceso(db, current_user.rol_id, self.nodo_id, self.tipo)
        else:
            permitido = permiso_resolver.tiene_permiso(db, current_user.rol_id, self.nodo_id, self.permiso, self.tipo)

        if not permitido:
            logger.warning(
                f"Acceso denegado a '{current_user.nombre_usuario}' (rol {current_user.rol_id}): "
                f"requiere '{self.permiso or 'acceso'}' en {self.tipo.value} {self.nodo_id}."
            )
            if self.permiso is not None:
                detalle = "No tiene permiso para realizar esta acción."
            elif self.tipo == TipoNodo.MODULO:
                detalle = "No tienes acceso a este módulo."
            else:
                detalle = "No tienes acceso a esta pestaña."
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detalle)
        logger.debug(f"{type(self).__name__}: Acceso concedido a '{current_user.nombre_usuario}'.")


class PermisoPestanaChecker(PermisoNodoChecker):
    tipo = TipoNodo.PESTANA


class PermisoModuloChecker(PermisoNodoChecker):
    tipo = TipoNodo.MODULO
