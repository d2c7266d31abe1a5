import os
import json
from typing import List, Union, Optional, Any
from pydantic import Field, field_validator, PostgresDsn, ValidationInfo
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

load_dotenv()

class Settings(BaseSettings):
    """
    Configuraciones de la aplicación, leídas desde variables de entorno.
    """
    # --- Configuración General del Proyecto ---
    PROJECT_NAME: str = os.getenv("PROJECT_NAME", "Intranet Control de Acceso API")
    API_V1_STR: str = os.getenv("API_V1_STR", "/api/v1")
    SECRET_KEY: str = str(os.getenv("SECRET_KEY", "cambiar-en-produccion"))
    ALGORITHM: str = os.getenv("ALGORITHM", "HS256")

    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

    # --- Configuración de Base de Datos ---
    POSTGRES_SERVER: str = os.getenv("POSTGRES_SERVER", "localhost")
    POSTGRES_PORT: str = os.getenv("POSTGRES_PORT", "5432")
    POSTGRES_USER: str = os.getenv("POSTGRES_USER", "postgres")
    POSTGRES_PASSWORD: str = os.getenv("POSTGRES_PASSWORD", "password")
    POSTGRES_DB: str = os.getenv("POSTGRES_DB", "intranet_dbv1")

    DATABASE_DRIVER: str = os.getenv("DATABASE_DRIVER", "psycopg")
    # Si se define DATABASE_URI en el entorno se usa tal cual (ej: sqlite en tests)
    DATABASE_URI: Optional[str] = Field(default=None, validate_default=True)

    @field_validator("DATABASE_URI", mode='before')
    @classmethod
    def assemble_db_connection(cls, v: Optional[str], info: ValidationInfo) -> Any:
        if isinstance(v, str) and v:
            return v

        driver = info.data.get("DATABASE_DRIVER", "psycopg")
        scheme = f"postgresql+{driver}"

        return str(PostgresDsn.build(
            scheme=scheme,
            username=info.data.get("POSTGRES_USER"),
            password=info.data.get("POSTGRES_PASSWORD"),
            host=info.data.get("POSTGRES_SERVER"),
            port=int(info.data.get("POSTGRES_PORT", 5432)),
            path=f"{info.data.get('POSTGRES_DB') or ''}",
        ))

    # --- Configuración de CORS ---
    BACKEND_CORS_ORIGINS: List[str] = []

    @field_validator("BACKEND_CORS_ORIGINS", mode='before')
    @classmethod
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> List[str]:
        if isinstance(v, str) and v:
            if v.startswith("[") and v.endswith("]"):
                try:
                    return json.loads(v)
                except json.JSONDecodeError:
                    pass
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        elif isinstance(v, list):
            return v
        return []

    # --- Configuración de Logging ---
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOGS_DIR: str = os.getenv("LOGS_DIR", "logs")

    # --- Identificadores del árbol de navegación usados como compuertas ---
    # Pestaña "Accesos a Módulos" (asignar/desasignar módulos a roles)
    PESTANA_ACCESOS_MODULOS_ID: int = int(os.getenv("PESTANA_ACCESOS_MODULOS_ID", "10"))
    # Pestaña "Accesos a Pestañas" (asignar/desasignar pestañas a roles)
    PESTANA_ACCESOS_PESTANAS_ID: int = int(os.getenv("PESTANA_ACCESOS_PESTANAS_ID", "11"))
    PESTANA_GESTION_MODULOS_ID: int = int(os.getenv("PESTANA_GESTION_MODULOS_ID", "14"))
    PESTANA_GESTION_PESTANAS_ID: int = int(os.getenv("PESTANA_GESTION_PESTANAS_ID", "16"))
    MODULO_ROLES_ID: int = int(os.getenv("MODULO_ROLES_ID", "10"))
    MODULO_AUDITORIAS_ID: int = int(os.getenv("MODULO_AUDITORIAS_ID", "5"))

    # --- Caché del árbol de navegación ---
    CACHE_ARBOL_TTL_SEGUNDOS: int = int(os.getenv("CACHE_ARBOL_TTL_SEGUNDOS", "300"))

    # --- Auditoría ---
    # False: la auditoría se escribe después del commit y su fallo no revierte la operación.
    # True: la auditoría viaja en la misma transacción que la mutación.
    AUDITORIA_EN_TRANSACCION: bool = os.getenv("AUDITORIA_EN_TRANSACCION", "false").lower() in ("1", "true", "yes")

    class Config:
        case_sensitive = True
        env_file = ".env"
        env_file_encoding = 'utf-8'
        extra = "ignore"

settings = Settings()
