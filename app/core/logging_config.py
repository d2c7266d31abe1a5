import logging
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from datetime import datetime

from app.core.config import settings

LOGS_DIR = Path(settings.LOGS_DIR)
LOGS_DIR.mkdir(parents=True, exist_ok=True)

LOG_FILENAME = LOGS_DIR / f"intranet_acceso_{datetime.now().strftime('%Y%m%d')}.log"

LOG_LEVEL = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

LOG_FORMAT = "%(asctime)s.%(msecs)03d [%(levelname)-8s] [%(name)s] [%(process)d:%(threadName)s] [%(filename)s:%(lineno)d] - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

console_handler = logging.StreamHandler(sys.stdout)
console_handler.setFormatter(formatter)
console_handler.setLevel(LOG_LEVEL)

# Rota cada medianoche y conserva las dos últimas semanas
file_handler = TimedRotatingFileHandler(
    filename=LOG_FILENAME,
    when="midnight",
    interval=1,
    backupCount=14,
    encoding='utf-8',
    delay=True
)
file_handler.setFormatter(formatter)
file_handler.setLevel(LOG_LEVEL)

# Asignaciones, cascadas y auditoría se copian además a un archivo propio
LOG_ACCESOS_FILENAME = LOGS_DIR / f"accesos_{datetime.now().strftime('%Y%m%d')}.log"
LOGGERS_ACCESOS = (
    "app.api.routes.control_acceso",
    "app.services.control_acceso",
    "app.services.modulo",
    "app.services.auditoria",
)

accesos_handler = TimedRotatingFileHandler(
    filename=LOG_ACCESOS_FILENAME,
    when="midnight",
    interval=1,
    backupCount=90,
    encoding='utf-8',
    delay=True
)
accesos_handler.setFormatter(formatter)
accesos_handler.setLevel(logging.INFO)

def setup_logging():
    """Configura los manejadores y el nivel para el logger raíz y loggers específicos."""
    root_logger = logging.getLogger()
    root_logger.setLevel(LOG_LEVEL)
    # Limpiar handlers existentes para evitar duplicados con --reload
    root_logger.handlers.clear()
    root_logger.addHandler(console_handler)
    root_logger.addHandler(file_handler)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").setLevel(logging.ERROR)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    for nombre in LOGGERS_ACCESOS:
        logger_accesos = logging.getLogger(nombre)
        if accesos_handler not in logger_accesos.handlers:
            logger_accesos.addHandler(accesos_handler)

    root_logger.info("="*50)
    root_logger.info("Configuración de Logging Iniciada")
    root_logger.info(f"Nivel de Log: {logging.getLevelName(LOG_LEVEL)}")
    root_logger.info(f"Archivo de Log: {LOG_FILENAME}")
    root_logger.info(f"Archivo de accesos: {LOG_ACCESOS_FILENAME}")
    root_logger.info("="*50)
