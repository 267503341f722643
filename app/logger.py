# app/logger.py
import logging
from typing import Optional

from app.config.settings import Settings

# Formato del log: Tiempo | Nivel | Módulo | Mensaje
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def resolve_level(settings: Optional[Settings] = None) -> int:
    """Nivel numérico a partir de `log_level` (CMS_LOG_LEVEL en el entorno o el .env)."""
    name = (settings or Settings()).log_level.upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def get_logger(name: str, settings: Optional[Settings] = None) -> logging.Logger:
    """
    Logger configurado con el nivel de la configuración. Inicializa basicConfig una sola vez.
    """
    level = resolve_level(settings)
    if not logging.getLogger().handlers:
        logging.basicConfig(level=level, format=LOG_FORMAT)
    logger = logging.getLogger(name)
    logger.setLevel(level)
    return logger
