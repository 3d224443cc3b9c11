"""
Configuração de logging da aplicação.

API e worker de notificações rodam em processos separados e escrevem no
mesmo stdout; cada linha leva o componente que a emitiu:

    2026-03-02 10:00:00 | INFO     | worker | circulation.services.notification | Job ... entregue
"""

import logging
import sys
from typing import Optional

from circulation.core.config import get_settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | {component} | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Bibliotecas que só interessam em WARNING ou acima
NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpx", "httpcore", "asyncio")


def setup_logging(level: Optional[str] = None, component: str = "api") -> None:
    """
    Configura o root logger.

    Args:
        level: Nível de logging. Se não fornecido, usa LOG_LEVEL do .env
        component: Identificação do processo ("api" ou "worker")
    """
    settings = get_settings()
    log_level = (level or settings.LOG_LEVEL).upper()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT.format(component=component), datefmt=DATE_FORMAT))

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if settings.DEBUG:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)

    logging.getLogger(__name__).info(f"Logging configurado ({component}) com nível: {log_level}")


def get_logger(name: str) -> logging.Logger:
    """Logger do módulo (use __name__)."""
    return logging.getLogger(name)
