# app/core/logging_config.py

import logging
from logging.config import dictConfig

from app.core.config import settings

# Операции с балансами пишем отдельным форматом: по pid видно, какой воркер провел запись
LEDGER_FORMAT = "%(asctime)s [pid %(process)d] LEDGER %(levelname)s %(name)s: %(message)s"
DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def build_logging_config(level: str) -> dict:
    level = level.upper()
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {"format": DEFAULT_FORMAT, "datefmt": "%Y-%m-%d %H:%M:%S"},
            "ledger": {"format": LEDGER_FORMAT, "datefmt": "%Y-%m-%d %H:%M:%S"},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stdout",
            },
            "ledger_console": {
                "class": "logging.StreamHandler",
                "formatter": "ledger",
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            "uvicorn": {"handlers": ["console"], "level": "INFO"},
            "apscheduler": {"handlers": ["console"], "level": "WARNING", "propagate": False},
            "sqlalchemy.engine": {"handlers": ["console"], "level": "WARNING", "propagate": False},
            "app": {"handlers": ["console"], "level": level, "propagate": False},
            # Начисления, списания, дубликаты веб-хуков
            "app.services": {"handlers": ["ledger_console"], "level": level, "propagate": False},
        },
        "root": {"level": level, "handlers": ["console"]},
    }


def setup_logging(level: str | None = None):
    """Применяет конфигурацию логирования. Уровень по умолчанию берется из LOG_LEVEL."""
    dictConfig(build_logging_config(level or settings.LOG_LEVEL))
    logging.getLogger(__name__).debug("Logging configured.")
