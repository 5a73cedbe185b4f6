import os
from logging import config, getLogger
from typing import Any

LOGGER_NAME = "ipedge"

# Neither format includes %(client_addr)s: client addresses are never logged.
ACCESS_FORMAT = '%(levelprefix)s %(asctime)s - "%(request_line)s" %(status_code)s'
DEFAULT_FORMAT = "%(levelprefix)s %(asctime)s - %(name)s - %(message)s"


def build_log_config(level: str = "INFO") -> dict[str, Any]:
    """dictConfig for the service and uvicorn loggers at `level` (DEBUG, INFO, WARNING, ...)."""
    level = level.upper()
    formatter = {"datefmt": "%Y-%m-%d %H:%M:%S", "use_colors": None}
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "access": {"()": "uvicorn.logging.AccessFormatter", "fmt": ACCESS_FORMAT, **formatter},
            "default": {"()": "uvicorn.logging.DefaultFormatter", "fmt": DEFAULT_FORMAT, **formatter},
        },
        "handlers": {
            "access": {"class": "logging.StreamHandler", "formatter": "access", "stream": "ext://sys.stdout"},
            "default": {"class": "logging.StreamHandler", "formatter": "default", "stream": "ext://sys.stderr"},
        },
        "loggers": {
            LOGGER_NAME: {"handlers": ["default"], "level": level, "propagate": False},
            "uvicorn": {"handlers": ["default"], "level": level, "propagate": False},
            "uvicorn.error": {"level": level},
            "uvicorn.access": {"handlers": ["access"], "level": level, "propagate": False},
        },
    }


log_config = build_log_config(os.getenv("LOG_LEVEL", "INFO"))
config.dictConfig(log_config)

logger = getLogger(LOGGER_NAME)
