from __future__ import annotations

import logging
import logging.config
from pathlib import Path
from typing import Any

from dermascan.core.config import settings

_CONFIGURED = False


def configure_logging(force: bool = False) -> None:
    """
    Configure logging for the DermaScan API and the uvicorn server.

    By default this is INFO to the console only: LOG_FILE is unset, so no
    file handler is created. Setting LOG_FILE adds a UTF-8 file handler (its
    directory is created on demand) shared by the root and uvicorn loggers.
    Runs once per process unless `force` is passed.
    """
    global _CONFIGURED
    if _CONFIGURED and not force:
        return

    log_level = settings.LOG_LEVEL.upper()
    log_format = (
        settings.LOG_FORMAT
        or "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"
    )
    date_format = settings.LOG_DATE_FORMAT or "%Y-%m-%d %H:%M:%S"
    handlers: dict[str, Any] = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
        }
    }

    handler_names = ["console"]

    if settings.LOG_FILE:
        log_file_path = Path(settings.LOG_FILE).expanduser()
        try:
            log_file_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logging.getLogger(__name__).warning("Failed to prepare log directory for %s: %s", log_file_path, exc)
        else:
            handlers["file"] = {
                "class": "logging.FileHandler",
                "formatter": "standard",
                "filename": str(log_file_path),
                "encoding": "utf-8",
            }
            handler_names.append("file")

    uvicorn_logger = {
        "handlers": handler_names,
        "level": log_level,
        "propagate": False,
    }
    config: dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": log_format,
                "datefmt": date_format,
            }
        },
        "handlers": handlers,
        "loggers": {
            "": {
                "handlers": handler_names,
                "level": log_level,
            },
            "uvicorn": dict(uvicorn_logger),
            "uvicorn.error": dict(uvicorn_logger),
            "uvicorn.access": dict(uvicorn_logger),
        },
    }

    logging.config.dictConfig(config)
    logging.getLogger(__name__).debug("Logging configured (level=%s)", log_level)
    _CONFIGURED = True
