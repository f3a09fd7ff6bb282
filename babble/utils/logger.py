"""
Logging helpers shared by the service, the router and the CLI.
"""

import json
import logging
import sys
from datetime import datetime
from typing import Optional

from babble.config import settings

PACKAGE_LOGGER = "babble"


class JsonFormatter(logging.Formatter):
    """Formatter that outputs one JSON object per record."""

    def format(self, record):
        log_data = {
            "timestamp": datetime.now().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if hasattr(record, "metrics"):
            log_data["metrics"] = record.metrics

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info),
            }

        return json.dumps(log_data, ensure_ascii=False)


def setup_logger(
    name: str,
    level: Optional[str] = None,
    json_format: Optional[bool] = None,
) -> logging.Logger:
    """
    Get a named logger with a stdout handler attached once.

    Args:
        name: Logger name, usually __name__
        level: Level name, defaults to settings.LOG_LEVEL
        json_format: Emit JSON lines, defaults to settings.LOG_JSON

    Returns:
        Configured logger
    """
    logger = logging.getLogger(name)
    logger.setLevel((level or settings.LOG_LEVEL).upper())

    if logger.handlers:
        return logger

    handler = logging.StreamHandler(sys.stdout)
    use_json = settings.LOG_JSON if json_format is None else json_format
    if use_json:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
    logger.addHandler(handler)
    logger.propagate = False
    return logger


def _log(level: int, message: str, data: Optional[dict], **kwargs):
    logger = setup_logger(PACKAGE_LOGGER)
    if data:
        logger.log(level, message, extra={"metrics": data}, **kwargs)
    else:
        logger.log(level, message, **kwargs)


def log_info(message: str, **data):
    _log(logging.INFO, message, data)


def log_warning(message: str, **data):
    _log(logging.WARNING, message, data)


def log_error(message: str, exc_info: bool = False, **data):
    _log(logging.ERROR, message, data, exc_info=exc_info)
