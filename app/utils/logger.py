"""Logging configuration and utilities"""
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from app.core.config import settings

ROOT_LOGGER_NAME = "gemini_gateway"


def setup_logger(name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    """Setup and configure the application logger.

    Component loggers created with ``get_logger`` are children of this one and
    share its handlers.
    """

    log_dir = Path(settings.LOG_FILE).parent
    log_dir.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    # Avoid duplicate handlers on re-import (uvicorn reload, tests)
    if logger.handlers:
        return logger

    detailed_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    console_formatter = logging.Formatter(
        '%(asctime)s - %(levelname)s - [%(name)s] %(message)s',
        datefmt='%H:%M:%S'
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(console_formatter)

    file_handler = RotatingFileHandler(
        settings.LOG_FILE,
        maxBytes=5 * 1024 * 1024,
        backupCount=3,
        encoding="utf-8"
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(detailed_formatter)

    logger.addHandler(console_handler)
    logger.addHandler(file_handler)

    # httpx logs one INFO line per outbound request
    logging.getLogger("httpx").setLevel(logging.WARNING)

    return logger


def get_logger(component: str) -> logging.Logger:
    """Return a child logger, e.g. ``gemini_gateway.keys``"""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{component}")


logger = setup_logger()
