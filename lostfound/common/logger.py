"""Logging setup for lostfound.

Workflow modules log through ``logging.getLogger(__name__)``. ``setup_logger``
attaches console and optional rotating file handlers to the package logger
as described by ``Settings``; calling it again with new settings replaces
those handlers instead of stacking more.
"""

import logging
import logging.handlers
from pathlib import Path
from typing import Optional

from lostfound.core.config import Settings, get_settings

PACKAGE_LOGGER = "lostfound"
LOG_FORMAT = "%(asctime)s [%(levelname)s] [%(name)s] %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"


def _handler_names(name: str):
    return {f"{name}.console", f"{name}.file"}


def setup_logger(
    settings: Optional[Settings] = None,
    *,
    name: str = PACKAGE_LOGGER,
    console: bool = True,
) -> logging.Logger:
    """Configure the package logger from ``settings``.

    Args:
        settings: Level, log directory and file rotation; defaults to the
            environment-driven settings
        name: Logger to configure; the package logger covers every module
        console: Attach a stderr handler

    Returns:
        The configured logger
    """
    settings = settings or get_settings()
    logger = logging.getLogger(name)
    logger.setLevel(settings.log_level)

    owned = _handler_names(name)
    for handler in [h for h in logger.handlers if h.get_name() in owned]:
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    if settings.file_logging:
        log_dir = Path(settings.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_dir / f"{name}.log",
            maxBytes=settings.log_max_bytes,
            backupCount=settings.log_backup_count,
        )
        file_handler.set_name(f"{name}.file")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler()
        console_handler.set_name(f"{name}.console")
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger
