"""Logging setup for hosts that want datalayer output without configuring logging.

Modules log through logging.getLogger(__name__), so everything sits under
the 'datalayer' package logger. setup_logging only touches that logger and
leaves the root logger to the host application.
"""

import logging
import sys
from typing import TextIO

from datalayer.core.config import Settings, get_settings

PACKAGE_LOGGER = "datalayer"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_handler: logging.Handler | None = None


def setup_logging(
    settings: Settings | None = None, stream: TextIO | None = None
) -> logging.Logger:
    """Attach a stream handler (stdout by default) to the package logger.

    Level is DEBUG when settings.debug is True, otherwise INFO. Calling it
    again replaces the handler installed by the previous call.

    Returns:
        The configured 'datalayer' logger.
    """
    global _handler
    settings = settings or get_settings()
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    if _handler is not None:
        package_logger.removeHandler(_handler)
    _handler = logging.StreamHandler(stream or sys.stdout)
    _handler.setFormatter(logging.Formatter(LOG_FORMAT))
    package_logger.addHandler(_handler)
    package_logger.setLevel(logging.DEBUG if settings.debug else logging.INFO)
    return package_logger


def get_logger(name: str) -> logging.Logger:
    """Return the logger for name, nested under 'datalayer' if it is not already."""
    if name != PACKAGE_LOGGER and not name.startswith(f"{PACKAGE_LOGGER}."):
        name = f"{PACKAGE_LOGGER}.{name}"
    return logging.getLogger(name)
