"""
Logging configuration for vault-gcp-token.

Library modules only ever call ``get_logger``; handlers are installed by the
application (or the bundled CLI) through ``configure_logging``.
"""

import logging
import sys
from typing import Optional, TextIO, Union

from pythonjsonlogger.json import JsonFormatter

PACKAGE_LOGGER = "vault_gcp_token"

_HANDLER_NAME = "vault_gcp_token.console"


def configure_logging(
    level: Union[str, int] = "INFO",
    json_format: bool = True,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """
    Configure the package logger with a single console handler.

    Calling this more than once replaces the handler rather than stacking
    a new one.

    Args:
        level: Log level name or number
        json_format: Emit JSON lines (python-json-logger) instead of plain text
        stream: Stream to write to (defaults to stderr)

    Returns:
        The configured package logger
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper())

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)

    for handler in list(logger.handlers):
        if handler.get_name() == _HANDLER_NAME:
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.set_name(_HANDLER_NAME)

    if json_format:
        formatter = JsonFormatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s"
        )
    else:
        formatter = logging.Formatter(
            "[%(asctime)s] %(levelname)s [%(name)s] %(message)s"
        )

    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.propagate = False

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger with the specified name."""
    return logging.getLogger(name)


def log_with_context(logger, level, message, **context):
    """Log with additional context as structured fields."""
    if isinstance(level, str):
        level = getattr(logging, level.upper())

    logger.log(level, message, extra=context)
