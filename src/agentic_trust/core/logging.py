"""
Logging helpers for the ``agentic_trust`` logger tree.

Modules log through :func:`get_logger` children. :class:`DomainClients` only
sets the level; handlers are the host application's business unless a script
opts in with :func:`configure_logging`.
"""

import logging
import sys
from typing import TextIO

# Default Logger Name
LOGGER_NAME = "agentic_trust"

_HANDLER_NAME = "agentic_trust.stream"


def set_log_level(level: int | str) -> logging.Logger:
    """Set the level of the agentic_trust logger, leaving its handlers alone."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)
    return logger


def configure_logging(
    level: int | str = logging.INFO,
    stream: TextIO | None = None,
) -> logging.Logger:
    """
    Attach a readable stream handler to the agentic_trust logger.

    Calling it again replaces the handler installed by a previous call; other
    handlers are kept.

    Args:
        level: Logging level (e.g., logging.INFO, "DEBUG")
        stream: Output stream (defaults to stdout)

    Returns:
        The configured logger instance.
    """
    logger = set_log_level(level)
    for existing in [h for h in logger.handlers if h.get_name() == _HANDLER_NAME]:
        logger.removeHandler(existing)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.set_name(_HANDLER_NAME)
    handler.setLevel(level)
    handler.setFormatter(
        logging.Formatter(
            "[%(asctime)s] %(levelname)s [%(name)s] %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
        )
    )
    logger.addHandler(handler)

    # Records already printed here must not reach the root logger again
    logger.propagate = False

    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    """Get a child logger of agentic_trust."""
    if name:
        return logging.getLogger(f"{LOGGER_NAME}.{name}")
    return logging.getLogger(LOGGER_NAME)
