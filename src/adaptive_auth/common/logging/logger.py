"""Centralized logging configuration.

Modules log through `logging.getLogger(__name__)`. Entry points call
`configure_logging` once so every `adaptive_auth.*` logger shares one
handler and the level from AUTH_LOG_LEVEL.
"""

import logging
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
ROOT_LOGGER = "adaptive_auth"


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Attach a stream handler to the package logger. Safe to call twice."""
    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(getattr(logging, level.upper()))
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    return root


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """Get a logger, optionally overriding its level."""
    logger = logging.getLogger(name)
    if level:
        logger.setLevel(getattr(logging, level.upper()))
    return logger
