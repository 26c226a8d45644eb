"""Common utilities - logging, config, exceptions."""

from adaptive_auth.common.logging.logger import get_logger
from adaptive_auth.common.config import (
    AuthRules,
    Config,
    get_config,
    load_rules,
    reset_config,
)
from adaptive_auth.common.exceptions import (
    AdaptiveAuthException,
    AlertDispatchError,
    ConcurrencyConflictError,
    ConfigurationError,
    DeliveryError,
    PersistenceError,
    ValidationError,
)

__all__ = [
    # Logging
    "get_logger",
    # Config
    "AuthRules",
    "Config",
    "get_config",
    "load_rules",
    "reset_config",
    # Exceptions
    "AdaptiveAuthException",
    "AlertDispatchError",
    "ConcurrencyConflictError",
    "ConfigurationError",
    "DeliveryError",
    "PersistenceError",
    "ValidationError",
]
