"""Configuration module - environment settings and YAML rules."""

from adaptive_auth.common.config.settings import (
    Config,
    DeliveryBackend,
    Environment,
    LogLevel,
    StorageBackend,
    get_config,
    reset_config,
)
from adaptive_auth.common.config.rules import AuthRules, load_rules

__all__ = [
    "Config",
    "DeliveryBackend",
    "Environment",
    "LogLevel",
    "StorageBackend",
    "get_config",
    "reset_config",
    "AuthRules",
    "load_rules",
]
