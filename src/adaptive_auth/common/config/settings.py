"""Configuration management - Centralized configuration for adaptive-auth.

Provides environment-aware configuration with sensible defaults.
All configuration is loaded from environment variables with fallbacks.
Business thresholds (risk weights, MFA limits, session timeouts) live
in the YAML rules file, see `adaptive_auth.common.config.rules`.
"""

import os
import secrets
import warnings
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional

from adaptive_auth.common.exceptions import ConfigurationError


class Environment(str, Enum):
    """Application environment."""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class LogLevel(str, Enum):
    """Logging levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class StorageBackend(str, Enum):
    """Persistence backend types."""
    MEMORY = "memory"
    DYNAMODB = "dynamodb"


class DeliveryBackend(str, Enum):
    """One-time code and alert delivery backends."""
    LOG = "log"
    AWS = "aws"


def _get_project_root() -> Path:
    """Get the project root directory."""
    # settings.py -> config -> common -> adaptive_auth -> src -> project_root
    current = Path(__file__).resolve()
    return current.parent.parent.parent.parent.parent


def _env(name: str, default: Optional[str] = None):
    """Factory reading one AUTH_* variable at construction time."""
    return lambda: os.getenv(name, default)


def _env_as(cast, name: str, default: str):
    return lambda: cast(os.getenv(name, default))


def _split_csv(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


@dataclass
class Config:
    """Central configuration object for adaptive-auth.

    All settings can be overridden via environment variables prefixed with AUTH_.

    Example:
        AUTH_ENVIRONMENT=production
        AUTH_STORAGE_BACKEND=dynamodb
        AUTH_DYNAMODB_TABLE=adaptive-auth
        AUTH_OTP_HASH_KEY=<64 hex chars>
    """

    environment: Environment = field(
        default_factory=_env_as(Environment, "AUTH_ENVIRONMENT", "development"))
    debug: bool = field(
        default_factory=_env_as(lambda v: v.lower() == "true", "AUTH_DEBUG", "false"))
    log_level: LogLevel = field(
        default_factory=_env_as(lambda v: LogLevel(v.upper()), "AUTH_LOG_LEVEL", "INFO"))

    project_root: Path = field(default_factory=_get_project_root)
    rules_file: Optional[Path] = field(
        default_factory=_env_as(lambda v: Path(v) if v else None, "AUTH_RULES_FILE", ""))

    storage_backend: StorageBackend = field(
        default_factory=_env_as(StorageBackend, "AUTH_STORAGE_BACKEND", "memory"))
    dynamodb_table: Optional[str] = field(default_factory=_env("AUTH_DYNAMODB_TABLE"))
    aws_region: str = field(default_factory=_env("AWS_DEFAULT_REGION", "us-east-1"))

    otp_hash_key: Optional[str] = field(default_factory=_env("AUTH_OTP_HASH_KEY"))

    delivery_backend: DeliveryBackend = field(
        default_factory=_env_as(DeliveryBackend, "AUTH_DELIVERY_BACKEND", "log"))
    alert_topic_arn: Optional[str] = field(default_factory=_env("AUTH_ALERT_TOPIC_ARN"))
    ses_sender: Optional[str] = field(default_factory=_env("AUTH_SES_SENDER"))

    api_host: str = field(default_factory=_env("AUTH_API_HOST", "0.0.0.0"))
    api_port: int = field(default_factory=_env_as(int, "AUTH_API_PORT", "8000"))
    cors_origins: List[str] = field(
        default_factory=_env_as(_split_csv, "AUTH_CORS_ORIGINS", ""))

    def __post_init__(self):
        """Validate configuration after initialization."""
        if self.storage_backend == StorageBackend.DYNAMODB and not self.dynamodb_table:
            raise ConfigurationError(
                "AUTH_DYNAMODB_TABLE must be set when using DynamoDB storage"
            )

        if self.delivery_backend == DeliveryBackend.AWS and not self.ses_sender:
            raise ConfigurationError(
                "AUTH_SES_SENDER must be set when using AWS delivery"
            )

        if not self.otp_hash_key:
            if self.environment == Environment.PRODUCTION:
                raise ConfigurationError(
                    "AUTH_OTP_HASH_KEY must be set in production"
                )
            # Ephemeral key: codes do not survive a process restart
            self.otp_hash_key = secrets.token_hex(32)

        if self.is_production and self.debug:
            warnings.warn("AUTH_DEBUG is enabled in production", RuntimeWarning, stacklevel=2)

    @property
    def config_dir(self) -> Path:
        """Get the config directory path."""
        return self.project_root / "config"

    @property
    def resolved_rules_file(self) -> Path:
        """Rules file from env, or the bundled default."""
        return self.rules_file or self.config_dir / "auth_rules.yaml"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == Environment.PRODUCTION

    @property
    def is_development(self) -> bool:
        return self.environment == Environment.DEVELOPMENT


# Singleton instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Process-wide Config, built from the environment on first use."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def reset_config() -> None:
    """Reset the global configuration (for testing)."""
    global _config
    _config = None
