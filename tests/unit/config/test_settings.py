"""Tests for configuration settings.

Tests the Config class and environment variable handling.
"""

import os
from unittest.mock import patch

import pytest

from adaptive_auth.common.config.settings import (
    Config,
    DeliveryBackend,
    Environment,
    StorageBackend,
    get_config,
    reset_config,
)
from adaptive_auth.common.exceptions import ConfigurationError


class TestEnvironment:
    """Tests for Environment enum."""

    def test_environment_values(self):
        assert Environment.DEVELOPMENT.value == "development"
        assert Environment.STAGING.value == "staging"
        assert Environment.PRODUCTION.value == "production"


class TestConfig:
    """Tests for Config class."""

    def test_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            config = Config()

        assert config.environment == Environment.DEVELOPMENT
        assert config.storage_backend == StorageBackend.MEMORY
        assert config.delivery_backend == DeliveryBackend.LOG
        assert config.api_port == 8000
        assert config.cors_origins == []
        assert config.is_development is True
        assert config.resolved_rules_file.name == "auth_rules.yaml"

    def test_ephemeral_hash_key_outside_production(self):
        with patch.dict(os.environ, {}, clear=True):
            first = Config()
            second = Config()

        assert len(first.otp_hash_key) == 64
        assert first.otp_hash_key != second.otp_hash_key

    def test_production_requires_hash_key(self):
        with patch.dict(os.environ, {"AUTH_ENVIRONMENT": "production"}, clear=True):
            with pytest.raises(ConfigurationError):
                Config()

    def test_debug_in_production_warns(self):
        env = {"AUTH_ENVIRONMENT": "production", "AUTH_OTP_HASH_KEY": "k" * 64, "AUTH_DEBUG": "true"}
        with patch.dict(os.environ, env, clear=True):
            with pytest.warns(RuntimeWarning):
                config = Config()

        assert config.is_production is True

    def test_log_level_is_case_insensitive(self):
        with patch.dict(os.environ, {"AUTH_LOG_LEVEL": "debug"}, clear=True):
            assert Config().log_level.value == "DEBUG"

    def test_dynamodb_requires_table(self):
        with patch.dict(os.environ, {"AUTH_STORAGE_BACKEND": "dynamodb"}, clear=True):
            with pytest.raises(ConfigurationError):
                Config()

    def test_aws_delivery_requires_sender(self):
        with patch.dict(os.environ, {"AUTH_DELIVERY_BACKEND": "aws"}, clear=True):
            with pytest.raises(ConfigurationError):
                Config()

    def test_env_overrides(self):
        env = {
            "AUTH_ENVIRONMENT": "staging",
            "AUTH_OTP_HASH_KEY": "k" * 64,
            "AUTH_CORS_ORIGINS": "https://app.example.com, https://admin.example.com",
            "AUTH_RULES_FILE": "/etc/auth/rules.yaml",
            "AUTH_API_PORT": "9000",
        }
        with patch.dict(os.environ, env, clear=True):
            config = Config()

        assert config.environment == Environment.STAGING
        assert config.otp_hash_key == "k" * 64
        assert config.cors_origins == ["https://app.example.com", "https://admin.example.com"]
        assert str(config.resolved_rules_file) == "/etc/auth/rules.yaml"
        assert config.api_port == 9000


class TestConfigSingleton:
    """Tests for config singleton functions."""

    def test_get_config_returns_same_instance(self):
        reset_config()
        try:
            assert get_config() is get_config()
        finally:
            reset_config()

    def test_reset_config(self):
        reset_config()
        first = get_config()
        reset_config()
        try:
            assert get_config() is not first
        finally:
            reset_config()
