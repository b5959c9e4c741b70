"""Unit tests for configuration module.

Tests the TransferConfig class including validation, environment loading
(with the unprefixed fallbacks), and immutability.
"""

import logging

import pytest
from pydantic import ValidationError

from idempotent_transfer.config import TransferConfig


class TestTransferConfigDefaults:
    """Tests for default configuration values."""

    def test_default_values(self) -> None:
        config = TransferConfig()

        assert config.database_url == "sqlite:///transfers.db"
        assert config.ephemeral_store == "memory"
        assert config.redis_url == "redis://localhost:6379/0"
        assert config.lock_ttl_seconds == 10
        assert config.response_cache_ttl_seconds == 86400
        assert config.chaos_mode is False
        assert config.chaos_header == "X-Simulate-Chaos"
        assert config.cache_key_prefix == "idempotency:"
        assert config.lock_key_prefix == "lock:"
        assert config.cleanup_interval_seconds == 60
        assert config.log_level == "INFO"
        assert config.json_logs is True

    def test_config_is_frozen(self) -> None:
        config = TransferConfig()
        with pytest.raises(ValidationError):
            config.lock_ttl_seconds = 20  # type: ignore[misc]


class TestFieldValidation:
    """Tests for range checks and normalization."""

    @pytest.mark.parametrize("ttl", [0, -1, 301])
    def test_lock_ttl_out_of_range(self, ttl: int) -> None:
        with pytest.raises(ValidationError) as exc_info:
            TransferConfig(lock_ttl_seconds=ttl)
        assert "lock_ttl_seconds must be between 1 and 300" in str(exc_info.value)

    @pytest.mark.parametrize("ttl", [0, 604801])
    def test_response_cache_ttl_out_of_range(self, ttl: int) -> None:
        with pytest.raises(ValidationError):
            TransferConfig(response_cache_ttl_seconds=ttl)

    def test_cleanup_interval_out_of_range(self) -> None:
        with pytest.raises(ValidationError):
            TransferConfig(cleanup_interval_seconds=0)

    def test_timeouts_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            TransferConfig(redis_timeout_seconds=0)
        with pytest.raises(ValidationError):
            TransferConfig(database_timeout_seconds=-1.0)

    def test_unknown_ephemeral_store_rejected(self) -> None:
        with pytest.raises(ValidationError):
            TransferConfig(ephemeral_store="file")  # type: ignore[arg-type]

    def test_bare_redis_address_normalized(self) -> None:
        config = TransferConfig(redis_url="cache:6379")
        assert config.redis_url == "redis://cache:6379/0"

    def test_full_redis_url_kept(self) -> None:
        config = TransferConfig(redis_url="rediss://user:pw@cache:6380/2")
        assert config.redis_url == "rediss://user:pw@cache:6380/2"

    def test_log_level_normalized(self) -> None:
        config = TransferConfig(log_level="debug")
        assert config.log_level == "DEBUG"
        assert config.log_level_number == logging.DEBUG

    def test_invalid_log_level(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            TransferConfig(log_level="verbose")
        assert "Invalid log level" in str(exc_info.value)


class TestFromEnv:
    """Tests for TransferConfig.from_env()."""

    def test_prefixed_variables(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TRANSFER_LOCK_TTL_SECONDS", "15")
        monkeypatch.setenv("TRANSFER_EPHEMERAL_STORE", "redis")
        monkeypatch.setenv("TRANSFER_REDIS_TIMEOUT_SECONDS", "0.5")
        monkeypatch.setenv("TRANSFER_JSON_LOGS", "false")

        config = TransferConfig.from_env()

        assert config.lock_ttl_seconds == 15
        assert config.ephemeral_store == "redis"
        assert config.redis_timeout_seconds == 0.5
        assert config.json_logs is False

    def test_legacy_fallbacks(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("TRANSFER_DATABASE_URL", raising=False)
        monkeypatch.delenv("TRANSFER_REDIS_URL", raising=False)
        monkeypatch.delenv("TRANSFER_CHAOS_MODE", raising=False)
        monkeypatch.setenv("DB_URL", "postgresql+psycopg://user:pw@db:5432/payments")
        monkeypatch.setenv("REDIS_ADDR", "redis:6379")
        monkeypatch.setenv("CHAOS_MODE", "true")

        config = TransferConfig.from_env()

        assert config.database_url == "postgresql+psycopg://user:pw@db:5432/payments"
        assert config.redis_url == "redis://redis:6379/0"
        assert config.chaos_mode is True

    def test_prefixed_variable_wins_over_fallback(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DB_URL", "sqlite:///legacy.db")
        monkeypatch.setenv("TRANSFER_DATABASE_URL", "sqlite:///preferred.db")

        assert TransferConfig.from_env().database_url == "sqlite:///preferred.db"

    def test_custom_prefix(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PAY_LOCK_TTL_SECONDS", "30")
        assert TransferConfig.from_env(prefix="PAY_").lock_ttl_seconds == 30

    def test_invalid_boolean(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TRANSFER_CHAOS_MODE", "maybe")
        with pytest.raises(ValueError, match="chaos_mode must be a boolean"):
            TransferConfig.from_env()

    def test_from_dict(self) -> None:
        config = TransferConfig.from_dict({"lock_ttl_seconds": 5, "chaos_mode": True})
        assert config.lock_ttl_seconds == 5
        assert config.chaos_mode is True
