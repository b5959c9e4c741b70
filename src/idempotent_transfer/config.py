"""Configuration module for the transfer service.

This module provides the TransferConfig class, which holds every setting the
service reads at startup: where the durable ledger lives, which store backs
locks and cached responses, the TTLs of both, network timeouts, and the
fault-injection toggle used to exercise crash recovery.

Example:
    Basic usage with defaults:

        >>> config = TransferConfig()
        >>> config.lock_ttl_seconds
        10

    Custom configuration:

        >>> config = TransferConfig(
        ...     database_url="postgresql+psycopg://user:pw@db:5432/payments",
        ...     ephemeral_store="redis",
        ...     redis_url="redis://cache:6379/0",
        ...     lock_ttl_seconds=15,
        ... )

    Loading from environment:

        >>> import os
        >>> os.environ['TRANSFER_LOCK_TTL_SECONDS'] = '15'
        >>> os.environ['TRANSFER_EPHEMERAL_STORE'] = 'redis'
        >>> config = TransferConfig.from_env()
"""

import logging
import os
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

# Environment variables used by the original deployment (docker-compose and
# Makefile), honored when the prefixed variable is absent.
LEGACY_ENV_FALLBACKS = {
    "database_url": "DB_URL",
    "redis_url": "REDIS_ADDR",
    "chaos_mode": "CHAOS_MODE",
}

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


class TransferConfig(BaseModel):
    """Configuration for the transfer service.

    Attributes:
        database_url: SQLAlchemy URL of the durable store holding accounts and
            the transactions table. Default is a local SQLite file.
        ephemeral_store: Backend for locks and cached responses. "redis" for
            multi-process deployments, "memory" for tests and single-process use.
        redis_url: Connection URL for Redis. Only used when ephemeral_store is
            "redis". A bare "host:port" is accepted and normalized.
        lock_ttl_seconds: Lifetime of a per-key lock. Bounds how long a crashed
            holder can keep a key unavailable. Must be between 1 and 300 and
            should comfortably exceed the slowest expected ledger mutation.
        response_cache_ttl_seconds: Lifetime of a cached success response.
            Must be between 1 and 604800 (7 days). Default is 86400 (24 hours).
        redis_timeout_seconds: Socket and connect timeout for Redis calls.
        database_timeout_seconds: Busy timeout (SQLite) or pool checkout
            timeout (other databases) for ledger calls.
        chaos_mode: Enables the post-commit fault injector.
        chaos_header: Request header that triggers the injected crash when
            chaos_mode is on and the header value is "true".
        cache_key_prefix: Namespace for cached-response keys.
        lock_key_prefix: Namespace for lock keys.
        cleanup_interval_seconds: Sweep interval for expired in-memory entries.
        log_level: Standard library log level name.
        json_logs: Emit JSON logs when True, console logs otherwise.

    Note:
        This class is immutable (frozen=True). Create a new instance if you
        need different settings.
    """

    database_url: str = Field(
        default="sqlite:///transfers.db",
        description="SQLAlchemy URL of the durable ledger store",
        min_length=1,
    )
    ephemeral_store: Literal["memory", "redis"] = Field(
        default="memory",
        description="Backend for locks and cached responses",
    )
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Connection URL for the Redis lock/cache store",
    )
    lock_ttl_seconds: int = Field(
        default=10,
        description="Per-key lock lifetime in seconds (1-300)",
    )
    response_cache_ttl_seconds: int = Field(
        default=86400,
        description="Cached response lifetime in seconds (1-604800)",
    )
    redis_timeout_seconds: float = Field(
        default=2.0,
        gt=0,
        description="Socket timeout for Redis calls",
    )
    database_timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Busy/pool timeout for ledger calls",
    )
    chaos_mode: bool = Field(
        default=False,
        description="Enable the post-commit fault injector",
    )
    chaos_header: str = Field(
        default="X-Simulate-Chaos",
        description="Header that triggers the injected crash",
        min_length=1,
    )
    cache_key_prefix: str = Field(default="idempotency:")
    lock_key_prefix: str = Field(default="lock:")
    cleanup_interval_seconds: int = Field(
        default=60,
        description="Sweep interval for expired in-memory entries (1-3600)",
    )
    log_level: str = Field(default="INFO")
    json_logs: bool = Field(default=True)

    model_config = {"frozen": True}

    @field_validator("redis_url")
    @classmethod
    def normalize_redis_url(cls, v: str) -> str:
        """Accept a bare "host:port" address and turn it into a redis:// URL.

        Example:
            >>> TransferConfig(redis_url="cache:6379").redis_url
            'redis://cache:6379/0'
        """
        v = v.strip()
        if "://" not in v:
            return f"redis://{v}/0"
        return v

    @field_validator("lock_ttl_seconds")
    @classmethod
    def validate_lock_ttl_seconds(cls, v: int) -> int:
        if not (1 <= v <= 300):
            raise ValueError(f"lock_ttl_seconds must be between 1 and 300, got {v}")
        return v

    @field_validator("response_cache_ttl_seconds")
    @classmethod
    def validate_response_cache_ttl_seconds(cls, v: int) -> int:
        if not (1 <= v <= 604800):
            raise ValueError(
                f"response_cache_ttl_seconds must be between 1 and 604800 (7 days), got {v}"
            )
        return v

    @field_validator("cleanup_interval_seconds")
    @classmethod
    def validate_cleanup_interval_seconds(cls, v: int) -> int:
        if not (1 <= v <= 3600):
            raise ValueError(f"cleanup_interval_seconds must be between 1 and 3600, got {v}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize the log level to upper case and reject unknown names."""
        level = v.strip().upper()
        if level not in VALID_LOG_LEVELS:
            raise ValueError(
                f"Invalid log level: {v}. Valid levels are: {', '.join(sorted(VALID_LOG_LEVELS))}"
            )
        return level

    @property
    def log_level_number(self) -> int:
        """The numeric standard library level for log_level."""
        return int(getattr(logging, self.log_level))

    @classmethod
    def from_env(cls, prefix: str = "TRANSFER_") -> "TransferConfig":
        """Create configuration from environment variables.

        Variable names are the upper-cased field names with the prefix, e.g.
        TRANSFER_LOCK_TTL_SECONDS. For database_url, redis_url and chaos_mode
        the unprefixed DB_URL, REDIS_ADDR and CHAOS_MODE are read when the
        prefixed variable is not set.

        Args:
            prefix: Prefix for environment variable names.

        Returns:
            TransferConfig populated from the environment.

        Raises:
            ValueError: If a boolean variable holds an unrecognized value.
        """
        config_dict: dict[str, Any] = {}

        field_types = {
            "database_url": str,
            "ephemeral_store": str,
            "redis_url": str,
            "lock_ttl_seconds": int,
            "response_cache_ttl_seconds": int,
            "redis_timeout_seconds": float,
            "database_timeout_seconds": float,
            "chaos_mode": bool,
            "chaos_header": str,
            "cache_key_prefix": str,
            "lock_key_prefix": str,
            "cleanup_interval_seconds": int,
            "log_level": str,
            "json_logs": bool,
        }

        for field_name, field_type in field_types.items():
            env_value = os.environ.get(f"{prefix}{field_name.upper()}")
            if env_value is None and field_name in LEGACY_ENV_FALLBACKS:
                env_value = os.environ.get(LEGACY_ENV_FALLBACKS[field_name])

            if env_value is None:
                continue

            if field_type is int:
                config_dict[field_name] = int(env_value)
            elif field_type is float:
                config_dict[field_name] = float(env_value)
            elif field_type is bool:
                config_dict[field_name] = _parse_bool(field_name, env_value)
            else:
                config_dict[field_name] = env_value

        return cls(**config_dict)

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> "TransferConfig":
        """Create configuration from a dictionary.

        Raises:
            ValidationError: If the dictionary contains invalid values.
        """
        return cls(**config_dict)


def _parse_bool(field_name: str, value: str) -> bool:
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ValueError(f"{field_name} must be a boolean (true/false), got {value!r}")
