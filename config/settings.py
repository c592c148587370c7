"""
Configuration management for the session store.

This module provides centralized configuration loading and validation using
Pydantic settings. Values are read from environment variables or .env files;
the store itself only ever reads them.

The settings cover:
- Backend connection: Redis address, logical database index, client variant
- Session lifetime: idle timeout (backend TTL) and maximum session age
- Validation policy: remote address check and the removal side effects
- Reporting: the source marker of internal API sessions
"""

import logging
import os
from enum import Enum
from pathlib import Path
from typing import Optional, List, Tuple

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Environment(str, Enum):
    """Supported deployment environments."""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


def _detect_environment() -> Environment:
    """
    Detect the current environment from the ENVIRONMENT variable.

    Returns:
        Environment: The detected environment, defaults to DEVELOPMENT if not set.
    """
    env_value = os.environ.get("ENVIRONMENT", "development").lower().strip()
    try:
        return Environment(env_value)
    except ValueError:
        return Environment.DEVELOPMENT


def _get_env_files(environment: Environment) -> Tuple[str, ...]:
    """
    Get the list of .env files to load for the given environment.

    The base .env file is loaded first, then the environment-specific file
    overrides it.
    """
    env_file_map = {
        Environment.DEVELOPMENT: ".env.development",
        Environment.STAGING: ".env.staging",
        Environment.PRODUCTION: ".env.production",
    }
    env_specific_file = env_file_map.get(environment, ".env.development")

    return (".env", env_specific_file)


class Settings(BaseSettings):
    """
    Session store settings loaded from environment variables.

    Every field has a default so a bare development checkout starts against
    a local Redis. Durations are expressed in seconds.
    """

    # Environment
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Deployment environment (development, staging, production)"
    )

    # Backend Configuration
    redis_url: str = Field(
        default="redis://127.0.0.1:6379",
        description="Redis server address"
    )
    redis_database_number: int = Field(
        default=1,
        ge=0,
        le=15,
        description="Logical Redis database index selected after connecting"
    )
    redis_single_connection: bool = Field(
        default=False,
        description="Use a dedicated single-connection client instead of a pool"
    )

    # Session Lifetime Configuration
    session_max_idle_time: int = Field(
        default=7200,
        ge=0,
        description="Idle timeout applied as key TTL at creation, 0 disables expiry"
    )
    session_max_time: int = Field(
        default=57600,
        ge=1,
        description="Maximum session lifetime in seconds"
    )

    # Validation Policy
    session_check_remote_ip: bool = Field(
        default=True,
        description="Reject sessions used from a different remote address"
    )
    session_delete_if_not_remote_id: bool = Field(
        default=True,
        description="Remove sessions that fail the remote address check"
    )
    session_delete_if_time_to_old: bool = Field(
        default=True,
        description="Remove sessions that exceed the maximum session lifetime"
    )

    # Reporting
    session_internal_source: str = Field(
        default="GenericInterface",
        description="SessionSource value of internal API sessions excluded from reports"
    )

    # Identifier Generation
    system_id: str = Field(
        default="10",
        description="Installation prefix prepended to generated session ids"
    )
    session_id_length: int = Field(
        default=32,
        ge=16,
        le=128,
        description="Length of the random part of a session id"
    )
    challenge_token_length: int = Field(
        default=32,
        ge=16,
        le=128,
        description="Length of the per-session challenge token"
    )

    # Observability Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, NOTICE, WARNING, ERROR, CRITICAL)"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    @field_validator("redis_url")
    @classmethod
    def validate_redis_url(cls, v: str) -> str:
        """Validate that redis_url is not empty and uses a Redis scheme."""
        if not v or not v.strip():
            raise ValueError("redis_url cannot be empty")
        v = v.strip()
        if not v.startswith(("redis://", "rediss://", "unix://")):
            raise ValueError("redis_url must start with redis://, rediss:// or unix://")
        return v

    @field_validator("system_id")
    @classmethod
    def validate_system_id(cls, v: str) -> str:
        """Validate that system_id is alphanumeric so ids stay key-safe."""
        v = v.strip()
        if v and not v.isalnum():
            raise ValueError("system_id must be alphanumeric")
        return v

    @field_validator("session_internal_source")
    @classmethod
    def validate_session_internal_source(cls, v: str) -> str:
        """Validate that session_internal_source is not empty."""
        if not v or not v.strip():
            raise ValueError("session_internal_source cannot be empty")
        return v.strip()

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate that log_level is a valid logging level."""
        valid_levels = {"DEBUG", "INFO", "NOTICE", "WARNING", "ERROR", "CRITICAL"}
        v = v.strip().upper()
        if v not in valid_levels:
            raise ValueError(f"log_level must be one of: {', '.join(sorted(valid_levels))}")
        return v


class ConfigurationError(Exception):
    """Exception raised when configuration validation fails."""

    def __init__(self, message: str, missing_fields: Optional[List[str]] = None,
                 invalid_fields: Optional[dict] = None):
        self.message = message
        self.missing_fields = missing_fields or []
        self.invalid_fields = invalid_fields or {}
        super().__init__(self.format_error_message())

    def format_error_message(self) -> str:
        """Format a descriptive error message listing all issues."""
        parts = [self.message]

        if self.missing_fields:
            parts.append(f"\nMissing required fields: {', '.join(self.missing_fields)}")

        if self.invalid_fields:
            invalid_parts = [f"  - {field}: {error}" for field, error in self.invalid_fields.items()]
            parts.append("\nInvalid field values:\n" + "\n".join(invalid_parts))

        return "".join(parts)


def create_settings_for_environment(environment: Optional[Environment] = None) -> Settings:
    """
    Factory function to create Settings for a specific environment.

    This function detects the environment from the ENVIRONMENT variable (if not
    provided) and loads the appropriate environment-specific .env file.

    Args:
        environment: Optional environment override.

    Returns:
        Settings: Validated settings for the specified environment.

    Raises:
        ConfigurationError: If settings are missing or invalid.
    """
    if environment is None:
        environment = _detect_environment()

    env_files = _get_env_files(environment)
    existing_env_files = [env_file for env_file in env_files if Path(env_file).exists()]
    if not existing_env_files:
        existing_env_files = list(env_files)

    try:
        class EnvironmentSettings(Settings):
            model_config = SettingsConfigDict(
                env_file=tuple(existing_env_files),
                env_file_encoding="utf-8",
                case_sensitive=False,
                extra="ignore"
            )

        return EnvironmentSettings()
    except Exception as e:
        missing_fields = []
        invalid_fields = {}

        # Extract field-level errors from Pydantic ValidationError
        if hasattr(e, 'errors'):
            for error in e.errors():
                field_name = '.'.join(str(loc) for loc in error.get('loc', []))
                error_type = error.get('type', '')
                error_msg = error.get('msg', str(error))

                if error_type == 'missing':
                    missing_fields.append(field_name)
                else:
                    invalid_fields[field_name] = error_msg

        raise ConfigurationError(
            f"Failed to load configuration for environment '{environment.value}'",
            missing_fields=missing_fields,
            invalid_fields=invalid_fields
        ) from e


# Global settings cache
_settings_cache: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get the settings singleton.

    Settings are loaded once and cached for subsequent calls. Components take
    the returned object as a constructor argument rather than calling this
    themselves.

    Raises:
        ConfigurationError: If settings are missing or invalid.
    """
    global _settings_cache

    if _settings_cache is None:
        _settings_cache = create_settings_for_environment()

    return _settings_cache


def clear_settings_cache() -> None:
    """
    Clear the settings cache.

    This is primarily useful for testing to allow reloading settings
    with different environment variables.
    """
    global _settings_cache
    _settings_cache = None


def validate_startup() -> None:
    """
    Validate cross-field settings at application startup.

    Raises:
        ConfigurationError: If any settings are inconsistent.
    """
    settings = get_settings()

    validation_errors = {}

    # An idle timeout longer than the session lifetime can never trigger
    if settings.session_max_idle_time and settings.session_max_idle_time > settings.session_max_time:
        validation_errors["session_max_idle_time"] = (
            f"Idle timeout ({settings.session_max_idle_time}s) exceeds the maximum "
            f"session lifetime ({settings.session_max_time}s)"
        )

    # Removal on mismatch only happens when the address check runs
    if not settings.session_check_remote_ip and settings.session_delete_if_not_remote_id:
        logger.warning(
            "session_delete_if_not_remote_id has no effect while "
            "session_check_remote_ip is disabled",
            extra={"extra_data": {"environment": settings.environment.value}},
        )

    if validation_errors:
        raise ConfigurationError(
            "Configuration validation failed during startup",
            invalid_fields=validation_errors
        )


def get_environment_info() -> dict:
    """
    Get information about the current environment configuration.

    Returns:
        dict: Information about the detected environment and loaded config files.
    """
    environment = _detect_environment()
    env_files = _get_env_files(environment)

    existing_files = [f for f in env_files if Path(f).exists()]

    return {
        "environment": environment.value,
        "env_files_checked": list(env_files),
        "env_files_loaded": existing_files,
    }
