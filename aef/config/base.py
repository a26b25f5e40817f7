"""
Base configuration for aef.

Settings come from AEF_* environment variables, optionally loaded from a
.env file named by LOAD_ENV_FILE.
"""

from __future__ import annotations

import os
import pathlib
from typing import TypeVar

import lazy_object_proxy
import pydantic
import pydantic_settings

T = TypeVar('T', bound='AefSettings')


class AefSettings(pydantic_settings.BaseSettings):
    """Configuration shared by the CLI and services."""

    model_config = pydantic_settings.SettingsConfigDict(
        env_prefix='AEF_',
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=True,  # Fail fast on misconfiguration
        extra='ignore',  # Other AEF_* variables are not ours to reject
    )

    # Application metadata
    APP_NAME: str = 'aef'
    VERSION: str = '0.1.0'

    # Adapter used by `aef convert` when --adapter is not given
    DEFAULT_ADAPTER: str = 'claude-code'

    # Treat semantic warnings as failures in `aef validate` (same as --strict)
    WARNINGS_AS_ERRORS: bool = False

    @pydantic.field_validator('DEFAULT_ADAPTER')
    @classmethod
    def validate_default_adapter(cls, v: str) -> str:
        """Validate the default adapter is registered."""
        from aef.adapters import ADAPTERS

        if v not in ADAPTERS:
            raise ValueError(f'DEFAULT_ADAPTER must be one of: {", ".join(sorted(ADAPTERS))}')
        return v


def get_settings(settings_class: type[T], env_file: str | None = None) -> T:
    """
    Factory for creating settings with dynamic .env file loading.

    LOAD_ENV_FILE environment variable specifies custom .env file path.
    When unset, loads from environment variables only.

    Args:
        settings_class: Settings class to instantiate
        env_file: Optional path to .env file (overrides LOAD_ENV_FILE)

    Returns:
        Settings instance

    Raises:
        FileNotFoundError: If specified .env file doesn't exist
    """
    env_file_path = env_file or os.getenv('LOAD_ENV_FILE')

    if not env_file_path:
        return settings_class()

    resolved_path = pathlib.Path(env_file_path).resolve()
    if not resolved_path.exists():
        raise FileNotFoundError(f'Environment file not found: {resolved_path}')

    return settings_class(_env_file=resolved_path)


def lazy_settings(settings_class: type[T]) -> T:
    """
    Lazy settings - defers instantiation until first access.

    Args:
        settings_class: Settings class to instantiate

    Returns:
        Proxy that instantiates settings on first access
    """
    return lazy_object_proxy.Proxy(lambda: get_settings(settings_class))
