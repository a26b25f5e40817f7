"""Configuration for aef."""

from __future__ import annotations

from aef.config.base import AefSettings, get_settings, lazy_settings

# Module-level singleton (lazy-loaded)
settings = lazy_settings(AefSettings)

__all__ = [
    'AefSettings',
    'get_settings',
    'lazy_settings',
    'settings',
]
