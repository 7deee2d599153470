"""Configuration package for WikiStats.

Re-exports the settings symbols so that callers can write::

    from wikistats.config import get_settings
"""

from __future__ import annotations

from wikistats.config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
