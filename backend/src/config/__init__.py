"""
Configuration module for the event scheduling backend.

Provides centralized configuration for:
- Series expansion limits
- Slug allocation
- Audit notification toggle
"""

from backend.src.config.settings import (
    MAX_SERIES_INSTANCES,
    SchedulingSettings,
    get_settings,
)

__all__ = [
    "MAX_SERIES_INSTANCES",
    "SchedulingSettings",
    "get_settings",
]
