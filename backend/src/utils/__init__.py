"""
Utility modules for the event scheduling backend.

This package contains shared utilities used across the services:
- time_utils: Naive-UTC helpers, injectable clock, half-open windows
- logging_config: Named loggers (services, db, audit)
"""

from backend.src.utils.time_utils import (
    Clock,
    TimeWindow,
    to_utc_naive,
    utcnow,
    windows_overlap,
)

__all__ = [
    "Clock",
    "TimeWindow",
    "to_utc_naive",
    "utcnow",
    "windows_overlap",
]
