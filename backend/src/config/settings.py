"""
Scheduling settings configuration.

Centralized settings loaded from environment variables.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings


# Hard upper bound on generated instances per series
MAX_SERIES_INSTANCES = 365


class SchedulingSettings(BaseSettings):
    """
    Scheduling settings loaded from environment variables.

    Environment Variables:
        EVENTHUB_MAX_SERIES_INSTANCES: Cap on instances generated for one series (default: 365)
        EVENTHUB_SLUG_MAX_LENGTH: Maximum length of the normalized title part of a slug (default: 100)
        EVENTHUB_SLUG_SUFFIX_LENGTH: Length of the random collision suffix (default: 6)
        EVENTHUB_SLUG_MAX_ATTEMPTS: Collision retries before giving up (default: 10)
        EVENTHUB_AUDIT_ENABLED: Notify the audit collaborator after mutations (default: True)
    """

    max_series_instances: int = Field(
        default=MAX_SERIES_INSTANCES,
        validation_alias="EVENTHUB_MAX_SERIES_INSTANCES",
        ge=1,
        le=MAX_SERIES_INSTANCES,
        description="Maximum number of instances generated for a recurring series"
    )

    # Title part + "-" + longest random suffix must fit the 160-char slug column
    slug_max_length: int = Field(
        default=100,
        validation_alias="EVENTHUB_SLUG_MAX_LENGTH",
        ge=10,
        le=143,
    )

    slug_suffix_length: int = Field(
        default=6,
        validation_alias="EVENTHUB_SLUG_SUFFIX_LENGTH",
        ge=4,
        le=16,
    )

    slug_max_attempts: int = Field(
        default=10,
        validation_alias="EVENTHUB_SLUG_MAX_ATTEMPTS",
        ge=1,
        le=100,
    )

    audit_enabled: bool = Field(
        default=True,
        validation_alias="EVENTHUB_AUDIT_ENABLED",
        description="If False, audit notifications are skipped entirely"
    )

    class Config:
        env_file = ".env"
        extra = "ignore"
        populate_by_name = True


@lru_cache()
def get_settings() -> SchedulingSettings:
    """
    Get cached scheduling settings instance.

    Returns:
        SchedulingSettings: Configured settings from environment
    """
    return SchedulingSettings()
