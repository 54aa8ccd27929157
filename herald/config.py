"""Process-wide defaults using pydantic-settings."""

from datetime import timedelta
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings


class RetrySettings(BaseSettings):
    """Default retry parameters applied to every DomainEvent.

    Events that do not override their retry fields take these values. All
    settings can be configured via environment variables with the
    HERALD_RETRY_ prefix. For example:
    - HERALD_RETRY_RETRY_MAX=10
    - HERALD_RETRY_RETRY_INTERVAL_EXTEND_FACTOR=PT0.1S
    - HERALD_RETRY_RETRY_INTERVAL_MAX=PT2S

    Durations use ISO 8601 notation.

    Attributes:
        retry_max: Maximum number of attempts (initial attempt included).
        retry_interval_extend_factor: Backoff step; the Nth retry waits
            N times this value.
        retry_interval_max: Upper bound for a single backoff delay.

    Example:
        >>> settings = RetrySettings(retry_max=3)
        >>> settings.retry_interval_max
        datetime.timedelta(seconds=1)
    """

    retry_max: int = Field(default=50, ge=1)
    retry_interval_extend_factor: timedelta = Field(
        default=timedelta(milliseconds=50), ge=timedelta(0)
    )
    retry_interval_max: timedelta = Field(default=timedelta(seconds=1), ge=timedelta(0))

    model_config = {"env_prefix": "HERALD_RETRY_"}


@lru_cache(maxsize=1)
def get_retry_settings() -> RetrySettings:
    """Get the cached retry defaults, loading them from the environment once."""
    return RetrySettings()
