"""Shared test doubles: events with fixed retry policies and mock handlers."""

from .events import (
    AnyErrorRetryEvent,
    CityRenamed,
    LongRetryEvent,
    NoRetryEvent,
    ShortRetryEvent,
)
from .handlers import (
    MockBatchHandler,
    MockReadHandler,
    MockSimpleHandler,
    MockTransactionHandler,
)

__all__ = [
    "AnyErrorRetryEvent",
    "NoRetryEvent",
    "ShortRetryEvent",
    "LongRetryEvent",
    "CityRenamed",
    "MockSimpleHandler",
    "MockReadHandler",
    "MockBatchHandler",
    "MockTransactionHandler",
]
