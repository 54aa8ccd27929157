"""Helpers for testing code that publishes or handles domain events."""

from .core import RecordingSleep, StaticSubscriber

__all__ = [
    "RecordingSleep",
    "StaticSubscriber",
]
