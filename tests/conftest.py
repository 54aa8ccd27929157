"""Central test fixtures."""

import pytest

from herald import DomainEventPublisher, InMemoryDocumentStore
from herald.config import get_retry_settings
from herald.testing import RecordingSleep


@pytest.fixture
def store() -> InMemoryDocumentStore:
    """Create an empty in-memory document store."""
    return InMemoryDocumentStore()


@pytest.fixture
def sleep() -> RecordingSleep:
    """Create a sleep that records delays instead of waiting."""
    return RecordingSleep()


@pytest.fixture
def publisher(store: InMemoryDocumentStore, sleep: RecordingSleep) -> DomainEventPublisher:
    """Create a publisher over the in-memory store with recorded sleeps."""
    return DomainEventPublisher(store, sleep=sleep)


@pytest.fixture(autouse=True)
def clear_retry_settings():
    """Forget cached retry defaults so environment changes apply per test."""
    get_retry_settings.cache_clear()
    yield
    get_retry_settings.cache_clear()
