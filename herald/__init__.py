"""Herald - Domain event publishing over a transactional document store.

This module provides the public API for publishing events and handling
them with the right consistency envelope.
"""

from .config import RetrySettings
from .domain import (
    BatchEventHandler,
    CombinedDomainEvent,
    DomainEvent,
    DomainEventHandler,
    DomainEventSubscriber,
    ReadEventHandler,
    RetryableError,
    SimpleEventHandler,
    StoreError,
    StoreErrorCode,
    TransactionEventHandler,
)
from .publishing import AggregateRetryPolicy, DispatchMode, DomainEventPublisher
from .store import (
    DocumentRef,
    DocumentSnapshot,
    DocumentStore,
    InMemoryDocumentStore,
    Precondition,
    Query,
    ReadContext,
    WriteContext,
)

__all__ = [
    # Publisher
    "DomainEventPublisher",
    "AggregateRetryPolicy",
    "DispatchMode",
    "RetrySettings",
    # Events
    "DomainEvent",
    "CombinedDomainEvent",
    # Handlers and subscribers
    "DomainEventHandler",
    "DomainEventSubscriber",
    "SimpleEventHandler",
    "ReadEventHandler",
    "BatchEventHandler",
    "TransactionEventHandler",
    # Store
    "DocumentStore",
    "InMemoryDocumentStore",
    "DocumentRef",
    "DocumentSnapshot",
    "Precondition",
    "Query",
    "ReadContext",
    "WriteContext",
    # Errors
    "StoreError",
    "StoreErrorCode",
    "RetryableError",
]
