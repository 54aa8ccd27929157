"""Domain primitives for publishing events.

This module contains the building blocks that users extend:

- DomainEvent: Base class for events, carrying a retry policy
- CombinedDomainEvent: Bundle of events published as one unit
- SimpleEventHandler, ReadEventHandler, BatchEventHandler,
  TransactionEventHandler: Handler variants by store capability
- DomainEventSubscriber: Protocol for objects producing handlers
- StoreError and friends: Exceptions for store failures
"""

from .exceptions import (
    DocumentExistsError,
    DocumentNotFoundError,
    PreconditionFailedError,
    RetryableError,
    StoreError,
    StoreErrorCode,
    TransactionConflictError,
)
from .event import AnyDomainEvent, CombinedDomainEvent, DomainEvent, expand_events
from .handler import (
    BatchEventHandler,
    DomainEventHandler,
    EventHandler,
    HandlerKind,
    ReadEventHandler,
    SimpleEventHandler,
    TransactionEventHandler,
)
from .subscriber import DomainEventSubscriber

__all__ = [
    # Events
    "DomainEvent",
    "CombinedDomainEvent",
    "AnyDomainEvent",
    "expand_events",
    # Handlers
    "EventHandler",
    "DomainEventHandler",
    "HandlerKind",
    "SimpleEventHandler",
    "ReadEventHandler",
    "BatchEventHandler",
    "TransactionEventHandler",
    "DomainEventSubscriber",
    # Exceptions
    "StoreError",
    "StoreErrorCode",
    "RetryableError",
    "TransactionConflictError",
    "PreconditionFailedError",
    "DocumentNotFoundError",
    "DocumentExistsError",
]
