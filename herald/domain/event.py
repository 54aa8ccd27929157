from collections.abc import Sequence
from datetime import timedelta

from pydantic import BaseModel, Field

from ..config import get_retry_settings
from .exceptions import StoreError


class DomainEvent(BaseModel):
    """A single domain occurrence carrying its own retry policy.

    Subclass DomainEvent to describe what happened. The retry fields control
    how DomainEventPublisher reacts when a handler for this event fails:

    - retry_max bounds the total number of attempts (1 means no retry)
    - the Nth retry waits ``retry_interval_extend_factor * N``
    - no single wait exceeds ``retry_interval_max``

    With a factor of 100ms and a maximum of 1s the waits are 100ms, 200ms,
    300ms, ... 1000ms, 1000ms, 1000ms.

    Defaults come from RetrySettings; subclasses override them by
    redeclaring the field.

    Examples:
        Event with default retry behaviour:

        >>> class AccountOpened(DomainEvent):
        ...     account_id: str

        Event with a short retry budget:

        >>> class CacheInvalidated(DomainEvent):
        ...     retry_max: int = 3
        ...     key: str
    """

    retry_max: int = Field(
        default_factory=lambda: get_retry_settings().retry_max,
        ge=1,
        description="Maximum number of attempts, initial attempt included",
    )
    retry_interval_extend_factor: timedelta = Field(
        default_factory=lambda: get_retry_settings().retry_interval_extend_factor,
        ge=timedelta(0),
        description="Backoff step multiplied by the retry number",
    )
    retry_interval_max: timedelta = Field(
        default_factory=lambda: get_retry_settings().retry_interval_max,
        ge=timedelta(0),
        description="Upper bound for a single backoff delay",
    )

    @property
    def event_name(self) -> str:
        """Name of the event, the class name by default."""
        return type(self).__name__

    def is_retryable_error(self, error: BaseException) -> bool:
        """Decide whether a failure raised while handling this event is transient.

        An explicit ``retryable`` attribute on the error wins. Otherwise
        store errors are retryable when their code denotes a transient
        condition; every other error is final.

        Args:
            error: The exception raised by a handler or by the store.

        Returns:
            True if the publisher should retry.
        """
        retryable = getattr(error, "retryable", None)
        if retryable is True:
            return True
        if retryable is False:
            return False
        if isinstance(error, StoreError):
            return error.retryable
        return False


class CombinedDomainEvent(BaseModel):
    """A named bundle of events published as one logical unit.

    The publisher expands a combined event into its member events before
    asking subscribers for handlers, and dispatches all resulting handlers
    together under one retry and rollback lifecycle. Combination is one
    level deep: members are plain DomainEvents.

    Example:
        >>> transfer = CombinedDomainEvent(
        ...     events=[MoneyWithdrawn(...), MoneyDeposited(...)]
        ... )
        >>> await publisher.publish(transfer)
    """

    events: list[DomainEvent]

    @property
    def event_name(self) -> str:
        """Name of the bundle, the class name by default."""
        return type(self).__name__


AnyDomainEvent = DomainEvent | CombinedDomainEvent


def expand_events(events: Sequence[AnyDomainEvent]) -> list[DomainEvent]:
    """Flatten combined events into their members, preserving order."""
    expanded: list[DomainEvent] = []
    for event in events:
        if isinstance(event, CombinedDomainEvent):
            expanded.extend(event.events)
        else:
            expanded.append(event)
    return expanded
