from typing import Protocol, runtime_checkable

from .event import DomainEvent
from .handler import DomainEventHandler


@runtime_checkable
class DomainEventSubscriber(Protocol):
    """Protocol for objects that react to published events.

    The publisher calls on_event once per event per publish call, before
    any handler runs, and never again for retries. Return a fresh handler
    to take part, or None to ignore the event.

    Example:
        >>> class CityRenamedSubscriber:
        ...     def on_event(self, event: DomainEvent) -> DomainEventHandler | None:
        ...         if isinstance(event, CityRenamed):
        ...             return RenameCityHandler(event)
        ...         return None
    """

    def on_event(self, event: DomainEvent) -> DomainEventHandler | None: ...
