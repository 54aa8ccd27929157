import asyncio
import logging
from collections.abc import Sequence

from ulid import ULID

from ..domain import AnyDomainEvent, DomainEventHandler, DomainEventSubscriber, expand_events
from ..store import DocumentStore
from .retry import AggregateRetryPolicy, RetryPolicy, Sleep, retry_delay
from .strategies import DispatchStrategy, create_strategy, select_mode

LOGGER = logging.getLogger(__name__)


class DomainEventPublisher:
    """Delivers domain events to subscribers and runs their handlers.

    For each publish call the publisher:

    1. Expands combined events into their member events
    2. Asks every subscriber for a handler for every event
    3. Picks one dispatch strategy for the whole handler set (simple,
       read-only, batched or transactional, see strategies)
    4. Runs it, retrying failed attempts according to the events' retry
       policies combined into one AggregateRetryPolicy
    5. Calls on_success on every handler once an attempt succeeded, or
       rollback on every handler once it gives up

    Handlers run one at a time, in event order and, for each event, in
    subscriber registration order. Separate publish calls are independent
    and may run concurrently; isolation between them comes only from the
    store's transactions.

    Attributes:
        store: Document store the handlers read from and write to.

    Example:
        >>> publisher = DomainEventPublisher(InMemoryDocumentStore())
        >>> publisher.add_subscriber(CityRenamedSubscriber())
        >>> await publisher.publish(CityRenamed(city_id="NYC", name="New York"))
    """

    def __init__(self, store: DocumentStore, sleep: Sleep = asyncio.sleep):
        """Initialize the publisher.

        Args:
            store: Document store backing the read and write contexts.
            sleep: Coroutine function used to wait between attempts,
                taking seconds. Replace it in tests to skip the waits.
        """
        self.store = store
        self._sleep = sleep
        self._subscribers: list[DomainEventSubscriber] = []

    @property
    def subscribers(self) -> Sequence[DomainEventSubscriber]:
        """Registered subscribers, in registration order."""
        return tuple(self._subscribers)

    def add_subscriber(self, subscriber: DomainEventSubscriber) -> None:
        """Register a subscriber for every subsequent publish call.

        Subscribers cannot be removed.
        """
        self._subscribers.append(subscriber)

    async def publish(self, *events: AnyDomainEvent) -> None:
        """Publish events and run all resulting handlers.

        Events published together share one dispatch: their handlers run in
        the same envelope and succeed or fail together.

        Args:
            *events: Events to publish. Combined events are expanded.
                Publishing nothing is a no-op.

        Raises:
            Exception: The error of the last failed attempt, once the retry
                policy gives up. Every handler's rollback has run by then.
                Errors raised by rollback or on_success hooks propagate as is.
        """
        expanded = expand_events(events)
        if not expanded:
            return

        handlers = [
            handler
            for event in expanded
            for subscriber in self._subscribers
            if (handler := subscriber.on_event(event)) is not None
        ]

        policy = AggregateRetryPolicy(expanded)
        strategy = create_strategy(select_mode(handlers), self.store)
        publish_id = ULID()
        LOGGER.debug(
            "Publishing events",
            extra={
                "publish_id": str(publish_id),
                "event_names": [event.event_name for event in expanded],
                "handler_count": len(handlers),
                "dispatch_mode": strategy.mode.value,
            },
        )

        await self._dispatch(strategy, policy, handlers, publish_id)

        for handler in handlers:
            await handler.on_success()

    async def _dispatch(
        self,
        strategy: DispatchStrategy,
        policy: RetryPolicy,
        handlers: list[DomainEventHandler],
        publish_id: ULID,
    ) -> None:
        """Run attempts until one succeeds or the policy gives up.

        On give-up every handler is rolled back once and the error of the
        last attempt is re-raised unchanged.
        """
        attempt = 0
        while True:
            try:
                await strategy.run(handlers)
                return
            except Exception as error:
                delay = retry_delay(error, policy, attempt)
                if delay is None:
                    LOGGER.error(
                        "Rolling back handlers",
                        extra={
                            "publish_id": str(publish_id),
                            "attempt": attempt,
                            "retry_max": policy.retry_max,
                            "error_type": type(error).__name__,
                        },
                    )
                    for handler in handlers:
                        await handler.rollback()
                    raise

            await self._sleep(delay.total_seconds())
            attempt += 1
