"""Tests for DomainEventPublisher."""

import logging

import pytest

from herald import (
    BatchEventHandler,
    CombinedDomainEvent,
    DocumentRef,
    InMemoryDocumentStore,
    ReadContext,
    RetryableError,
    SimpleEventHandler,
    StoreError,
    StoreErrorCode,
    TransactionEventHandler,
    WriteContext,
)
from herald.testing import StaticSubscriber
from tests.fixtures import (
    AnyErrorRetryEvent,
    CityRenamed,
    LongRetryEvent,
    MockBatchHandler,
    MockReadHandler,
    MockSimpleHandler,
    MockTransactionHandler,
    NoRetryEvent,
    ShortRetryEvent,
)

NYC = DocumentRef("cities", "NYC")
SF = DocumentRef("cities", "SF")
TX = DocumentRef("cities", "TX")


class SetDocumentHandler(BatchEventHandler):
    """Writes one document, then optionally fails."""

    def __init__(self, ref: DocumentRef, data: dict, error: Exception | None = None):
        self.ref = ref
        self.data = data
        self.error = error

    async def handle_event(self, context: WriteContext) -> None:
        context.set(self.ref, self.data)
        if self.error is not None:
            raise self.error


class CopyNameHandler(TransactionEventHandler):
    """Reads the name of one city and writes it to another."""

    def __init__(self, source: DocumentRef, target: DocumentRef, error: Exception | None = None):
        self.source = source
        self.target = target
        self.error = error
        self.name = None

    async def prepare_handle_event(self, context: ReadContext) -> None:
        self.name = (await context.get(self.source)).get("name")

    async def handle_event(self, context: WriteContext) -> None:
        context.set(self.target, {"name": self.name})
        if self.error is not None:
            raise self.error


class RecordingHandler(SimpleEventHandler):
    def __init__(self, log: list, entry: tuple):
        self.log = log
        self.entry = entry

    async def handle_event(self) -> None:
        self.log.append(self.entry)


class NamingSubscriber:
    """Creates a fresh handler per event that records (subscriber, city)."""

    def __init__(self, name: str, log: list):
        self.name = name
        self.log = log

    def on_event(self, event):
        return RecordingHandler(self.log, (self.name, event.name))


def subscribe(publisher, *handlers):
    for handler in handlers:
        publisher.add_subscriber(StaticSubscriber(handler))


async def seed(store: InMemoryDocumentStore, ref: DocumentRef, data: dict) -> None:
    batch = store.batch()
    batch.set(ref, data)
    await batch.commit()


async def read(store: InMemoryDocumentStore, ref: DocumentRef):
    return (await store.reader().get(ref)).data


# Delivery


@pytest.mark.asyncio
async def test_event_is_delivered_to_simple_handler(publisher):
    """Test a simple handler runs once and its success hook fires."""
    handler = MockSimpleHandler()
    subscribe(publisher, handler)

    await publisher.publish(AnyErrorRetryEvent())

    handler.handle_event.assert_awaited_once_with()
    handler.on_success.assert_awaited_once()
    handler.rollback.assert_not_awaited()


@pytest.mark.asyncio
async def test_read_handler_is_prepared_then_handled(publisher):
    """Test a read handler gets a reader before handling."""
    handler = MockReadHandler()
    subscribe(publisher, handler)

    await publisher.publish(AnyErrorRetryEvent())

    handler.prepare_handle_event.assert_awaited_once()
    assert isinstance(handler.prepare_handle_event.await_args.args[0], ReadContext)
    handler.handle_event.assert_awaited_once_with()


@pytest.mark.asyncio
async def test_batch_and_transaction_handlers_are_dispatched(publisher):
    """Test every handler of a mixed set is prepared and handled."""
    batch_handler = MockBatchHandler()
    simple_handler = MockSimpleHandler()
    transaction_handler = MockTransactionHandler()
    subscribe(publisher, batch_handler, simple_handler, transaction_handler)

    await publisher.publish(AnyErrorRetryEvent())

    batch_handler.handle_event.assert_awaited_once()
    simple_handler.handle_event.assert_awaited_once_with()
    transaction_handler.prepare_handle_event.assert_awaited_once()
    transaction_handler.handle_event.assert_awaited_once()


@pytest.mark.asyncio
async def test_publish_without_events_is_noop(publisher):
    """Test publishing nothing runs no handler."""
    handler = MockSimpleHandler()
    subscribe(publisher, handler)

    await publisher.publish()
    await publisher.publish(CombinedDomainEvent(events=[]))

    handler.handle_event.assert_not_awaited()
    handler.on_success.assert_not_awaited()


@pytest.mark.asyncio
async def test_publish_without_handlers_succeeds(publisher, sleep):
    """Test an event no subscriber handles completes without retries."""
    handler = MockSimpleHandler()
    subscribe_to_city = StaticSubscriber(handler, CityRenamed)
    publisher.add_subscriber(subscribe_to_city)

    await publisher.publish(AnyErrorRetryEvent())

    handler.handle_event.assert_not_awaited()
    assert subscribe_to_city.received == []
    assert sleep.delays == []


@pytest.mark.asyncio
async def test_combined_event_delivers_each_member(publisher):
    """Test a combined event of two members reaches the handler twice."""
    handler = MockSimpleHandler()
    subscriber = StaticSubscriber(handler)
    publisher.add_subscriber(subscriber)

    await publisher.publish(
        CombinedDomainEvent(events=[AnyErrorRetryEvent(), AnyErrorRetryEvent()])
    )

    assert handler.handle_event.await_count == 2
    assert handler.on_success.await_count == 2
    assert len(subscriber.received) == 2


@pytest.mark.asyncio
async def test_handlers_run_per_event_then_per_subscriber(publisher):
    """Test handlers run in event order, then subscriber registration order."""
    log: list[tuple[str, str]] = []
    publisher.add_subscriber(NamingSubscriber("first", log))
    publisher.add_subscriber(NamingSubscriber("second", log))

    await publisher.publish(
        CityRenamed(city_id="NYC", name="New York"),
        CombinedDomainEvent(events=[CityRenamed(city_id="SF", name="San Francisco")]),
    )

    assert log == [
        ("first", "New York"),
        ("second", "New York"),
        ("first", "San Francisco"),
        ("second", "San Francisco"),
    ]


def test_subscribers_are_kept_in_registration_order(publisher):
    first = StaticSubscriber(MockSimpleHandler())
    second = StaticSubscriber(MockSimpleHandler())

    publisher.add_subscriber(first)
    publisher.add_subscriber(second)

    assert publisher.subscribers == (first, second)


# Retries and rollback


@pytest.mark.asyncio
async def test_retries_with_linear_backoff_until_retry_max(publisher, sleep):
    """Test 10 attempts with waits growing by 100ms up to 500ms."""
    handler = MockSimpleHandler(side_effect=ValueError("force error"))
    subscribe(publisher, handler)

    with pytest.raises(ValueError, match="force error"):
        await publisher.publish(AnyErrorRetryEvent())

    assert handler.handle_event.await_count == 10
    assert sleep.milliseconds == [100, 200, 300, 400, 500, 500, 500, 500, 500]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "handler_type",
    [MockSimpleHandler, MockReadHandler, MockBatchHandler, MockTransactionHandler],
)
async def test_rollback_called_once_on_give_up(publisher, handler_type):
    """Test rollback runs exactly once after the last failed attempt."""
    handler = handler_type(side_effect=ValueError("force error"))
    subscribe(publisher, handler)

    with pytest.raises(ValueError):
        await publisher.publish(AnyErrorRetryEvent())

    assert handler.handle_event.await_count == 10
    handler.rollback.assert_awaited_once()
    handler.on_success.assert_not_awaited()


@pytest.mark.asyncio
async def test_every_handler_is_rolled_back(publisher):
    """Test handlers that succeeded are rolled back with the failing one."""
    succeeded = MockSimpleHandler()
    failed = MockSimpleHandler(side_effect=ValueError("force error"))
    skipped = MockSimpleHandler()
    subscribe(publisher, succeeded, failed, skipped)

    with pytest.raises(ValueError):
        await publisher.publish(NoRetryEvent())

    succeeded.handle_event.assert_awaited_once()
    skipped.handle_event.assert_not_awaited()
    for handler in (succeeded, failed, skipped):
        handler.rollback.assert_awaited_once()
        handler.on_success.assert_not_awaited()


@pytest.mark.asyncio
async def test_no_retry_when_error_is_not_retryable(publisher, sleep):
    """Test a non-retryable error fails after one attempt."""
    handler = MockSimpleHandler(side_effect=ValueError("force error"))
    subscribe(publisher, handler)

    with pytest.raises(ValueError):
        await publisher.publish(NoRetryEvent())

    handler.handle_event.assert_awaited_once()
    handler.rollback.assert_awaited_once()
    assert sleep.delays == []


@pytest.mark.asyncio
async def test_default_predicate_does_not_retry_plain_errors(publisher, sleep):
    handler = MockSimpleHandler(side_effect=KeyError("missing"))
    subscribe(publisher, handler)

    with pytest.raises(KeyError):
        await publisher.publish(ShortRetryEvent())

    handler.handle_event.assert_awaited_once()
    assert sleep.delays == []


@pytest.mark.asyncio
async def test_default_predicate_retries_transient_store_errors(publisher, sleep):
    """Test an unavailable store is retried up to the event's budget."""
    error = StoreError("server unavailable", StoreErrorCode.UNAVAILABLE)
    handler = MockSimpleHandler(side_effect=error)
    subscribe(publisher, handler)

    with pytest.raises(StoreError) as exc_info:
        await publisher.publish(ShortRetryEvent())

    assert exc_info.value is error
    assert handler.handle_event.await_count == 3
    assert sleep.milliseconds == [20, 30]


@pytest.mark.asyncio
@pytest.mark.parametrize("handler_type", [MockSimpleHandler, MockTransactionHandler])
async def test_long_retry_budget_is_spent_in_full(publisher, sleep, handler_type):
    """Test thousands of attempts end in the handler's error and one rollback."""
    error = RetryableError("busy")
    handler = handler_type(side_effect=error)
    subscribe(publisher, handler)

    with pytest.raises(RetryableError) as exc_info:
        await publisher.publish(LongRetryEvent())

    assert exc_info.value is error
    assert handler.handle_event.await_count == 2000
    assert len(sleep.delays) == 1999
    handler.rollback.assert_awaited_once()
    handler.on_success.assert_not_awaited()


@pytest.mark.asyncio
async def test_eventual_success_calls_on_success_without_rollback(publisher, sleep):
    """Test a retry that succeeds completes the publish call."""
    handler = MockSimpleHandler(side_effect=[RetryableError("busy"), RetryableError("busy"), None])
    subscribe(publisher, handler)

    await publisher.publish(AnyErrorRetryEvent())

    assert handler.handle_event.await_count == 3
    assert sleep.milliseconds == [100, 200]
    handler.on_success.assert_awaited_once()
    handler.rollback.assert_not_awaited()


@pytest.mark.asyncio
async def test_retry_prepares_transaction_handler_again(publisher):
    """Test each attempt re-runs prepare_handle_event in a new transaction."""
    handler = MockTransactionHandler(side_effect=[RetryableError("busy"), None])
    subscribe(publisher, handler)

    await publisher.publish(AnyErrorRetryEvent())

    assert handler.prepare_handle_event.await_count == 2
    first, second = (call.args[0] for call in handler.prepare_handle_event.await_args_list)
    assert first is not second


@pytest.mark.asyncio
async def test_events_published_together_share_the_strictest_policy(publisher, sleep):
    """Test the smallest budget and the slowest backoff apply."""
    handler = MockSimpleHandler(side_effect=RetryableError("busy"))
    subscribe(publisher, handler)

    with pytest.raises(RetryableError):
        await publisher.publish(AnyErrorRetryEvent(), ShortRetryEvent())

    # retry_max 3 from ShortRetryEvent, 100ms steps from AnyErrorRetryEvent
    assert handler.handle_event.await_count == 3
    assert sleep.milliseconds == [100, 200]


@pytest.mark.asyncio
async def test_events_published_together_retry_only_if_all_agree(publisher, sleep):
    handler = MockSimpleHandler(side_effect=ValueError("force error"))
    subscribe(publisher, handler)

    with pytest.raises(ValueError):
        await publisher.publish(AnyErrorRetryEvent(), NoRetryEvent())

    handler.handle_event.assert_awaited_once()
    assert sleep.delays == []


@pytest.mark.asyncio
async def test_rollback_error_propagates(publisher):
    """Test an error raised by rollback replaces the handler's error."""
    handler = MockSimpleHandler(side_effect=ValueError("force error"))
    handler.rollback.side_effect = RuntimeError("rollback failed")
    subscribe(publisher, handler)

    with pytest.raises(RuntimeError, match="rollback failed"):
        await publisher.publish(NoRetryEvent())


@pytest.mark.asyncio
async def test_on_success_error_propagates_without_rollback(publisher):
    handler = MockSimpleHandler()
    handler.on_success.side_effect = RuntimeError("notification failed")
    subscribe(publisher, handler)

    with pytest.raises(RuntimeError, match="notification failed"):
        await publisher.publish(AnyErrorRetryEvent())

    handler.handle_event.assert_awaited_once()
    handler.rollback.assert_not_awaited()


@pytest.mark.asyncio
async def test_give_up_is_logged(publisher, caplog):
    handler = MockSimpleHandler(side_effect=ValueError("force error"))
    subscribe(publisher, handler)
    caplog.set_level(logging.DEBUG, logger="herald")

    with pytest.raises(ValueError):
        await publisher.publish(NoRetryEvent())

    messages = [record.getMessage() for record in caplog.records]
    assert "Publishing events" in messages
    assert "Rolling back handlers" in messages
    rollback_record = next(r for r in caplog.records if r.getMessage() == "Rolling back handlers")
    assert rollback_record.levelno == logging.ERROR
    assert rollback_record.error_type == "ValueError"
    assert [r for r in caplog.records if r.levelno >= logging.ERROR] == [rollback_record]


# Store writes


@pytest.mark.asyncio
async def test_batch_handler_writes_are_committed(publisher, store):
    subscribe(publisher, SetDocumentHandler(NYC, {"name": "New York City"}))

    await publisher.publish(AnyErrorRetryEvent())

    assert await read(store, NYC) == {"name": "New York City"}


@pytest.mark.asyncio
async def test_batch_is_not_committed_when_handler_fails_halfway(publisher, store):
    subscribe(
        publisher,
        SetDocumentHandler(NYC, {"name": "New York City"}, error=ValueError("force error")),
    )

    with pytest.raises(ValueError):
        await publisher.publish(AnyErrorRetryEvent())

    assert await read(store, NYC) is None


@pytest.mark.asyncio
async def test_transaction_handler_reads_and_writes(publisher, store):
    await seed(store, NYC, {"name": "New York City"})
    subscribe(publisher, CopyNameHandler(NYC, SF))

    await publisher.publish(AnyErrorRetryEvent())

    assert await read(store, SF) == {"name": "New York City"}


@pytest.mark.asyncio
async def test_transaction_is_not_committed_when_handler_fails_halfway(publisher, store):
    await seed(store, NYC, {"name": "New York City"})
    subscribe(publisher, CopyNameHandler(NYC, SF, error=ValueError("force error")))

    with pytest.raises(ValueError):
        await publisher.publish(AnyErrorRetryEvent())

    assert await read(store, SF) is None


@pytest.mark.asyncio
async def test_batch_and_transaction_handlers_commit_together(publisher, store):
    """Test a batch handler's writes join the transaction of a mixed set."""
    await seed(store, NYC, {"name": "New York City"})
    subscribe(
        publisher,
        CopyNameHandler(NYC, SF),
        SetDocumentHandler(TX, {"name": "Texas"}),
    )

    await publisher.publish(AnyErrorRetryEvent())

    assert await read(store, SF) == {"name": "New York City"}
    assert await read(store, TX) == {"name": "Texas"}


@pytest.mark.asyncio
async def test_mixed_handlers_write_nothing_when_one_fails(publisher, store):
    await seed(store, NYC, {"name": "New York City"})
    subscribe(
        publisher,
        SetDocumentHandler(TX, {"name": "Texas"}),
        CopyNameHandler(NYC, SF, error=ValueError("force error")),
    )

    with pytest.raises(ValueError):
        await publisher.publish(NoRetryEvent())

    assert await read(store, SF) is None
    assert await read(store, TX) is None
