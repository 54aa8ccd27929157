"""Dispatch strategies: how one attempt of a publish call runs its handlers.

The publisher picks exactly one strategy per publish call from the mix of
handler kinds, following this precedence:

1. any TransactionEventHandler -> TransactionalDispatch
2. any BatchEventHandler -> BatchedDispatch
3. any ReadEventHandler -> ReadOnlyDispatch
4. otherwise -> SimpleDispatch

The strongest handler sets the envelope for everyone: a single transaction
handler makes batch, read and simple handlers of the same call run inside
its transaction.

Strategies run handlers strictly in order and do not catch errors. Retry
and rollback are the publisher's job.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from enum import Enum

from typing_extensions import assert_never

from ..domain import (
    BatchEventHandler,
    DomainEventHandler,
    HandlerKind,
    ReadEventHandler,
    SimpleEventHandler,
    TransactionEventHandler,
)
from ..store import DocumentStore, Transaction

LOGGER = logging.getLogger(__name__)


class DispatchMode(Enum):
    """Consistency envelope used to run the handlers of a publish call."""

    SIMPLE = "simple"
    READ_ONLY = "read_only"
    BATCHED = "batched"
    TRANSACTIONAL = "transactional"


_PRECEDENCE = (
    DispatchMode.TRANSACTIONAL,
    DispatchMode.BATCHED,
    DispatchMode.READ_ONLY,
    DispatchMode.SIMPLE,
)


def mode_for_kind(kind: HandlerKind) -> DispatchMode:
    """Envelope a handler of the given kind needs on its own."""
    if kind is HandlerKind.TRANSACTION:
        return DispatchMode.TRANSACTIONAL
    elif kind is HandlerKind.BATCH:
        return DispatchMode.BATCHED
    elif kind is HandlerKind.READ:
        return DispatchMode.READ_ONLY
    elif kind is HandlerKind.SIMPLE:
        return DispatchMode.SIMPLE
    else:
        assert_never(kind)


def select_mode(handlers: Sequence[DomainEventHandler]) -> DispatchMode:
    """Pick the envelope for a whole handler set.

    Args:
        handlers: Every handler of the publish call.

    Returns:
        The strongest mode required by any handler; SIMPLE when empty.
    """
    required = {mode_for_kind(handler.kind) for handler in handlers}
    for mode in _PRECEDENCE:
        if mode in required:
            return mode
    return DispatchMode.SIMPLE


class DispatchStrategy(ABC):
    """Runs every handler of a publish call once, inside one envelope.

    Implementations:
    - SimpleDispatch: plain calls, no store access
    - ReadOnlyDispatch: direct reads, then plain calls
    - BatchedDispatch: direct reads, then writes into one committed batch
    - TransactionalDispatch: reads and writes inside one transaction
    """

    mode: DispatchMode

    def __init__(self, store: DocumentStore):
        """Initialize the strategy.

        Args:
            store: Document store providing readers, batches and transactions.
        """
        self.store = store

    @abstractmethod
    async def run(self, handlers: Sequence[DomainEventHandler]) -> None:
        """Run one attempt over all handlers.

        Args:
            handlers: Handlers in dispatch order.

        Raises:
            Exception: The first error raised by a handler or by the store.
                Handlers after the failing one do not run.
        """
        ...


class SimpleDispatch(DispatchStrategy):
    """Call handle_event() on every simple handler."""

    mode = DispatchMode.SIMPLE

    async def run(self, handlers: Sequence[DomainEventHandler]) -> None:
        for handler in handlers:
            if isinstance(handler, SimpleEventHandler):
                await handler.handle_event()


class ReadOnlyDispatch(DispatchStrategy):
    """Prepare read handlers with direct reads, then handle read and simple ones."""

    mode = DispatchMode.READ_ONLY

    async def run(self, handlers: Sequence[DomainEventHandler]) -> None:
        for handler in handlers:
            if isinstance(handler, ReadEventHandler):
                await handler.prepare_handle_event(self.store.reader())

        for handler in handlers:
            if isinstance(handler, (ReadEventHandler, SimpleEventHandler)):
                await handler.handle_event()


class BatchedDispatch(DispatchStrategy):
    """Stage every write into one batch and commit it once at the end.

    Reads are direct and not isolated from the batch: a document read in
    prepare_handle_event may change before the commit. If any handler
    fails, the batch is dropped without committing.
    """

    mode = DispatchMode.BATCHED

    async def run(self, handlers: Sequence[DomainEventHandler]) -> None:
        for handler in handlers:
            if isinstance(handler, ReadEventHandler):
                await handler.prepare_handle_event(self.store.reader())

        batch = self.store.batch()
        for handler in handlers:
            if isinstance(handler, BatchEventHandler):
                await handler.handle_event(batch)
            elif isinstance(handler, (ReadEventHandler, SimpleEventHandler)):
                await handler.handle_event()

        LOGGER.debug("Committing batch", extra={"write_count": len(batch.writes)})
        await batch.commit()


class TransactionalDispatch(DispatchStrategy):
    """Run every handler inside a single store transaction.

    Transaction and read handlers read through the transaction, then
    transaction and batch handlers stage their writes into it. The store
    commits when the callback completes and may run the callback again on
    a write conflict, independently of the publisher's retries.
    """

    mode = DispatchMode.TRANSACTIONAL

    async def run(self, handlers: Sequence[DomainEventHandler]) -> None:
        async def in_transaction(transaction: Transaction) -> None:
            LOGGER.debug("Running handlers in transaction", extra={"handler_count": len(handlers)})
            for handler in handlers:
                if isinstance(handler, (TransactionEventHandler, ReadEventHandler)):
                    await handler.prepare_handle_event(transaction)

            for handler in handlers:
                if isinstance(handler, (TransactionEventHandler, BatchEventHandler)):
                    await handler.handle_event(transaction)
                else:
                    await handler.handle_event()

        await self.store.run_transaction(in_transaction)


_STRATEGIES: dict[DispatchMode, type[DispatchStrategy]] = {
    strategy.mode: strategy
    for strategy in (SimpleDispatch, ReadOnlyDispatch, BatchedDispatch, TransactionalDispatch)
}


def create_strategy(mode: DispatchMode, store: DocumentStore) -> DispatchStrategy:
    """Instantiate the strategy implementing a dispatch mode."""
    return _STRATEGIES[mode](store)
