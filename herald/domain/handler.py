"""Event handlers produced by subscribers.

A subscriber answers every published event with at most one handler. The
handler's base class declares what it needs from the document store, and
that capability decides how the publisher runs it:

=========================  =======================  =======================
Handler                    prepare_handle_event      handle_event
=========================  =======================  =======================
SimpleEventHandler         -                        ()
ReadEventHandler           (ReadContext)            ()
BatchEventHandler          -                        (WriteContext)
TransactionEventHandler    (ReadContext)            (WriteContext)
=========================  =======================  =======================

Handlers are created per event, so keeping state between
prepare_handle_event and handle_event is fine. Every method except the
hooks may run several times because of retries and must tolerate that.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import ClassVar

from ..store.context import ReadContext, WriteContext


class HandlerKind(Enum):
    """Store capability required by a handler."""

    SIMPLE = "simple"
    READ = "read"
    BATCH = "batch"
    TRANSACTION = "transaction"


class EventHandler(ABC):
    """Hooks shared by every handler.

    Do not subclass this directly; pick one of the four variants below.
    """

    kind: ClassVar[HandlerKind]

    async def on_success(self) -> None:
        """Called once every handler of the publish call has succeeded.

        Override to trigger follow-up work. An exception raised here is
        not handled by the publisher and no rollback follows.
        """
        return None

    async def rollback(self) -> None:
        """Called when the publish call fails for good.

        Override to undo side effects outside the document store; store
        writes of a failed batch or transaction were never applied. An
        exception raised here propagates and hides the original error.
        """
        return None


class SimpleEventHandler(EventHandler):
    """Handler that does not touch the document store."""

    kind = HandlerKind.SIMPLE

    @abstractmethod
    async def handle_event(self) -> None:
        """Process the event. May be called several times due to retries."""
        ...


class ReadEventHandler(EventHandler):
    """Handler that reads from the document store but never writes to it.

    Load what you need in prepare_handle_event and keep it on self, then
    act on it in handle_event.
    """

    kind = HandlerKind.READ

    @abstractmethod
    async def prepare_handle_event(self, context: ReadContext) -> None:
        """Read documents. May be called several times due to retries."""
        ...

    @abstractmethod
    async def handle_event(self) -> None:
        """Process the event. May be called several times due to retries."""
        ...


class BatchEventHandler(EventHandler):
    """Handler that only writes; its writes join a batch or transaction."""

    kind = HandlerKind.BATCH

    @abstractmethod
    async def handle_event(self, context: WriteContext) -> None:
        """Stage writes. May be called several times due to retries."""
        ...


class TransactionEventHandler(EventHandler):
    """Handler that reads and writes atomically inside a transaction.

    Reads made in prepare_handle_event and writes staged in handle_event
    commit together, or not at all.
    """

    kind = HandlerKind.TRANSACTION

    @abstractmethod
    async def prepare_handle_event(self, context: ReadContext) -> None:
        """Read documents. May be called several times due to retries."""
        ...

    @abstractmethod
    async def handle_event(self, context: WriteContext) -> None:
        """Stage writes. May be called several times due to retries."""
        ...


DomainEventHandler = (
    SimpleEventHandler | ReadEventHandler | BatchEventHandler | TransactionEventHandler
)
