"""Read and write capabilities handed to event handlers.

Handlers never see the store itself. They receive a ReadContext to load the
documents they need and a WriteContext to stage the writes they want. Each
store provides two flavours of both:

- direct reads and a WriteBatch, used when no transaction is needed
- a Transaction, which is both a ReadContext and a WriteContext

The flavours are interchangeable from a handler's point of view: the same
methods with the same return shapes.
"""

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, TypeVar

from .documents import DocumentRef, DocumentSnapshot, Precondition, Query

T = TypeVar("T")


class ReadContext(ABC):
    """Read access to the document store."""

    @abstractmethod
    async def get(self, ref: DocumentRef) -> DocumentSnapshot:
        """Read a single document.

        Args:
            ref: Address of the document.

        Returns:
            Snapshot of the document; ``exists`` is False when it is missing.
        """
        ...

    @abstractmethod
    async def get_all(self, *refs: DocumentRef) -> list[DocumentSnapshot]:
        """Read several documents at once.

        Returns:
            One snapshot per reference, in the order given.
        """
        ...

    @abstractmethod
    async def query(self, query: Query) -> list[DocumentSnapshot]:
        """Run a query and return the matching documents."""
        ...


class WriteContext(ABC):
    """Staged write access to the document store.

    Writes are recorded when called and applied together later, when the
    batch commits or the transaction completes. Nothing is visible to
    readers before that point.
    """

    @abstractmethod
    def set(self, ref: DocumentRef, data: Mapping[str, Any], merge: bool = False) -> None:
        """Write a whole document, or merge fields into it when merge is True.

        The document is created if it does not exist.
        """
        ...

    @abstractmethod
    def create(self, ref: DocumentRef, data: Mapping[str, Any]) -> DocumentRef:
        """Create a document that must not already exist.

        Returns:
            The reference, for chaining.
        """
        ...

    def add(self, collection: str, data: Mapping[str, Any]) -> DocumentRef:
        """Create a document under a generated key.

        Returns:
            The reference of the new document.
        """
        return self.create(DocumentRef.generate(collection), data)

    @abstractmethod
    def update(
        self,
        ref: DocumentRef,
        data: Mapping[str, Any],
        precondition: Precondition | None = None,
    ) -> None:
        """Update fields of an existing document.

        Args:
            ref: Address of the document, which must exist.
            data: Fields to overwrite.
            precondition: Optional condition checked when the write applies.
        """
        ...

    @abstractmethod
    def delete(self, ref: DocumentRef, precondition: Precondition | None = None) -> None:
        """Delete a document. Deleting a missing document is not an error."""
        ...


class WriteKind(Enum):
    SET = "set"
    MERGE = "merge"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class StagedWrite:
    """A write recorded by a StagedWriteContext, not yet applied."""

    kind: WriteKind
    ref: DocumentRef
    data: dict[str, Any] | None = None
    precondition: Precondition | None = None


class StagedWriteContext(WriteContext):
    """WriteContext that records writes in order for a store to apply later."""

    def __init__(self) -> None:
        self._writes: list[StagedWrite] = []

    @property
    def writes(self) -> list[StagedWrite]:
        """The writes staged so far, in call order."""
        return list(self._writes)

    def set(self, ref: DocumentRef, data: Mapping[str, Any], merge: bool = False) -> None:
        kind = WriteKind.MERGE if merge else WriteKind.SET
        self._stage(StagedWrite(kind, ref, dict(data)))

    def create(self, ref: DocumentRef, data: Mapping[str, Any]) -> DocumentRef:
        self._stage(StagedWrite(WriteKind.CREATE, ref, dict(data)))
        return ref

    def update(
        self,
        ref: DocumentRef,
        data: Mapping[str, Any],
        precondition: Precondition | None = None,
    ) -> None:
        self._stage(StagedWrite(WriteKind.UPDATE, ref, dict(data), precondition))

    def delete(self, ref: DocumentRef, precondition: Precondition | None = None) -> None:
        self._stage(StagedWrite(WriteKind.DELETE, ref, None, precondition))

    def _stage(self, write: StagedWrite) -> None:
        self._writes.append(write)


class WriteBatch(StagedWriteContext):
    """A group of writes applied atomically by a single commit.

    A batch gives no read consistency: documents read before staging may
    have changed by the time the batch commits.
    """

    def __init__(self) -> None:
        super().__init__()
        self._committed = False

    def _stage(self, write: StagedWrite) -> None:
        if self._committed:
            raise RuntimeError("batch has already been committed")
        super()._stage(write)

    async def commit(self) -> None:
        """Apply every staged write atomically.

        Raises:
            RuntimeError: If the batch was already committed.
            StoreError: If the store rejects the writes; nothing is applied.
        """
        if self._committed:
            raise RuntimeError("batch has already been committed")
        self._committed = True
        await self._apply(self.writes)

    @abstractmethod
    async def _apply(self, writes: list[StagedWrite]) -> None:
        """Apply the writes atomically."""
        ...


class Transaction(ReadContext, StagedWriteContext):
    """Read/write handle passed to a transaction callback.

    Reads see a consistent view of the store. Writes are buffered and
    applied atomically when the callback returns; they are not visible to
    reads made through the same transaction.
    """


TransactionCallback = Callable[[Transaction], Awaitable[T]]


class DocumentStore(ABC):
    """Entry point to a transactional document store."""

    @abstractmethod
    def reader(self) -> ReadContext:
        """Get a context for direct reads outside any transaction."""
        ...

    @abstractmethod
    def batch(self) -> WriteBatch:
        """Open a new write batch."""
        ...

    @abstractmethod
    async def run_transaction(self, callback: TransactionCallback[T]) -> T:
        """Run the callback inside an atomic transaction.

        The transaction commits only if the callback returns without
        raising. The store may run the callback several times when the
        commit conflicts with concurrent writes, so the callback must be
        safe to repeat.

        Args:
            callback: Async function receiving the Transaction.

        Returns:
            Whatever the last run of the callback returned.

        Raises:
            Exception: Whatever the callback raised; the transaction is
                aborted and none of its writes are applied.
            StoreError: If the store cannot commit.
        """
        ...
