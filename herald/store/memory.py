"""In-memory document store for tests and local development."""

import copy
import itertools
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, TypeVar

from ..domain.exceptions import (
    DocumentExistsError,
    DocumentNotFoundError,
    PreconditionFailedError,
    StoreError,
    StoreErrorCode,
    TransactionConflictError,
)
from .context import (
    DocumentStore,
    ReadContext,
    StagedWrite,
    Transaction,
    TransactionCallback,
    WriteBatch,
    WriteKind,
)
from .documents import DocumentRef, DocumentSnapshot, Query

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class _StoredDocument:
    version: int
    data: dict[str, Any]


_Documents = Mapping[DocumentRef, _StoredDocument]


def _snapshot(ref: DocumentRef, documents: _Documents) -> DocumentSnapshot:
    stored = documents.get(ref)
    data = copy.deepcopy(stored.data) if stored is not None else None
    return DocumentSnapshot(ref, data)


def _run_query(query: Query, documents: _Documents) -> list[DocumentSnapshot]:
    matches = [
        ref
        for ref, stored in documents.items()
        if ref.collection == query.collection
        and all(stored.data.get(name) == value for name, value in query.filter.items())
    ]
    # Stable sorts applied from the least to the most significant key
    for name, direction in reversed(query.sort or ()):
        matches.sort(
            key=lambda ref: _sort_key(documents[ref].data.get(name)),
            reverse=direction < 0,
        )
    if query.limit is not None:
        matches = matches[: query.limit]
    return [_snapshot(ref, documents) for ref in matches]


def _sort_key(value: Any) -> tuple[bool, Any]:
    return (value is not None, value)


class InMemoryReadContext(ReadContext):
    """Direct reads against the current committed state."""

    def __init__(self, store: "InMemoryDocumentStore"):
        self._store = store

    async def get(self, ref: DocumentRef) -> DocumentSnapshot:
        return _snapshot(ref, self._store.documents)

    async def get_all(self, *refs: DocumentRef) -> list[DocumentSnapshot]:
        return [_snapshot(ref, self._store.documents) for ref in refs]

    async def query(self, query: Query) -> list[DocumentSnapshot]:
        return _run_query(query, self._store.documents)


class InMemoryWriteBatch(WriteBatch):
    def __init__(self, store: "InMemoryDocumentStore"):
        super().__init__()
        self._store = store

    async def _apply(self, writes: list[StagedWrite]) -> None:
        self._store.apply(writes)


class InMemoryTransaction(Transaction):
    """Transaction reading from the state captured when it started.

    Every document read records the version it saw. At commit the store
    compares those versions with the current ones and rejects the commit if
    any of them moved. As in most document stores, all reads must happen
    before the first write is staged.
    """

    def __init__(self, store: "InMemoryDocumentStore"):
        super().__init__()
        self._documents = store.documents
        self.read_versions: dict[DocumentRef, int | None] = {}

    async def get(self, ref: DocumentRef) -> DocumentSnapshot:
        self._check_readable()
        self._record(ref)
        return _snapshot(ref, self._documents)

    async def get_all(self, *refs: DocumentRef) -> list[DocumentSnapshot]:
        self._check_readable()
        for ref in refs:
            self._record(ref)
        return [_snapshot(ref, self._documents) for ref in refs]

    async def query(self, query: Query) -> list[DocumentSnapshot]:
        self._check_readable()
        snapshots = _run_query(query, self._documents)
        for snapshot in snapshots:
            self._record(snapshot.ref)
        return snapshots

    def _check_readable(self) -> None:
        if self.writes:
            raise StoreError(
                "reads must happen before writes in a transaction",
                StoreErrorCode.INVALID_ARGUMENT,
            )

    def _record(self, ref: DocumentRef) -> None:
        stored = self._documents.get(ref)
        self.read_versions[ref] = stored.version if stored is not None else None


class InMemoryDocumentStore(DocumentStore):
    """A document store that keeps everything in a dictionary.

    Transactions are optimistic: they read from the state captured at start
    and commit only if no document they read has changed since. A
    conflicting transaction is re-run up to ``max_transaction_attempts``
    times before TransactionConflictError is raised.

    This is not intended for production use. Data is lost with the process
    and there is no protection against concurrent threads; concurrent
    asyncio tasks are fine because no commit suspends.

    Example:
        >>> store = InMemoryDocumentStore()
        >>> batch = store.batch()
        >>> batch.set(DocumentRef("cities", "NYC"), {"name": "New York City"})
        >>> await batch.commit()
        >>> (await store.reader().get(DocumentRef("cities", "NYC"))).data
        {'name': 'New York City'}
    """

    def __init__(self, max_transaction_attempts: int = 5):
        if max_transaction_attempts <= 0:
            raise ValueError("max_transaction_attempts must be positive")
        self.max_transaction_attempts = max_transaction_attempts
        self._documents: dict[DocumentRef, _StoredDocument] = {}
        self._versions = itertools.count(1)

    @property
    def documents(self) -> _Documents:
        """Current committed state. Stored documents are never mutated in place."""
        return dict(self._documents)

    def reader(self) -> InMemoryReadContext:
        return InMemoryReadContext(self)

    def batch(self) -> InMemoryWriteBatch:
        return InMemoryWriteBatch(self)

    async def run_transaction(self, callback: TransactionCallback[T]) -> T:
        for attempt in range(1, self.max_transaction_attempts + 1):
            transaction = InMemoryTransaction(self)
            result = await callback(transaction)
            if self._unchanged(transaction.read_versions.items()):
                self.apply(transaction.writes)
                return result
            LOGGER.debug(
                "Transaction conflict",
                extra={"attempt": attempt, "max_attempts": self.max_transaction_attempts},
            )
        raise TransactionConflictError(
            f"transaction conflicted {self.max_transaction_attempts} times"
        )

    def apply(self, writes: list[StagedWrite]) -> None:
        """Apply writes atomically: either all of them or, on error, none.

        Raises:
            DocumentExistsError: A create targets an existing document.
            DocumentNotFoundError: An update targets a missing document.
            PreconditionFailedError: A precondition does not hold.
        """
        working = dict(self._documents)
        for write in writes:
            current = working.get(write.ref)
            data = current.data if current is not None else None
            if write.precondition is not None and not write.precondition.holds(data):
                raise PreconditionFailedError(f"precondition failed for {write.ref.path}")

            if write.kind is WriteKind.DELETE:
                working.pop(write.ref, None)
                continue

            new_data = copy.deepcopy(write.data or {})
            if write.kind is WriteKind.CREATE:
                if data is not None:
                    raise DocumentExistsError(f"document {write.ref.path} already exists")
            elif write.kind is WriteKind.UPDATE:
                if data is None:
                    raise DocumentNotFoundError(f"document {write.ref.path} does not exist")
                new_data = {**data, **new_data}
            elif write.kind is WriteKind.MERGE:
                new_data = {**(data or {}), **new_data}
            working[write.ref] = _StoredDocument(next(self._versions), new_data)
        self._documents = working

    def _unchanged(self, read_versions: Iterable[tuple[DocumentRef, int | None]]) -> bool:
        for ref, version in read_versions:
            stored = self._documents.get(ref)
            if (stored.version if stored is not None else None) != version:
                return False
        return True
