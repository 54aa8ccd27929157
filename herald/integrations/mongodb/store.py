"""MongoDB implementation of DocumentStore.

Documents are stored with their DocumentRef.id as ``_id`` in the collection
named by DocumentRef.collection. Snapshots never include ``_id``.

Both transactions and write batches use MongoDB multi-document
transactions through ClientSession.with_transaction, which re-runs its
callback on transient transaction errors and retries commits whose result
is unknown.
"""

import logging
from collections.abc import Awaitable, Callable, Mapping
from contextlib import AbstractContextManager, nullcontext
from typing import Any, TypeVar

from pymongo.asynchronous.client_session import AsyncClientSession
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import DuplicateKeyError

from herald.domain.exceptions import (
    DocumentExistsError,
    DocumentNotFoundError,
    PreconditionFailedError,
)
from herald.store import (
    DocumentRef,
    DocumentSnapshot,
    DocumentStore,
    Query,
    ReadContext,
    StagedWrite,
    Transaction,
    TransactionCallback,
    WriteBatch,
    WriteKind,
)

from .config import MongoConfiguration
from .errors import translate_errors

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

Database = AsyncDatabase[dict[str, Any]]


def _data(document: Mapping[str, Any] | None) -> dict[str, Any] | None:
    if document is None:
        return None
    return {name: value for name, value in document.items() if name != "_id"}


class MongoReadContext(ReadContext):
    """Reads from MongoDB, optionally bound to a transaction session.

    Outside a session, driver errors are translated to StoreError. Inside
    one they propagate untouched so that with_transaction can recognise
    transient errors and re-run the transaction.
    """

    def __init__(self, database: Database, session: AsyncClientSession | None = None):
        self._database = database
        self._session = session

    async def get(self, ref: DocumentRef) -> DocumentSnapshot:
        with self._guard():
            document = await self._database[ref.collection].find_one(
                {"_id": ref.id}, session=self._session
            )
        return DocumentSnapshot(ref, _data(document))

    async def get_all(self, *refs: DocumentRef) -> list[DocumentSnapshot]:
        found: dict[DocumentRef, dict[str, Any]] = {}
        ids_by_collection: dict[str, list[str]] = {}
        for ref in refs:
            ids_by_collection.setdefault(ref.collection, []).append(ref.id)

        with self._guard():
            for collection, ids in ids_by_collection.items():
                cursor = self._database[collection].find(
                    {"_id": {"$in": ids}}, session=self._session
                )
                async for document in cursor:
                    found[DocumentRef(collection, document["_id"])] = document

        return [DocumentSnapshot(ref, _data(found.get(ref))) for ref in refs]

    async def query(self, query: Query) -> list[DocumentSnapshot]:
        # limit(0) means no limit to the driver
        if query.limit == 0:
            return []

        cursor = self._database[query.collection].find(
            dict(query.filter), session=self._session
        )
        if query.sort:
            cursor = cursor.sort(list(query.sort))
        if query.limit is not None:
            cursor = cursor.limit(query.limit)

        snapshots = []
        with self._guard():
            async for document in cursor:
                ref = DocumentRef(query.collection, document["_id"])
                snapshots.append(DocumentSnapshot(ref, _data(document)))
        return snapshots

    def _guard(self) -> AbstractContextManager[None]:
        if self._session is None:
            return translate_errors()
        return nullcontext()


async def apply_writes(
    database: Database,
    writes: list[StagedWrite],
    session: AsyncClientSession,
) -> None:
    """Apply staged writes in order within the session's transaction.

    Raises:
        DocumentExistsError: A create targets an existing document.
        DocumentNotFoundError: An update targets a missing document.
        PreconditionFailedError: A precondition does not hold.
    """
    LOGGER.debug("Applying staged writes", extra={"write_count": len(writes)})
    for write in writes:
        collection = database[write.ref.collection]
        by_id = {"_id": write.ref.id}

        if write.precondition is not None:
            current = await collection.find_one(by_id, session=session)
            if not write.precondition.holds(_data(current)):
                raise PreconditionFailedError(f"precondition failed for {write.ref.path}")

        if write.kind is WriteKind.SET:
            await collection.replace_one(by_id, write.data or {}, upsert=True, session=session)
        elif write.kind is WriteKind.MERGE:
            await collection.update_one(
                by_id, {"$set": write.data or {}}, upsert=True, session=session
            )
        elif write.kind is WriteKind.CREATE:
            try:
                await collection.insert_one({**(write.data or {}), **by_id}, session=session)
            except DuplicateKeyError as error:
                raise DocumentExistsError(
                    f"document {write.ref.path} already exists"
                ) from error
        elif write.kind is WriteKind.UPDATE:
            result = await collection.update_one(
                by_id, {"$set": write.data or {}}, session=session
            )
            if result.matched_count == 0:
                raise DocumentNotFoundError(f"document {write.ref.path} does not exist")
        elif write.kind is WriteKind.DELETE:
            await collection.delete_one(by_id, session=session)


class MongoWriteBatch(WriteBatch):
    def __init__(self, store: "MongoDocumentStore"):
        super().__init__()
        self._store = store

    async def _apply(self, writes: list[StagedWrite]) -> None:
        if not writes:
            return

        async def in_session(session: AsyncClientSession) -> None:
            await apply_writes(self._store.database, writes, session)

        await self._store.with_transaction(in_session)


class MongoTransaction(Transaction):
    """Transaction handle bound to a MongoDB session."""

    def __init__(self, database: Database, session: AsyncClientSession):
        super().__init__()
        self._reader = MongoReadContext(database, session)

    async def get(self, ref: DocumentRef) -> DocumentSnapshot:
        return await self._reader.get(ref)

    async def get_all(self, *refs: DocumentRef) -> list[DocumentSnapshot]:
        return await self._reader.get_all(*refs)

    async def query(self, query: Query) -> list[DocumentSnapshot]:
        return await self._reader.query(query)


class MongoDocumentStore(DocumentStore):
    """DocumentStore backed by MongoDB through the async PyMongo driver.

    Attributes:
        config: Configuration providing the client and database.

    Examples:
        >>> config = MongoConfiguration(
        ...     uri="mongodb://localhost:27017/?replicaSet=rs0",
        ...     database="myapp",
        ... )
        >>> store = MongoDocumentStore(config)
        >>> snapshot = await store.reader().get(DocumentRef("cities", "NYC"))

        >>> async def rename(transaction: Transaction) -> None:
        ...     city = await transaction.get(DocumentRef("cities", "NYC"))
        ...     transaction.update(city.ref, {"name": city.get("name").upper()})
        >>> await store.run_transaction(rename)
    """

    def __init__(self, config: MongoConfiguration):
        """Initialize the store.

        Args:
            config: MongoDB configuration; its client is created on first use.
        """
        self.config = config

    @property
    def database(self) -> Database:
        return self.config.db

    def reader(self) -> MongoReadContext:
        return MongoReadContext(self.database)

    def batch(self) -> MongoWriteBatch:
        return MongoWriteBatch(self)

    async def run_transaction(self, callback: TransactionCallback[T]) -> T:
        async def in_session(session: AsyncClientSession) -> T:
            transaction = MongoTransaction(self.database, session)
            result = await callback(transaction)
            await apply_writes(self.database, transaction.writes, session)
            return result

        return await self.with_transaction(in_session)

    async def with_transaction(
        self, callback: Callable[[AsyncClientSession], Awaitable[T]]
    ) -> T:
        """Run a session callback in a MongoDB transaction, translating errors.

        Args:
            callback: Async function receiving the AsyncClientSession.

        Returns:
            The callback's result.
        """
        with translate_errors():
            async with self.config.client.start_session() as session:
                return await session.with_transaction(
                    callback,
                    read_concern=self.config.read_concern,
                    write_concern=self.config.write_concern,
                    max_commit_time_ms=self.config.max_commit_time_ms,
                )
