"""MongoDB configuration using pydantic-settings."""

from functools import cached_property
from typing import Any, Literal

from pydantic import Field
from pydantic_settings import BaseSettings
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.asynchronous.mongo_client import AsyncMongoClient
from pymongo.read_concern import ReadConcern
from pymongo.write_concern import WriteConcern


class MongoConfiguration(BaseSettings):
    """Configuration and factory for MongoDB resources.

    Implements the on_startup/on_shutdown lifecycle pair so it can be tied
    to an application's lifecycle. The client is closed on shutdown.

    All settings can be configured via environment variables with the
    HERALD_MONGO_ prefix. For example:
    - HERALD_MONGO_URI=mongodb://localhost:27017/?replicaSet=rs0
    - HERALD_MONGO_DATABASE=myapp
    - HERALD_MONGO_MAX_COMMIT_TIME_MS=5000

    Transactions and write batches both run as MongoDB multi-document
    transactions, so the deployment must be a replica set or sharded
    cluster.

    Attributes:
        uri: MongoDB connection URI.
        database: Database name to use.
        server_selection_timeout_ms: How long to wait for a usable server.
        max_commit_time_ms: Optional limit for a single commit.
        transaction_read_concern: Read concern level inside transactions.
        transaction_write_concern: Write concern ("w") for commits.

    Example:
        >>> config = MongoConfiguration(database="myapp")
        >>> store = MongoDocumentStore(config)
        >>> publisher = DomainEventPublisher(store)
        >>> ...
        >>> await config.on_shutdown()
    """

    uri: str = "mongodb://localhost:27017"
    database: str = "herald"

    server_selection_timeout_ms: int = Field(default=30000, ge=0)
    max_commit_time_ms: int | None = Field(default=None, ge=1)
    transaction_read_concern: Literal["local", "majority", "snapshot"] = "snapshot"
    transaction_write_concern: str = "majority"

    model_config = {"env_prefix": "HERALD_MONGO_"}

    @cached_property
    def client(self) -> AsyncMongoClient[dict[str, Any]]:
        """Get the MongoDB async client.

        The client is lazily created and cached for reuse.
        """
        return AsyncMongoClient(
            self.uri,
            serverSelectionTimeoutMS=self.server_selection_timeout_ms,
        )

    @cached_property
    def db(self) -> AsyncDatabase[dict[str, Any]]:
        """Get the MongoDB async database.

        Uses the database name from configuration.
        """
        return self.client[self.database]

    @property
    def read_concern(self) -> ReadConcern:
        return ReadConcern(self.transaction_read_concern)

    @property
    def write_concern(self) -> WriteConcern:
        return WriteConcern(self.transaction_write_concern)

    async def on_startup(self) -> None:
        """Called when the application starts.

        No-op for MongoDB - connections are established lazily.
        """
        pass

    async def on_shutdown(self) -> None:
        """Called when the application shuts down.

        Closes the MongoDB client connection if it was created.
        """
        if "client" in self.__dict__:
            await self.client.close()
            del self.__dict__["client"]
            self.__dict__.pop("db", None)
