"""Pytest fixtures for MongoDB integration tests."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import pytest
import pytest_asyncio

from herald.integrations.mongodb import MongoConfiguration, MongoDocumentStore

# Assumes a single-node replica set is running locally on port 27017,
# transactions are not available on a standalone server
LOCAL_MONGO_URI = "mongodb://localhost:27017/?directConnection=true"


@asynccontextmanager
async def create_config(
    request: pytest.FixtureRequest,
    prefix: str = "test",
) -> AsyncIterator[MongoConfiguration]:
    """Create a MongoConfiguration on a fresh database with cleanup."""
    db_name = f"{prefix}_{request.node.name}"[:63]
    for character in "[]-":
        db_name = db_name.replace(character, "_")
    config = MongoConfiguration(
        uri=LOCAL_MONGO_URI,
        database=db_name,
        server_selection_timeout_ms=5000,
    )
    await config.client.drop_database(config.database)
    try:
        yield config
    finally:
        await config.client.drop_database(config.database)
        await config.on_shutdown()


@pytest_asyncio.fixture
async def mongo_config(request: pytest.FixtureRequest) -> AsyncIterator[MongoConfiguration]:
    """Create a MongoConfiguration pointing to local MongoDB."""
    async with create_config(request) as config:
        yield config


@pytest_asyncio.fixture
async def mongo_store(mongo_config: MongoConfiguration) -> MongoDocumentStore:
    """Create a MongoDocumentStore on the test database."""
    return MongoDocumentStore(mongo_config)
