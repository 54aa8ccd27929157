"""MongoDB integration for herald.

This module provides a MongoDB implementation of the DocumentStore interface
using the async PyMongo driver. Transactions and write batches both run as
multi-document transactions, which require a replica set.

Installation:
    pip install herald[mongodb]

Usage:
    >>> from herald import DomainEventPublisher
    >>> from herald.integrations.mongodb import MongoConfiguration, MongoDocumentStore
    >>>
    >>> config = MongoConfiguration(
    ...     uri="mongodb://localhost:27017/?replicaSet=rs0",
    ...     database="myapp",
    ... )
    >>> publisher = DomainEventPublisher(MongoDocumentStore(config))
"""

from .config import MongoConfiguration
from .errors import to_store_error, translate_errors
from .store import (
    MongoDocumentStore,
    MongoReadContext,
    MongoTransaction,
    MongoWriteBatch,
    apply_writes,
)

__all__ = [
    "MongoConfiguration",
    "MongoDocumentStore",
    "MongoReadContext",
    "MongoTransaction",
    "MongoWriteBatch",
    "apply_writes",
    "to_store_error",
    "translate_errors",
]
