"""Document store abstraction consumed by the publisher.

This package defines what herald needs from a transactional document store:
- DocumentRef, Query, DocumentSnapshot, Precondition: the data model
- ReadContext / WriteContext: capabilities handed to handlers
- WriteBatch / Transaction: the two write envelopes
- DocumentStore: the entry point a publisher is built on

InMemoryDocumentStore is a complete implementation for tests. The MongoDB
implementation lives in herald.integrations.mongodb.
"""

from .context import (
    DocumentStore,
    ReadContext,
    StagedWrite,
    StagedWriteContext,
    Transaction,
    TransactionCallback,
    WriteBatch,
    WriteContext,
    WriteKind,
)
from .documents import DocumentRef, DocumentSnapshot, Precondition, Query
from .memory import InMemoryDocumentStore

__all__ = [
    # Data model
    "DocumentRef",
    "DocumentSnapshot",
    "Precondition",
    "Query",
    # Capabilities
    "ReadContext",
    "WriteContext",
    "StagedWrite",
    "StagedWriteContext",
    "WriteKind",
    "WriteBatch",
    "Transaction",
    "TransactionCallback",
    "DocumentStore",
    # Implementations
    "InMemoryDocumentStore",
]
