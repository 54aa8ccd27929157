"""Addresses, queries and snapshots shared by every document store."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from ulid import ULID


@dataclass(frozen=True)
class DocumentRef:
    """Address of a single document.

    Attributes:
        collection: Name of the collection holding the document.
        id: Key of the document within the collection.

    Example:
        >>> ref = DocumentRef("cities", "NYC")
        >>> ref.path
        'cities/NYC'
    """

    collection: str
    id: str

    @classmethod
    def generate(cls, collection: str) -> "DocumentRef":
        """Create a reference with a fresh ULID key."""
        return cls(collection, str(ULID()))

    @property
    def path(self) -> str:
        return f"{self.collection}/{self.id}"


@dataclass(frozen=True)
class Query:
    """Query over a single collection.

    Attributes:
        collection: Collection to search.
        filter: Field equality conditions on top-level fields.
        sort: Optional (field, direction) pairs; direction is 1 or -1.
        limit: Optional maximum number of results.
    """

    collection: str
    filter: Mapping[str, Any] = field(default_factory=dict)
    sort: tuple[tuple[str, int], ...] | None = None
    limit: int | None = None

    def __post_init__(self) -> None:
        if self.limit is not None and self.limit < 0:
            raise ValueError("limit must be non-negative")


@dataclass(frozen=True)
class DocumentSnapshot:
    """Contents of a document at the time it was read.

    Attributes:
        ref: Address of the document.
        data: Document fields, or None when the document does not exist.
    """

    ref: DocumentRef
    data: dict[str, Any] | None

    @property
    def exists(self) -> bool:
        return self.data is not None

    def get(self, name: str, default: Any = None) -> Any:
        """Get a field value, or default when absent or the document is missing."""
        if self.data is None:
            return default
        return self.data.get(name, default)


@dataclass(frozen=True)
class Precondition:
    """Condition a document must satisfy when a write is applied.

    Attributes:
        exists: If set, the document must (True) or must not (False) exist.
        fields: Field values the stored document must currently hold.
    """

    exists: bool | None = None
    fields: Mapping[str, Any] = field(default_factory=dict)

    def holds(self, data: Mapping[str, Any] | None) -> bool:
        """Evaluate the precondition against the current document contents."""
        if self.exists is not None and self.exists != (data is not None):
            return False
        if self.fields:
            if data is None:
                return False
            return all(data.get(name) == value for name, value in self.fields.items())
        return True
