"""Exceptions raised by herald and by document store implementations."""

from enum import Enum


class StoreErrorCode(str, Enum):
    """Canonical failure codes reported by document stores.

    Store implementations translate their native exceptions into a
    StoreError carrying one of these codes, so that retry decisions do not
    depend on a particular driver.
    """

    CANCELLED = "cancelled"
    UNKNOWN = "unknown"
    INVALID_ARGUMENT = "invalid-argument"
    DEADLINE_EXCEEDED = "deadline-exceeded"
    NOT_FOUND = "not-found"
    ALREADY_EXISTS = "already-exists"
    PERMISSION_DENIED = "permission-denied"
    RESOURCE_EXHAUSTED = "resource-exhausted"
    FAILED_PRECONDITION = "failed-precondition"
    ABORTED = "aborted"
    OUT_OF_RANGE = "out-of-range"
    UNIMPLEMENTED = "unimplemented"
    INTERNAL = "internal"
    UNAVAILABLE = "unavailable"
    DATA_LOSS = "data-loss"
    UNAUTHENTICATED = "unauthenticated"


TRANSIENT_STORE_ERROR_CODES = frozenset(
    {
        StoreErrorCode.UNAVAILABLE,
        StoreErrorCode.RESOURCE_EXHAUSTED,
        StoreErrorCode.INTERNAL,
        StoreErrorCode.DEADLINE_EXCEEDED,
        StoreErrorCode.DATA_LOSS,
        StoreErrorCode.ABORTED,
        StoreErrorCode.CANCELLED,
    }
)


class RetryableError(Exception):
    """Raised by handlers to flag a failure as transient.

    The default DomainEvent.is_retryable_error honours the ``retryable``
    attribute, so any exception type can opt in by defining it.
    """

    retryable = True


class StoreError(Exception):
    """Failure reported by a document store.

    Attributes:
        code: Canonical code describing the failure.
    """

    def __init__(self, message: str, code: StoreErrorCode = StoreErrorCode.UNKNOWN):
        super().__init__(message)
        self.code = code

    @property
    def retryable(self) -> bool:
        """Whether the code denotes a transient condition."""
        return self.code in TRANSIENT_STORE_ERROR_CODES

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str(self)!r}, code={self.code.value!r})"


class TransactionConflictError(StoreError):
    """Raised when a transaction keeps conflicting with concurrent writes.

    Stores retry conflicting transactions internally; this surfaces only
    once their own attempts are exhausted.
    """

    def __init__(self, message: str):
        super().__init__(message, StoreErrorCode.ABORTED)


class PreconditionFailedError(StoreError):
    """Raised when a write precondition does not hold at apply time."""

    def __init__(self, message: str):
        super().__init__(message, StoreErrorCode.FAILED_PRECONDITION)


class DocumentNotFoundError(StoreError):
    """Raised when updating a document that does not exist."""

    def __init__(self, message: str):
        super().__init__(message, StoreErrorCode.NOT_FOUND)


class DocumentExistsError(StoreError):
    """Raised when creating a document that already exists."""

    def __init__(self, message: str):
        super().__init__(message, StoreErrorCode.ALREADY_EXISTS)
