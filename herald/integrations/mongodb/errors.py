"""Translation of PyMongo exceptions into StoreError."""

from collections.abc import Iterator
from contextlib import contextmanager

from pymongo.errors import (
    ConfigurationError,
    ConnectionFailure,
    DuplicateKeyError,
    ExecutionTimeout,
    InvalidOperation,
    NetworkTimeout,
    OperationFailure,
    PyMongoError,
    WTimeoutError,
)

from herald.domain.exceptions import (
    DocumentExistsError,
    StoreError,
    StoreErrorCode,
    TransactionConflictError,
)

# Server error codes, see https://www.mongodb.com/docs/manual/reference/error-codes/
_SERVER_CODES: dict[int, StoreErrorCode] = {
    2: StoreErrorCode.INVALID_ARGUMENT,  # BadValue
    9: StoreErrorCode.INVALID_ARGUMENT,  # FailedToParse
    6: StoreErrorCode.UNAVAILABLE,  # HostUnreachable
    7: StoreErrorCode.UNAVAILABLE,  # HostNotFound
    13: StoreErrorCode.PERMISSION_DENIED,  # Unauthorized
    18: StoreErrorCode.UNAUTHENTICATED,  # AuthenticationFailed
    24: StoreErrorCode.ABORTED,  # LockTimeout
    50: StoreErrorCode.DEADLINE_EXCEEDED,  # MaxTimeMSExpired
    89: StoreErrorCode.DEADLINE_EXCEEDED,  # NetworkTimeout
    91: StoreErrorCode.UNAVAILABLE,  # ShutdownInProgress
    112: StoreErrorCode.ABORTED,  # WriteConflict
    146: StoreErrorCode.RESOURCE_EXHAUSTED,  # ExceededMemoryLimit
    189: StoreErrorCode.UNAVAILABLE,  # PrimarySteppedDown
    251: StoreErrorCode.ABORTED,  # NoSuchTransaction
    262: StoreErrorCode.DEADLINE_EXCEEDED,  # ExceededTimeLimit
    9001: StoreErrorCode.UNAVAILABLE,  # SocketException
    10107: StoreErrorCode.UNAVAILABLE,  # NotWritablePrimary
    11600: StoreErrorCode.UNAVAILABLE,  # InterruptedAtShutdown
    11602: StoreErrorCode.UNAVAILABLE,  # InterruptedDueToReplStateChange
    13435: StoreErrorCode.UNAVAILABLE,  # NotPrimaryNoSecondaryOk
    13436: StoreErrorCode.UNAVAILABLE,  # NotPrimaryOrSecondary
}


def to_store_error(error: PyMongoError) -> StoreError:
    """Map a PyMongo exception onto the canonical StoreError hierarchy.

    Args:
        error: The exception raised by the driver.

    Returns:
        A StoreError whose code reflects whether the failure is transient.
    """
    message = str(error)
    if isinstance(error, DuplicateKeyError):
        return DocumentExistsError(message)
    if error.has_error_label("TransientTransactionError"):
        return TransactionConflictError(message)
    if error.has_error_label("UnknownTransactionCommitResult"):
        return StoreError(message, StoreErrorCode.UNAVAILABLE)
    if isinstance(error, (NetworkTimeout, ExecutionTimeout, WTimeoutError)):
        return StoreError(message, StoreErrorCode.DEADLINE_EXCEEDED)
    if isinstance(error, ConnectionFailure):
        return StoreError(message, StoreErrorCode.UNAVAILABLE)
    if isinstance(error, OperationFailure) and error.code in _SERVER_CODES:
        return StoreError(message, _SERVER_CODES[error.code])
    if isinstance(error, ConfigurationError):
        return StoreError(message, StoreErrorCode.INVALID_ARGUMENT)
    if isinstance(error, InvalidOperation):
        return StoreError(message, StoreErrorCode.FAILED_PRECONDITION)
    return StoreError(message, StoreErrorCode.UNKNOWN)


@contextmanager
def translate_errors() -> Iterator[None]:
    """Re-raise PyMongo exceptions raised in the block as StoreError.

    The driver exception is kept as ``__cause__``.
    """
    try:
        yield
    except PyMongoError as error:
        raise to_store_error(error) from error
