"""Publishing infrastructure: publisher, dispatch strategies and retries."""

from .publisher import DomainEventPublisher
from .retry import (
    AggregateRetryPolicy,
    Continuation,
    RetryPolicy,
    Sleep,
    backoff_delay,
    retry_delay,
    retry_until_give_up,
)
from .strategies import (
    BatchedDispatch,
    DispatchMode,
    DispatchStrategy,
    ReadOnlyDispatch,
    SimpleDispatch,
    TransactionalDispatch,
    create_strategy,
    mode_for_kind,
    select_mode,
)

__all__ = [
    # Publisher
    "DomainEventPublisher",
    # Retry
    "RetryPolicy",
    "AggregateRetryPolicy",
    "Sleep",
    "Continuation",
    "backoff_delay",
    "retry_delay",
    "retry_until_give_up",
    # Dispatch strategies
    "DispatchMode",
    "DispatchStrategy",
    "SimpleDispatch",
    "ReadOnlyDispatch",
    "BatchedDispatch",
    "TransactionalDispatch",
    "create_strategy",
    "mode_for_kind",
    "select_mode",
]
