"""Retry policies and the retry decision for failed dispatch attempts."""

import logging
from collections.abc import Awaitable, Callable, Sequence
from datetime import timedelta
from typing import Protocol, runtime_checkable

from ..domain import DomainEvent

LOGGER = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]
"""Suspends for the given number of seconds, like asyncio.sleep."""

Continuation = Callable[[int], Awaitable[None]]
"""Runs the next attempt, given its zero-based attempt number."""


@runtime_checkable
class RetryPolicy(Protocol):
    """Retry parameters consulted when a dispatch attempt fails.

    DomainEvent satisfies this protocol, as does AggregateRetryPolicy.
    """

    @property
    def retry_max(self) -> int: ...

    @property
    def retry_interval_extend_factor(self) -> timedelta: ...

    @property
    def retry_interval_max(self) -> timedelta: ...

    def is_retryable_error(self, error: BaseException) -> bool: ...


class AggregateRetryPolicy:
    """Single retry policy derived from every event of a publish call.

    The combination is conservative: the smallest attempt budget, the
    slowest backoff, and an error counts as retryable only if every event
    considers it so.

    Attributes:
        events: The events the policy is derived from (never empty).

    Example:
        >>> policy = AggregateRetryPolicy([fast_event, slow_event])
        >>> policy.retry_max == min(fast_event.retry_max, slow_event.retry_max)
        True
    """

    __slots__ = ("events",)

    def __init__(self, events: Sequence[DomainEvent]):
        """Initialize the policy.

        Args:
            events: Events published together (at least one).

        Raises:
            ValueError: If events is empty.
        """
        if not events:
            raise ValueError("events must not be empty")
        self.events = list(events)

    @property
    def retry_max(self) -> int:
        return min(event.retry_max for event in self.events)

    @property
    def retry_interval_extend_factor(self) -> timedelta:
        return max(event.retry_interval_extend_factor for event in self.events)

    @property
    def retry_interval_max(self) -> timedelta:
        return max(event.retry_interval_max for event in self.events)

    def is_retryable_error(self, error: BaseException) -> bool:
        return all(event.is_retryable_error(error) for event in self.events)


def backoff_delay(policy: RetryPolicy, attempt: int) -> timedelta:
    """Delay to wait before the attempt following ``attempt``.

    The delay grows linearly with the retry number and is capped by
    ``retry_interval_max``: with a factor of 100ms and a cap of 500ms the
    delays are 100, 200, 300, 400, 500, 500, ... milliseconds.

    Args:
        policy: The retry policy in force.
        attempt: Zero-based number of the attempt that failed.
    """
    return min(
        policy.retry_interval_extend_factor * (attempt + 1),
        policy.retry_interval_max,
    )


def retry_delay(error: BaseException, policy: RetryPolicy, attempt: int) -> timedelta | None:
    """Decide whether a failed attempt is retried, and after how long.

    The attempt is retried when the policy considers the error retryable
    and the attempt budget is not spent.

    Args:
        error: The exception that made the attempt fail.
        policy: The retry policy in force.
        attempt: Zero-based number of the attempt that failed.

    Returns:
        The backoff delay before the next attempt, or None to give up.
    """
    if not policy.is_retryable_error(error) or attempt + 1 >= policy.retry_max:
        LOGGER.debug(
            f"Giving up after attempt {attempt + 1}/{policy.retry_max}: {error!r}",
            extra={"attempt": attempt, "retry_max": policy.retry_max},
        )
        return None

    delay = backoff_delay(policy, attempt)
    LOGGER.warning(
        f"Attempt {attempt + 1}/{policy.retry_max} failed, retrying in "
        f"{delay.total_seconds()}s: {error!r}",
        extra={"attempt": attempt, "retry_max": policy.retry_max},
    )
    return delay


async def retry_until_give_up(
    error: Exception,
    policy: RetryPolicy,
    attempt: int,
    next: Continuation,
    sleep: Sleep,
) -> bool:
    """Decide whether to retry after a failed attempt, and retry if so.

    Continuation-passing form of retry_delay: when a retry is due this
    sleeps for the backoff delay and then awaits ``next(attempt + 1)``;
    whatever that continuation raises propagates. Each retry nests one
    level deeper, so loops over many attempts should call retry_delay
    directly, as DomainEventPublisher does.

    Args:
        error: The exception that made the attempt fail.
        policy: The retry policy in force.
        attempt: Zero-based number of the attempt that failed.
        next: Runs the following attempt.
        sleep: Suspends for a number of seconds.

    Returns:
        True if a retry ran, False if the caller should give up.
    """
    delay = retry_delay(error, policy, attempt)
    if delay is None:
        return False

    await sleep(delay.total_seconds())
    await next(attempt + 1)
    return True
