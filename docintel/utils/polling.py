"""Bounded polling primitive shared by every wait in the ingestion flow."""

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from docintel.utils.logging import get_logger

LOGGER = get_logger(__name__)

T = TypeVar("T")

Sleeper = Callable[[float], Awaitable[Any]]
Clock = Callable[[], float]


@dataclass
class PollResult(Generic[T]):
    """Outcome of a bounded poll.

    Attributes:
        satisfied: Whether the predicate produced a truthy value before the deadline
        value: The last value the predicate produced (None if it never returned)
        attempts: Number of predicate evaluations
        elapsed: Seconds spent polling
    """

    satisfied: bool
    value: Optional[T]
    attempts: int
    elapsed: float


async def poll_until(
    predicate: Callable[[], Awaitable[T]],
    interval: float,
    deadline: float,
    *,
    description: str = "condition",
    sleep: Sleeper = asyncio.sleep,
    clock: Clock = time.monotonic,
) -> PollResult[T]:
    """Evaluate predicate until it returns a truthy value or the deadline passes.

    Errors raised by the predicate count as "not yet" and polling continues.
    Running out of time is not an error: callers inspect ``satisfied`` and
    decide how to proceed.

    Args:
        predicate: Async callable returning a truthy value once the condition holds
        interval: Seconds to wait between evaluations
        deadline: Total seconds allowed, measured from the first evaluation
        description: Label used in log messages
        sleep: Awaitable sleep function (injectable for tests)
        clock: Monotonic clock function (injectable for tests)

    Returns:
        PollResult describing the outcome
    """
    started = clock()
    attempts = 0
    value: Optional[T] = None

    while True:
        attempts += 1
        try:
            value = await predicate()
        except Exception as e:
            LOGGER.debug(
                f"Poll check for {description} raised, treating as not ready",
                extra={"attempt": attempts, "error": str(e)},
            )
            value = None

        elapsed = clock() - started
        if value:
            return PollResult(satisfied=True, value=value, attempts=attempts, elapsed=elapsed)

        remaining = deadline - elapsed
        if remaining <= 0:
            LOGGER.info(
                f"Gave up waiting for {description}",
                extra={"attempts": attempts, "elapsed": round(elapsed, 2)},
            )
            return PollResult(satisfied=False, value=value, attempts=attempts, elapsed=elapsed)

        await sleep(min(interval, remaining))
