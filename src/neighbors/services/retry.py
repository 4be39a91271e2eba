"""Try, repair, retry once.

Creation flows that can collide with leftover state (an orphaned provider
identity, a half-written profile) share one policy: attempt the operation,
and on a conflict run a repair step, then retry the operation at most once.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from src.neighbors.services.database import UniqueConflictError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Idempotency keys with a submission currently running (single event loop per process)
_in_flight: set[str] = set()


class DuplicateSubmissionError(Exception):
    """Raised when the same idempotency key is submitted while a previous submission runs."""

    def __init__(self, idempotency_key: str) -> None:
        self.idempotency_key = idempotency_key
        super().__init__(f"Submission already in progress for {idempotency_key}")


@dataclass(frozen=True)
class Resolved(Generic[T]):
    """Repair verdict that settles the outcome without retrying."""

    value: T


class _RepairedConflict(Exception):
    def __init__(self, original: BaseException) -> None:
        self.original = original
        super().__init__(str(original))


RepairVerdict = bool | Resolved[Any]


async def retry_after_repair(
    operation: Callable[[], Awaitable[T]],
    repair: Callable[[BaseException], Awaitable[RepairVerdict]],
    *,
    idempotency_key: str,
    retry_on: tuple[type[BaseException], ...] = (UniqueConflictError,),
    backoff_seconds: float = 0.0,
) -> Any:
    """
    Run ``operation``; on a ``retry_on`` error, repair and retry once.

    The repair step sees the error and answers with a verdict:
    ``True`` retries the operation, ``False`` re-raises the original error and
    ``Resolved(value)`` stops and returns ``value``. Repair runs at most once,
    so a conflict on the retry propagates unchanged.

    Args:
        operation: Zero-argument coroutine function to attempt
        repair: Coroutine function called with the conflict error
        idempotency_key: Identifies the submission (e.g. the normalized email)
        retry_on: Error types that trigger the repair step
        backoff_seconds: Pause before the retry

    Returns:
        The operation's result, or the value of a Resolved verdict

    Raises:
        DuplicateSubmissionError: If ``idempotency_key`` is already in flight
    """
    if idempotency_key in _in_flight:
        logger.warning(
            f"Duplicate submission rejected for {idempotency_key}",
            extra={"error_type": "duplicate_submission"},
        )
        raise DuplicateSubmissionError(idempotency_key)

    _in_flight.add(idempotency_key)
    repaired = False
    try:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(2),
            wait=wait_exponential(multiplier=backoff_seconds, max=max(backoff_seconds * 4, 0)),
            retry=retry_if_exception_type(_RepairedConflict),
            reraise=True,
        ):
            with attempt:
                try:
                    return await operation()
                except retry_on as e:
                    if repaired:
                        logger.warning(f"Retry after repair failed for {idempotency_key}: {e}")
                        raise
                    repaired = True
                    verdict = await repair(e)
                    if isinstance(verdict, Resolved):
                        return verdict.value
                    if not verdict:
                        raise
                    logger.info(f"Repaired conflict for {idempotency_key}, retrying once")
                    raise _RepairedConflict(e) from e
    except _RepairedConflict as e:
        raise e.original from e
    finally:
        _in_flight.discard(idempotency_key)


def is_in_flight(idempotency_key: str) -> bool:
    return idempotency_key in _in_flight
