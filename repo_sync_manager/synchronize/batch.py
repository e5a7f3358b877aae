"""Bounded-concurrency execution of independent sync actions."""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, Iterable, TypeVar

import structlog

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class BatchFailure(Generic[T]):
    """An item whose work raised, with the error that stopped it."""

    item: T
    key: str
    error: str


@dataclass
class BatchResult(Generic[T, R]):
    """Aggregated outcome of a run_batches call."""

    succeeded: list[tuple[T, R]] = field(default_factory=list)
    failed: list[BatchFailure[T]] = field(default_factory=list)


async def run_batches(
    items: Iterable[T],
    batch_size: int,
    work: Callable[[T], Awaitable[R]],
    key: Callable[[T], str] = str,
) -> BatchResult[T, R]:
    """Run work for every item, batch_size items at a time.

    Batches run one after another and the items of a batch run concurrently. One item raising never
    cancels its siblings; the exception is recorded against the item's key instead.

    Args:
        items: Items to process
        batch_size: Maximum number of concurrent calls
        work: Coroutine function applied to each item
        key: Function naming an item in logs and failure records

    Returns:
        BatchResult with (item, result) pairs for successes and BatchFailure records for failures.

    Raises:
        ValueError: If batch_size is smaller than one
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be at least 1, got {batch_size}")

    pending = list(items)
    result: BatchResult[T, R] = BatchResult()
    for start in range(0, len(pending), batch_size):
        batch = pending[start : start + batch_size]
        outcomes: list[Any] = await asyncio.gather(*(work(item) for item in batch), return_exceptions=True)
        for item, outcome in zip(batch, outcomes):
            if isinstance(outcome, Exception):
                item_key = key(item)
                logger.error("Sync action failed", key=item_key, error=str(outcome), error_type=type(outcome).__name__)
                result.failed.append(BatchFailure(item=item, key=item_key, error=str(outcome) or type(outcome).__name__))
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                result.succeeded.append((item, outcome))
        logger.debug("Batch finished", batch_start=start, batch_size=len(batch), failed=len(result.failed))
    return result
