"""Rate-limited batch execution across tickers."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, TypeVar

from stock_advisor.config import MIN_BATCH_DELAY

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

PRIORITY_ORDER = {"high": 0, "normal": 1, "low": 2}


@dataclass
class BatchRun:
    """Timing record of the most recent run()."""

    total_items: int = 0
    batch_sizes: list[int] = field(default_factory=list)
    batch_starts: list[float] = field(default_factory=list)
    failures: int = 0

    def to_dict(self) -> dict[str, Any]:
        origin = self.batch_starts[0] if self.batch_starts else 0.0
        return {
            "total_items": self.total_items,
            "batch_sizes": list(self.batch_sizes),
            "batch_offsets_seconds": [round(s - origin, 3) for s in self.batch_starts],
            "failures": self.failures,
        }


class RequestBatcher:
    """
    Process items in fixed-size concurrent batches with a pause between them.

    Within a batch all items run concurrently; the next batch starts only
    after the current one finishes and batch_delay seconds have passed.
    """

    def __init__(
        self,
        batch_size: int = 3,
        batch_delay: float = 1.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self.batch_size = batch_size
        self.batch_delay = max(MIN_BATCH_DELAY, batch_delay)
        self._sleep = sleep
        self._clock = clock
        self.last_run = BatchRun()

    @staticmethod
    def order_by_priority(
        items: Sequence[T], priorities: dict[T, str] | None = None
    ) -> list[T]:
        """Stable sort: high before normal before low. Unknown labels count as normal."""
        if not priorities:
            return list(items)
        return sorted(
            items,
            key=lambda item: PRIORITY_ORDER.get(priorities.get(item, "normal"), 1),
        )

    async def run(
        self,
        items: Sequence[T],
        worker: Callable[[T], Awaitable[R]],
        priorities: dict[T, str] | None = None,
    ) -> list[tuple[T, R | BaseException]]:
        """
        Run worker over items batch by batch.

        Returns:
            (item, result) pairs in processing order; a failed item carries
            its exception instead of a result
        """
        ordered = self.order_by_priority(items, priorities)
        run = BatchRun(total_items=len(ordered))
        self.last_run = run
        results: list[tuple[T, R | BaseException]] = []

        for start in range(0, len(ordered), self.batch_size):
            if start:
                await self._sleep(self.batch_delay)
            batch = ordered[start : start + self.batch_size]
            run.batch_starts.append(self._clock())
            run.batch_sizes.append(len(batch))
            logger.debug(
                f"Batch {len(run.batch_sizes)}: {len(batch)} items "
                f"({start + len(batch)}/{len(ordered)})"
            )
            outcomes = await asyncio.gather(
                *(worker(item) for item in batch), return_exceptions=True
            )
            for item, outcome in zip(batch, outcomes):
                if isinstance(outcome, BaseException):
                    run.failures += 1
                    logger.warning(f"Batch item {item!r} failed: {outcome}")
                results.append((item, outcome))

        return results

    def status(self) -> dict[str, Any]:
        return {
            "batch_size": self.batch_size,
            "batch_delay": self.batch_delay,
            "last_run": self.last_run.to_dict(),
        }
