"""
Bounded-concurrency batch runner.

Work units are processed in consecutive chunks of `concurrency_limit`
units. Units inside a chunk run concurrently with asyncio.gather and the
next chunk starts only after the whole chunk has finished, which caps the
number of units in flight at the limit.

A failing unit never affects its siblings: the error is recorded on the
unit's documents and in the progress counters, and the batch continues.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

from models.batch import WorkUnit
from pipeline.config import DEFAULT_CONCURRENCY, clamp_concurrency
from pipeline.metrics import BatchProgress, UnitOutcome
from pipeline.resilient_caller import CancelToken

logger = logging.getLogger(__name__)

UnitPipeline = Callable[[WorkUnit], Awaitable[Any]]
ProgressCallback = Callable[[BatchProgress], None]


def error_message(exc: BaseException) -> str:
    """Short, displayable message for a unit failure."""
    return str(exc) or type(exc).__name__


class BatchExecutor:
    """
    Run a pipeline over work units with bounded concurrency.

    Attributes:
        concurrency_limit: Maximum units processed at once (1-10).
        on_progress: Called with a copy of the progress after every unit.
        cancel_token: Checked between chunks; when set, the remaining
            units stay pending.
        outcomes: Per-unit results of the last run.

    Example:
        executor = BatchExecutor(concurrency_limit=3, on_progress=print)
        progress = await executor.run(units, pipeline)
        print(f"{progress.success}/{progress.total} units analysed")
    """

    def __init__(
        self,
        concurrency_limit: int = DEFAULT_CONCURRENCY,
        on_progress: ProgressCallback | None = None,
        cancel_token: CancelToken | None = None,
    ) -> None:
        self.concurrency_limit = clamp_concurrency(concurrency_limit)
        self.on_progress = on_progress
        self.cancel_token = cancel_token
        self.outcomes: list[UnitOutcome] = []
        self._progress = BatchProgress()
        self._lock = asyncio.Lock()

    @property
    def progress(self) -> BatchProgress:
        """Read-only snapshot of the current run's progress."""
        return self._progress.copy()

    async def run(self, units: Iterable[WorkUnit], pipeline: UnitPipeline) -> BatchProgress:
        """
        Process every unit through `pipeline`.

        Args:
            units: Work units to process, in scheduling order.
            pipeline: Async callable doing extract, call, parse and persist
                for one unit. Any exception it raises marks that unit failed.

        Returns:
            Final progress. `processed == total` unless the run was cancelled.
        """
        units = list(units)
        self._progress = BatchProgress(total=len(units))
        self.outcomes = []

        logger.info(
            f"Starting batch: {len(units)} units, concurrency {self.concurrency_limit}"
        )

        for start in range(0, len(units), self.concurrency_limit):
            if self._is_cancelled():
                self._progress.cancelled = True
                logger.info(
                    f"Batch cancelled, {len(units) - start} units left pending"
                )
                break

            chunk = units[start : start + self.concurrency_limit]
            await asyncio.gather(*(self._run_unit(unit, pipeline) for unit in chunk))

        self._progress.finished_at = time.time()
        self._publish()

        logger.info(
            f"Batch finished: {self._progress.success}/{self._progress.total} succeeded, "
            f"{self._progress.error} failed in {self._progress.duration_s:.1f}s"
        )
        return self._progress.copy()

    async def _run_unit(self, unit: WorkUnit, pipeline: UnitPipeline) -> None:
        for item in unit.items:
            item.mark_processing()

        start_time = time.time()
        try:
            result = await pipeline(unit)
        except Exception as e:
            message = error_message(e)
            for item in unit.items:
                item.mark_error(message)
            logger.error(f"Unit {unit.key} failed: {message}")
            outcome = UnitOutcome(
                unit_key=unit.key,
                success=False,
                error=message,
                latency_ms=(time.time() - start_time) * 1000,
            )
        else:
            for item in unit.items:
                item.mark_success()
            logger.info(f"Unit {unit.key} analysed")
            outcome = UnitOutcome(
                unit_key=unit.key,
                success=True,
                analysis_id=getattr(result, "analysis_id", None),
                latency_ms=(time.time() - start_time) * 1000,
            )

        async with self._lock:
            self.outcomes.append(outcome)
            if outcome.success:
                self._progress.success += 1
            else:
                self._progress.error += 1
            self._publish()

    def _is_cancelled(self) -> bool:
        return self.cancel_token is not None and self.cancel_token.is_cancelled

    def _publish(self) -> None:
        if self.on_progress is not None:
            self.on_progress(self._progress.copy())
