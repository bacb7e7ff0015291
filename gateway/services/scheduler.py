"""Periodic background jobs owned by the application lifespan."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

logger = logging.getLogger(__name__)


class PeriodicTask:
    """Run a synchronous job every ``interval_seconds`` on the event loop.

    The first run happens one interval after ``start()``. A failing run is
    logged and the schedule continues.
    """

    def __init__(self, name: str, job: Callable[[], object], *, interval_seconds: float) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self.name = name
        self.job = job
        self.interval_seconds = interval_seconds
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name=f"periodic:{self.name}")
        logger.info(
            "scheduler.task_started",
            extra={"task": self.name, "interval_s": self.interval_seconds},
        )

    async def stop(self) -> None:
        if self._task is None:
            return
        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("scheduler.task_stopped", extra={"task": self.name})

    def run_once(self) -> object:
        """Run the job now, outside the schedule. Exceptions propagate."""
        return self.job()

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                result = self.run_once()
            except Exception as exc:
                logger.exception(
                    "scheduler.task_failed",
                    extra={"task": self.name, "error_type": type(exc).__name__},
                )
                continue
            logger.debug("scheduler.task_ran", extra={"task": self.name, "result": result})
