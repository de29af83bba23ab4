"""Supervised background execution for fire-and-forget job dispatch.

Detached work outlives the request that started it. Each piece runs inside a
tracked ``asyncio.Task``; when it finishes, its outcome is handed to a
completion callback (which writes the heartbeat and audit stores) and kept in
a short in-memory history so failures are never silently lost.
"""

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger(__name__)

_HISTORY_SIZE = 100


@dataclass
class BackgroundOutcome:
    job_id: int
    name: str
    started_at: datetime
    finished_at: datetime
    succeeded: bool
    result: Any = None
    error: str | None = None


CompletionCallback = Callable[[BackgroundOutcome], Awaitable[None]]


@dataclass
class _Entry:
    job_id: int
    name: str
    task: asyncio.Task
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class BackgroundTaskSupervisor:
    """Owns detached tasks until they finish and records how they ended."""

    def __init__(self):
        self._entries: dict[asyncio.Task, _Entry] = {}
        self.history: deque[BackgroundOutcome] = deque(maxlen=_HISTORY_SIZE)

    @property
    def pending(self) -> int:
        return len(self._entries)

    def running_jobs(self) -> list[int]:
        return sorted({e.job_id for e in self._entries.values()})

    def spawn(
        self,
        job_id: int,
        name: str,
        work: Callable[[], Awaitable[Any]],
        on_complete: CompletionCallback | None = None,
    ) -> asyncio.Task:
        """Start ``work`` detached. Returns immediately."""
        started_at = datetime.now(timezone.utc)
        task = asyncio.create_task(
            self._run(job_id, name, started_at, work, on_complete),
            name=f"job-{job_id}-{name}",
        )
        self._entries[task] = _Entry(job_id=job_id, name=name, task=task, started_at=started_at)
        task.add_done_callback(self._forget)
        logger.info("Background task started for job %s (%s)", job_id, name)
        return task

    async def _run(
        self,
        job_id: int,
        name: str,
        started_at: datetime,
        work: Callable[[], Awaitable[Any]],
        on_complete: CompletionCallback | None,
    ) -> BackgroundOutcome:
        try:
            result = await work()
            outcome = BackgroundOutcome(
                job_id=job_id,
                name=name,
                started_at=started_at,
                finished_at=datetime.now(timezone.utc),
                succeeded=True,
                result=result,
            )
            logger.info("Background task for job %s finished", job_id)
        except asyncio.CancelledError:
            logger.warning("Background task for job %s cancelled", job_id)
            raise
        except Exception as exc:
            outcome = BackgroundOutcome(
                job_id=job_id,
                name=name,
                started_at=started_at,
                finished_at=datetime.now(timezone.utc),
                succeeded=False,
                error=str(exc) or exc.__class__.__name__,
            )
            logger.exception("Background task for job %s failed", job_id)

        self.history.append(outcome)
        if on_complete is not None:
            try:
                await on_complete(outcome)
            except Exception:
                logger.exception("Recording background outcome for job %s failed", job_id)
        return outcome

    def _forget(self, task: asyncio.Task) -> None:
        self._entries.pop(task, None)

    async def drain(self, timeout: float | None = None) -> list[BackgroundOutcome]:
        """Wait for every in-flight task; cancel stragglers after ``timeout``."""
        tasks = list(self._entries)
        if not tasks:
            return []
        done, still_running = await asyncio.wait(tasks, timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            await asyncio.gather(*still_running, return_exceptions=True)
        return [t.result() for t in done if not t.cancelled() and t.exception() is None]
