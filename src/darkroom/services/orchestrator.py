"""Due-job scanning and job execution.

A tick is a sequential pass over the active jobs in listing order: each due
job is guarded, seeded, dispatched and logged before the next is considered.
Individual job failures are recorded and never abort the tick.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from darkroom.config import Settings, settings as default_settings
from darkroom.db.base import as_utc
from darkroom.db.models.job import ScheduledJobRow
from darkroom.errors.exceptions import JobAlreadyRunningError, NotFoundError
from darkroom.logging_config import bind_job_context, unbind_job_context
from darkroom.models.enums import ExecutionMode
from darkroom.repositories.job_repo import JobRepository
from darkroom.services.dispatcher import CommandDispatcher, DispatchOutcome
from darkroom.services.job_catalog import JobCatalog, JobDescriptor
from darkroom.services.progress import check_not_running, finish_progress, seed_progress
from darkroom.services.run_logger import RunLogger
from darkroom.services.schedule import interval_minutes, is_due
from darkroom.workers.supervisor import BackgroundOutcome, BackgroundTaskSupervisor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JobSnapshot:
    """Plain copy of a job row, safe to use after a session rollback."""

    job_id: int
    name: str
    command: str
    schedule: str | None
    active: bool
    last_run: datetime | None

    @classmethod
    def from_row(cls, row: ScheduledJobRow) -> "JobSnapshot":
        return cls(
            job_id=row.job_id,
            name=row.name,
            command=row.command or "",
            schedule=row.schedule,
            active=row.active,
            last_run=as_utc(row.last_run),
        )


@dataclass
class JobRunReport:
    job_id: int
    name: str
    command: str
    success: bool
    start_time: datetime
    end_time: datetime
    error: str | None = None
    result: Any = None
    background: bool = False
    record_inserted: bool = False
    record_error: str | None = None
    skipped: str | None = None
    progress: int | None = None

    @property
    def duration(self) -> float:
        return (self.end_time - self.start_time).total_seconds()

    def summary(self) -> dict:
        data = {
            "job_id": self.job_id,
            "name": self.name,
            "success": self.success,
            "background": self.background,
            "duration": round(self.duration, 3),
        }
        if self.error:
            data["error"] = self.error
        if self.skipped:
            data["skipped"] = self.skipped
            data["progress"] = self.progress
        return data


@dataclass
class TickReport:
    checked: int = 0
    due: int = 0
    results: list[JobRunReport] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "ok": True,
            "checked": self.checked,
            "due": self.due,
            "ran": sum(1 for r in self.results if not r.skipped),
            "failed": sum(1 for r in self.results if not r.success and not r.skipped),
            "results": [r.summary() for r in self.results],
        }


class Orchestrator:
    """Decides which jobs are due and runs them."""

    def __init__(
        self,
        session: AsyncSession,
        rpc,
        catalog: JobCatalog,
        supervisor: BackgroundTaskSupervisor,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        config: Settings | None = None,
    ):
        self.session = session
        self.catalog = catalog
        self.supervisor = supervisor
        self.session_factory = session_factory
        self.config = config or default_settings
        self.dispatcher = CommandDispatcher(rpc, supervisor)

    def _run_logger(self, session: AsyncSession) -> RunLogger:
        return RunLogger(
            session,
            max_message_length=self.config.return_message_max_length,
            legacy_enabled=self.config.legacy_audit_enabled,
        )

    # ------------------------------------------------------------------
    # Due-job selection
    # ------------------------------------------------------------------

    async def list_active_jobs(self) -> list[JobSnapshot]:
        rows = await JobRepository(self.session).list_active()
        return [JobSnapshot.from_row(row) for row in rows]

    @staticmethod
    def select_due_jobs(jobs: list[JobSnapshot], now: datetime) -> list[JobSnapshot]:
        due = []
        for job in jobs:
            interval = interval_minutes(job.schedule)
            if not interval:
                logger.warning("Job %s has no usable interval, skipping", job.job_id)
                continue
            if is_due(job.last_run, interval, now):
                due.append(job)
        return due

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def tick(self, now: datetime | None = None) -> TickReport:
        """Run every active job whose interval has elapsed."""
        now = now or datetime.now(timezone.utc)
        jobs = await self.list_active_jobs()
        due = self.select_due_jobs(jobs, now)
        report = TickReport(checked=len(jobs), due=len(due))
        logger.info("Tick: %d active jobs, %d due", len(jobs), len(due))

        for job in due:
            bind_job_context(job.job_id)
            try:
                report.results.append(await self._run_guarded(job))
            except JobAlreadyRunningError as exc:
                report.results.append(self._skipped(job, exc, now))
            except Exception as exc:
                await self.session.rollback()
                logger.exception("Job %s could not be dispatched", job.job_id)
                report.results.append(JobRunReport(
                    job_id=job.job_id,
                    name=job.name,
                    command=job.command,
                    success=False,
                    start_time=now,
                    end_time=datetime.now(timezone.utc),
                    error=str(exc),
                ))
            finally:
                unbind_job_context()
        return report

    async def run_job_now(self, job_id: int) -> JobRunReport:
        """Run one job immediately, skipping the due check but not the guard."""
        row = await JobRepository(self.session).get(job_id)
        if row is None:
            raise NotFoundError("Job", job_id)
        job = JobSnapshot.from_row(row)
        bind_job_context(job_id)
        try:
            return await self._run_guarded(job)
        finally:
            unbind_job_context()

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def _run_guarded(self, job: JobSnapshot) -> JobRunReport:
        descriptor = self.catalog.get(job.job_id)
        decision = await check_not_running(
            self.session,
            descriptor,
            # Heartbeat age is judged at guard time, not tick start
            now=datetime.now(timezone.utc),
            stale_minutes=self.config.heartbeat_stale_minutes,
        )
        if not decision.allowed:
            raise JobAlreadyRunningError(job.job_id, decision.progress or 0, decision.message)

        if descriptor.progress_tracked:
            await seed_progress(self.session, descriptor, self.catalog)
            await self.session.commit()

        return await self._execute(job, descriptor)

    async def _execute(self, job: JobSnapshot, descriptor: JobDescriptor) -> JobRunReport:
        start_time = datetime.now(timezone.utc)
        try:
            outcome = await self.dispatcher.dispatch(
                job.command,
                descriptor,
                on_background_complete=self._background_callback(job, descriptor),
            )
        except Exception as exc:
            logger.exception("Job %s dispatch failed", job.job_id)
            outcome = DispatchOutcome(success=False, error=str(exc) or exc.__class__.__name__)
        end_time = datetime.now(timezone.utc)

        if descriptor.progress_tracked and descriptor.mode != ExecutionMode.BACKGROUND:
            try:
                await finish_progress(self.session, job.job_id, outcome.success, outcome.error)
                await self.session.commit()
            except Exception:
                await self.session.rollback()
                logger.exception("Could not close heartbeat for job %s", job.job_id)

        logged = await self._run_logger(self.session).record(
            job.job_id,
            job.command,
            descriptor,
            outcome,
            start_time,
            end_time,
        )
        level = logging.INFO if outcome.success else logging.WARNING
        logger.log(
            level,
            "Job %s %s in %.2fs%s",
            job.job_id,
            logged.status.value,
            (end_time - start_time).total_seconds(),
            " (background)" if outcome.background else "",
        )
        return JobRunReport(
            job_id=job.job_id,
            name=job.name,
            command=logged.command,
            success=outcome.success,
            start_time=start_time,
            end_time=end_time,
            error=outcome.error,
            result=outcome.result,
            background=outcome.background,
            record_inserted=logged.record_inserted,
            record_error=logged.record_error,
        )

    def _background_callback(self, job: JobSnapshot, descriptor: JobDescriptor):
        if descriptor.mode != ExecutionMode.BACKGROUND or self.session_factory is None:
            return None
        session_factory = self.session_factory
        run_logger_for = self._run_logger

        async def record_outcome(outcome: BackgroundOutcome) -> None:
            async with session_factory() as session:
                await finish_progress(session, job.job_id, outcome.succeeded, outcome.error)
                await session.commit()
                if outcome.succeeded:
                    return
                await run_logger_for(session).record(
                    job.job_id,
                    job.command,
                    descriptor,
                    DispatchOutcome(success=False, error=outcome.error, background=True),
                    outcome.started_at,
                    outcome.finished_at,
                    update_last_run=False,
                    command_suffix=" (background)",
                )

        return record_outcome

    @staticmethod
    def _skipped(job: JobSnapshot, exc: JobAlreadyRunningError, now: datetime) -> JobRunReport:
        logger.info("Job %s skipped: already running at %s%%", job.job_id, exc.progress)
        return JobRunReport(
            job_id=job.job_id,
            name=job.name,
            command=job.command,
            success=False,
            start_time=now,
            end_time=now,
            skipped="already_running",
            progress=exc.progress,
        )
