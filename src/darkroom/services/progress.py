"""Heartbeat-based concurrency guard and progress seeding.

The guard is advisory: two overlapping ticks can both pass the check before
either writes a fresh heartbeat. A run is considered in flight while its
heartbeat is below 100% and was touched within the stale window.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from darkroom.db.base import as_utc
from darkroom.db.models.job_progress import JobProgressRow
from darkroom.repositories.job_progress_repo import JobProgressRepository
from darkroom.services.job_catalog import JobCatalog, JobDescriptor

logger = logging.getLogger(__name__)

DEFAULT_STALE_MINUTES = 5


@dataclass
class GuardDecision:
    allowed: bool
    progress: int | None = None
    message: str | None = None


def heartbeat_is_active(
    row: JobProgressRow | None,
    now: datetime | None = None,
    stale_minutes: int = DEFAULT_STALE_MINUTES,
) -> bool:
    if row is None or row.progress >= 100:
        return False
    now = now or datetime.now(timezone.utc)
    return now - as_utc(row.updated_at) < timedelta(minutes=stale_minutes)


async def check_not_running(
    session: AsyncSession,
    descriptor: JobDescriptor,
    now: datetime | None = None,
    stale_minutes: int = DEFAULT_STALE_MINUTES,
) -> GuardDecision:
    """Refuse dispatch while a progress-tracked job has a fresh, unfinished heartbeat."""
    if not descriptor.progress_tracked:
        return GuardDecision(allowed=True)

    row = await JobProgressRepository(session).get(descriptor.job_id)
    if heartbeat_is_active(row, now=now, stale_minutes=stale_minutes):
        logger.info(
            "Job %s already running (%s%%, updated %s)",
            descriptor.job_id, row.progress, row.updated_at,
        )
        return GuardDecision(allowed=False, progress=row.progress, message=row.message)
    return GuardDecision(allowed=True, progress=row.progress if row else None)


def _seed_values(descriptor: JobDescriptor) -> dict:
    return {
        "job_id": descriptor.job_id,
        "current_step": 0,
        "total_steps": descriptor.total_steps,
        "progress": 0,
        "message": descriptor.initial_message,
    }


async def seed_progress(
    session: AsyncSession,
    descriptor: JobDescriptor,
    catalog: JobCatalog,
) -> list[JobProgressRow]:
    """Reset heartbeats to step 0 for the job and any jobs chained beneath it."""
    rows = [_seed_values(descriptor)]
    for child_id in descriptor.chained:
        rows.append(_seed_values(catalog.get(child_id)))
    seeded = await JobProgressRepository(session).upsert_many(rows)
    logger.debug("Seeded progress for jobs %s", [r["job_id"] for r in rows])
    return seeded


async def finish_progress(
    session: AsyncSession,
    job_id: int,
    succeeded: bool,
    message: str | None = None,
) -> JobProgressRow:
    """Mark a heartbeat complete so the guard releases the job."""
    repo = JobProgressRepository(session)
    row = await repo.get(job_id)
    total = row.total_steps if row else 1
    text = "Completed" if succeeded else f"Failed: {message or 'unknown error'}"
    return await repo.upsert(
        job_id,
        current_step=total,
        total_steps=total,
        progress=100,
        message=text[:500],
    )
