"""Run statistics and merged audit history for reporting."""

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from darkroom.db.base import as_utc
from darkroom.models.job import JobRunModel
from darkroom.repositories.job_run_repo import JobRunRepository, LegacyJobRunRepository
from darkroom.services.maintenance_summary import parse_stored_summary

SUCCESS_LABELS = frozenset({"succeeded", "success", "ok", "completed"})
FAILURE_LABELS = frozenset({"failed", "failure", "error"})


@dataclass
class JobRunStats:
    success_count: int = 0
    failed_count: int = 0
    total_runs: int = 0
    last_run: datetime | None = None
    last_summary: dict | None = None


def fold_status_counts(rows: list[tuple[int, str, int]]) -> dict[int, JobRunStats]:
    """Fold (job_id, status, count) rows into success/failure buckets."""
    stats: dict[int, JobRunStats] = {}
    for job_id, status, count in rows:
        current = stats.setdefault(job_id, JobRunStats())
        label = (status or "").strip().lower()
        if label in SUCCESS_LABELS:
            current.success_count += count
        elif label in FAILURE_LABELS:
            current.failed_count += count
        current.total_runs += count
    return stats


def _newest_first(rows: list) -> list:
    return sorted(rows, key=lambda r: as_utc(r.start_time), reverse=True)


async def aggregate_runs(
    session: AsyncSession,
    job_ids: list[int],
    maintenance_job_ids: set[int] | frozenset[int] = frozenset(),
) -> dict[int, JobRunStats]:
    """Success/failure counts plus last-run metadata per job."""
    stats = {job_id: JobRunStats() for job_id in job_ids}
    if not job_ids:
        return stats

    counts = await JobRunRepository(session).status_counts(job_ids)
    stats.update(fold_status_counts(counts))

    latest = await JobRunRepository(session).latest_for_jobs(job_ids)
    latest += await LegacyJobRunRepository(session).latest_for_jobs(job_ids)

    seen: set[int] = set()
    for row in _newest_first(latest):
        if row.job_id in seen:
            continue
        seen.add(row.job_id)
        current = stats.setdefault(row.job_id, JobRunStats())
        current.last_run = as_utc(row.start_time)
        if row.job_id in maintenance_job_ids:
            current.last_summary = parse_stored_summary(row.return_message)
    return stats


async def merged_run_log(session: AsyncSession, job_id: int, limit: int = 50) -> list[JobRunModel]:
    """Recent audit rows for one job across both stores, newest first.

    Rows mirrored into the legacy store are dropped in favour of the primary copy.
    """
    primary = await JobRunRepository(session).list_for_job(job_id, limit=limit)
    legacy = await LegacyJobRunRepository(session).list_for_job(job_id, limit=limit)

    merged: list[JobRunModel] = []
    seen: set[tuple] = set()
    tagged = [(row, "primary") for row in primary] + [(row, "legacy") for row in legacy]
    tagged.sort(key=lambda pair: as_utc(pair[0].start_time), reverse=True)
    for row, source in tagged:
        key = (row.job_id, as_utc(row.start_time), row.status)
        if key in seen:
            continue
        seen.add(key)
        model = JobRunModel.model_validate(row)
        model.source = source
        model.start_time = as_utc(model.start_time)
        model.end_time = as_utc(model.end_time)
        merged.append(model)
        if len(merged) >= limit:
            break
    return merged
