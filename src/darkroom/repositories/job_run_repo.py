"""Job run audit repositories (primary and legacy stores)."""

from datetime import datetime

from sqlalchemy import func, select

from darkroom.db.models.job_run import JobRunRecordRow, LegacyJobRunRow
from darkroom.repositories.base import BaseRepository


class JobRunRepository(BaseRepository):
    """Audit rows for one store. Defaults to the primary store."""

    model_class = JobRunRecordRow

    async def record(
        self,
        job_id: int,
        command: str,
        status: str,
        return_message: str | None,
        start_time: datetime,
        end_time: datetime | None,
        **extra,
    ):
        return await self.create(
            job_id=job_id,
            command=command,
            status=status,
            return_message=return_message,
            start_time=start_time,
            end_time=end_time,
            **extra,
        )

    async def list_for_job(self, job_id: int, limit: int = 50) -> list:
        model = self.model_class
        stmt = (
            select(model)
            .where(model.job_id == job_id)
            .order_by(model.start_time.desc(), model.id.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def status_counts(self, job_ids: list[int]) -> list[tuple[int, str, int]]:
        """(job_id, status, count) grouped by job and status."""
        if not job_ids:
            return []
        model = self.model_class
        stmt = (
            select(model.job_id, model.status, func.count())
            .where(model.job_id.in_(job_ids))
            .group_by(model.job_id, model.status)
        )
        result = await self.session.execute(stmt)
        return [(job_id, status, count) for job_id, status, count in result.all()]

    async def latest_for_jobs(self, job_ids: list[int]) -> list:
        """Most recent row(s) per job, newest first. Ties on start_time all come back."""
        if not job_ids:
            return []
        model = self.model_class
        latest = (
            select(model.job_id, func.max(model.start_time).label("max_start"))
            .where(model.job_id.in_(job_ids))
            .group_by(model.job_id)
            .subquery()
        )
        stmt = (
            select(model)
            .join(
                latest,
                (model.job_id == latest.c.job_id) & (model.start_time == latest.c.max_start),
            )
            .order_by(model.start_time.desc(), model.id.desc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())


class LegacyJobRunRepository(JobRunRepository):
    model_class = LegacyJobRunRow
