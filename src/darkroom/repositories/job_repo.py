"""Scheduled job repository."""

from datetime import datetime

from sqlalchemy import select

from darkroom.db.models.job import ScheduledJobRow
from darkroom.repositories.base import BaseRepository


class JobRepository(BaseRepository):
    model_class = ScheduledJobRow
    pk_field = "job_id"

    async def list_all(self) -> list[ScheduledJobRow]:
        stmt = select(ScheduledJobRow).order_by(ScheduledJobRow.job_id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_active(self) -> list[ScheduledJobRow]:
        stmt = (
            select(ScheduledJobRow)
            .where(ScheduledJobRow.active.is_(True))
            .order_by(ScheduledJobRow.job_id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def set_last_run(self, job_id: int, when: datetime) -> bool:
        """Advance last_run. Returns False when the job no longer exists."""
        row = await self.get(job_id)
        if row is None:
            return False
        await self.update(row, last_run=when)
        return True
