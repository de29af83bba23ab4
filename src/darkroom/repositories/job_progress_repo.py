"""Job progress heartbeat repository."""

from datetime import datetime, timezone

from sqlalchemy import select

from darkroom.db.models.job_progress import JobProgressRow
from darkroom.repositories.base import BaseRepository


class JobProgressRepository(BaseRepository):
    model_class = JobProgressRow
    pk_field = "job_id"

    async def upsert_many(self, rows: list[dict]) -> list[JobProgressRow]:
        """Insert-or-update heartbeat rows keyed by job_id, in one flush."""
        if not rows:
            return []
        job_ids = [r["job_id"] for r in rows]
        result = await self.session.execute(
            select(JobProgressRow).where(JobProgressRow.job_id.in_(job_ids))
        )
        existing = {row.job_id: row for row in result.scalars().all()}

        now = datetime.now(timezone.utc)
        persisted: list[JobProgressRow] = []
        for values in rows:
            values = {"updated_at": now, **values}
            row = existing.get(values["job_id"])
            if row is None:
                row = JobProgressRow(**values)
                self.session.add(row)
                existing[row.job_id] = row
            else:
                for key, value in values.items():
                    setattr(row, key, value)
            persisted.append(row)
        await self.session.flush()
        return persisted

    async def upsert(self, job_id: int, **values) -> JobProgressRow:
        rows = await self.upsert_many([{"job_id": job_id, **values}])
        return rows[0]

    async def clear(self, job_id: int) -> bool:
        return await self.delete(job_id)
