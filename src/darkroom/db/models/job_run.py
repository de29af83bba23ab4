"""Append-only job run audit tables (primary and legacy)."""

from datetime import datetime, timezone

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from darkroom.db.base import Base


class _JobRunColumns:
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    job_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    command: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    return_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )


class JobRunRecordRow(_JobRunColumns, Base):
    __tablename__ = "job_run_records"

    duration_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)


class LegacyJobRunRow(_JobRunColumns, Base):
    """Older audit table still read by the dashboard."""

    __tablename__ = "job_run_details"
