"""SQLAlchemy ORM models - import all to register with Base.metadata."""

from darkroom.db.models.job import ScheduledJobRow
from darkroom.db.models.job_progress import JobProgressRow
from darkroom.db.models.job_run import JobRunRecordRow, LegacyJobRunRow

__all__ = [
    "ScheduledJobRow",
    "JobProgressRow",
    "JobRunRecordRow",
    "LegacyJobRunRow",
]
