"""Records dispatch outcomes in both audit stores and advances last_run."""

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from darkroom.models.enums import RunStatus
from darkroom.repositories.job_repo import JobRepository
from darkroom.repositories.job_run_repo import JobRunRepository, LegacyJobRunRepository
from darkroom.services.dispatcher import DispatchOutcome
from darkroom.services.job_catalog import JobDescriptor

logger = logging.getLogger(__name__)

DEFAULT_MAX_MESSAGE_LENGTH = 500
SUCCESS_MESSAGE = "Job completed successfully"
FAILURE_MESSAGE = "Job execution failed"


@dataclass
class LoggedRun:
    command: str
    status: RunStatus
    return_message: str
    start_time: datetime
    end_time: datetime
    record_inserted: bool = False
    record_error: str | None = None
    last_run_updated: bool = False


def display_command(stored_command: str, descriptor: JobDescriptor) -> str:
    """Wrapped and overridden jobs always show their fixed wrapper call."""
    return descriptor.wrapper_command or stored_command


def serialize_result(result: Any) -> str:
    if result is None:
        return SUCCESS_MESSAGE
    if isinstance(result, str):
        return result
    return json.dumps(result, default=str)


def build_return_message(
    outcome: DispatchOutcome,
    descriptor: JobDescriptor,
    max_length: int = DEFAULT_MAX_MESSAGE_LENGTH,
) -> str:
    if outcome.success:
        message = serialize_result(outcome.result)
    else:
        message = outcome.error or FAILURE_MESSAGE
    if descriptor.truncate_message and max_length and len(message) > max_length:
        message = message[:max_length]
    return message


class RunLogger:
    """Writes one audit row per store for each dispatch attempt."""

    def __init__(
        self,
        session: AsyncSession,
        max_message_length: int = DEFAULT_MAX_MESSAGE_LENGTH,
        legacy_enabled: bool = True,
    ):
        self.session = session
        self.max_message_length = max_message_length
        self.legacy_enabled = legacy_enabled

    async def record(
        self,
        job_id: int,
        stored_command: str,
        descriptor: JobDescriptor,
        outcome: DispatchOutcome,
        start_time: datetime,
        end_time: datetime,
        update_last_run: bool = True,
        command_suffix: str = "",
    ) -> LoggedRun:
        logged = LoggedRun(
            command=display_command(stored_command, descriptor) + command_suffix,
            status=RunStatus.SUCCEEDED if outcome.success else RunStatus.FAILED,
            return_message=build_return_message(outcome, descriptor, self.max_message_length),
            start_time=start_time,
            end_time=end_time,
        )

        await self._write_audit(job_id, logged)
        if update_last_run:
            await self._advance_last_run(job_id, end_time, logged)
        return logged

    async def _write_audit(self, job_id: int, logged: LoggedRun) -> None:
        duration_ms = int((logged.end_time - logged.start_time).total_seconds() * 1000)
        row = {
            "job_id": job_id,
            "command": logged.command,
            "status": logged.status.value,
            "return_message": logged.return_message,
            "start_time": logged.start_time,
            "end_time": logged.end_time,
        }
        try:
            await JobRunRepository(self.session).record(**row, duration_ms=duration_ms)
            if self.legacy_enabled:
                await LegacyJobRunRepository(self.session).record(**row)
            await self.session.commit()
            logged.record_inserted = True
        except Exception as exc:
            await self.session.rollback()
            logged.record_error = str(exc)
            logger.exception("Failed to record run for job %s", job_id)

    async def _advance_last_run(self, job_id: int, end_time: datetime, logged: LoggedRun) -> None:
        # Audit history stays authoritative if this denormalised field lags
        try:
            logged.last_run_updated = await JobRepository(self.session).set_last_run(job_id, end_time)
            await self.session.commit()
        except Exception as exc:
            await self.session.rollback()
            logger.warning("Could not update last_run for job %s: %s", job_id, exc)
