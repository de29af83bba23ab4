"""Pydantic models for job, heartbeat and run-log payloads."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from darkroom.models.enums import RunStatus


class JobProgressModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    job_id: int
    current_step: int
    total_steps: int
    progress: int = Field(..., ge=0, le=100)
    message: str | None = None
    updated_at: datetime


class JobRunModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    job_id: int
    command: str
    status: RunStatus | str
    return_message: str | None = None
    start_time: datetime
    end_time: datetime | None = None
    source: str = "primary"


class JobStatsModel(BaseModel):
    job_id: int
    name: str
    command: str
    schedule: str | None = None
    schedule_description: str | None = None
    interval_minutes: int
    active: bool
    success_count: int = 0
    failed_count: int = 0
    total_runs: int = 0
    last_run: datetime | None = None
    last_summary: dict[str, Any] | None = None


class ExecutionModel(BaseModel):
    success: bool
    error: str | None = None
    duration: float
    start_time: datetime
    end_time: datetime
    background: bool = False
    result: Any = None
    record_inserted: bool = False
    record_error: str | None = None


class JobRefModel(BaseModel):
    id: int
    name: str
    command: str


class RunJobResponse(BaseModel):
    ok: bool = True
    job: JobRefModel
    execution: ExecutionModel
