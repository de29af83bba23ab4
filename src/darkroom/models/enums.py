"""String enums shared by the orchestrator and the API."""

from enum import StrEnum


class RunStatus(StrEnum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class ExecutionMode(StrEnum):
    BACKGROUND = "background"
    WRAPPED = "wrapped"
    PARSED = "parsed"
