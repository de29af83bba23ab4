"""Declarative job descriptors.

Every per-job special case (execution mode, wrapped procedure, display
command, progress defaults, chained children, result summarising) lives in one
table, built once at startup. Jobs without a descriptor run their stored
command in parsed mode with no progress tracking.
"""

from dataclasses import dataclass, field
from typing import Any

from darkroom.models.enums import ExecutionMode

DEFAULT_TOTAL_STEPS = 1
DEFAULT_PROGRESS_MESSAGE = "Queued"

LIGHT_REFRESH_PROCEDURE = "light_refresh_batch_with_regression_test"


@dataclass(frozen=True)
class JobDescriptor:
    job_id: int
    mode: ExecutionMode = ExecutionMode.PARSED
    procedure: str | None = None
    params: dict[str, Any] = field(default_factory=dict)
    command_override: str | None = None
    progress_tracked: bool = False
    total_steps: int = DEFAULT_TOTAL_STEPS
    initial_message: str = DEFAULT_PROGRESS_MESSAGE
    chained: tuple[int, ...] = ()
    summarize: bool = False
    truncate_message: bool = True

    @property
    def wrapper_command(self) -> str | None:
        """Fixed command shown in audit rows regardless of what was stored."""
        if self.command_override:
            return self.command_override
        if self.procedure:
            args = ", ".join(f"{k} => {v!r}" for k, v in self.params.items())
            return f"SELECT {self.procedure}({args})"
        return None


DEFAULT_DESCRIPTORS: tuple[JobDescriptor, ...] = (
    JobDescriptor(
        job_id=21,
        mode=ExecutionMode.WRAPPED,
        procedure="refresh_v_products_unified_with_regression_test",
        progress_tracked=True,
        total_steps=3,
        initial_message="Queued: refreshing unified products view",
    ),
    JobDescriptor(
        job_id=26,
        mode=ExecutionMode.BACKGROUND,
        procedure=LIGHT_REFRESH_PROCEDURE,
        params={"p_batch": 0},
        progress_tracked=True,
        total_steps=4,
        initial_message="Queued: light refresh batch 0 (triggers batches 1 and 2)",
        chained=(27, 28),
    ),
    JobDescriptor(
        job_id=27,
        mode=ExecutionMode.BACKGROUND,
        procedure=LIGHT_REFRESH_PROCEDURE,
        params={"p_batch": 1},
        progress_tracked=True,
        total_steps=4,
        initial_message="Queued: light refresh batch 1",
    ),
    JobDescriptor(
        job_id=28,
        mode=ExecutionMode.BACKGROUND,
        procedure=LIGHT_REFRESH_PROCEDURE,
        params={"p_batch": 2},
        progress_tracked=True,
        total_steps=4,
        initial_message="Queued: light refresh batch 2",
    ),
    JobDescriptor(
        job_id=31,
        command_override="SELECT cleanup_orphaned_records_with_regression_test()",
        progress_tracked=True,
        total_steps=2,
        initial_message="Queued: cleaning up orphaned records",
    ),
    JobDescriptor(
        job_id=32,
        command_override="SELECT run_database_maintenance()",
        progress_tracked=True,
        total_steps=3,
        initial_message="Queued: vacuuming tables",
        summarize=True,
        truncate_message=False,
    ),
)


class JobCatalog:
    """Lookup of job descriptors by id."""

    def __init__(self, descriptors=DEFAULT_DESCRIPTORS):
        self._by_id: dict[int, JobDescriptor] = {}
        for descriptor in descriptors:
            if descriptor.job_id in self._by_id:
                raise ValueError(f"Duplicate job descriptor for job {descriptor.job_id}")
            self._by_id[descriptor.job_id] = descriptor

    def get(self, job_id: int) -> JobDescriptor:
        """Descriptor for ``job_id``; unknown jobs get a plain parsed-mode default."""
        return self._by_id.get(job_id) or JobDescriptor(job_id=job_id)

    @property
    def maintenance_job_ids(self) -> set[int]:
        return {d.job_id for d in self._by_id.values() if d.summarize}
