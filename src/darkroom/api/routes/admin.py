"""Admin entry point: job scheduling actions selected by ``?action=``."""

import json
import logging
from collections.abc import Awaitable, Callable

from fastapi import APIRouter, Request

from darkroom.dependencies import DBSession, OrchestratorDep, RequireAdmin
from darkroom.errors.exceptions import ValidationError
from darkroom.models.job import (
    ExecutionModel,
    JobProgressModel,
    JobRefModel,
    JobStatsModel,
    RunJobResponse,
)
from darkroom.repositories.job_progress_repo import JobProgressRepository
from darkroom.repositories.job_repo import JobRepository
from darkroom.services.orchestrator import Orchestrator
from darkroom.services.run_aggregator import aggregate_runs, merged_run_log
from darkroom.services.schedule import describe_schedule, interval_minutes

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Admin"], dependencies=[RequireAdmin])

DEFAULT_LOG_LIMIT = 50
MAX_LOG_LIMIT = 500


async def _read_body(request: Request) -> dict:
    if request.method != "POST":
        return {}
    raw = await request.body()
    if not raw:
        return {}
    try:
        body = json.loads(raw)
    except ValueError as exc:
        raise ValidationError("Request body must be JSON") from exc
    return body if isinstance(body, dict) else {}


def _job_id(request: Request, body: dict) -> int:
    raw = body.get("jobid", request.query_params.get("jobid"))
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValidationError("jobid parameter required") from None


def _limit(request: Request) -> int:
    raw = request.query_params.get("limit")
    if raw is None:
        return DEFAULT_LOG_LIMIT
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError("limit must be an integer") from None
    return max(1, min(value, MAX_LOG_LIMIT))


# ----------------------------------------------------------------------
# Actions
# ----------------------------------------------------------------------


async def _run_due_jobs(request: Request, body: dict, db, orchestrator: Orchestrator) -> dict:
    report = await orchestrator.tick()
    return report.to_dict()


async def _job_progress(request: Request, body: dict, db, orchestrator: Orchestrator) -> dict:
    job_id = _job_id(request, body)
    row = await JobProgressRepository(db).get(job_id)
    if row is None:
        return {"ok": True, "job_id": job_id, "progress": None}
    return {"ok": True, **JobProgressModel.model_validate(row).model_dump(mode="json")}


async def _clear_job_progress(request: Request, body: dict, db, orchestrator: Orchestrator) -> dict:
    job_id = _job_id(request, body)
    cleared = await JobProgressRepository(db).clear(job_id)
    await db.commit()
    logger.info("Cleared progress for job %s (existed=%s)", job_id, cleared)
    return {"ok": True, "job_id": job_id, "cleared": cleared}


async def _run_job(request: Request, body: dict, db, orchestrator: Orchestrator) -> dict:
    job_id = _job_id(request, body)
    report = await orchestrator.run_job_now(job_id)
    response = RunJobResponse(
        job=JobRefModel(id=report.job_id, name=report.name, command=report.command),
        execution=ExecutionModel(
            success=report.success,
            error=report.error,
            duration=report.duration,
            start_time=report.start_time,
            end_time=report.end_time,
            background=report.background,
            result=report.result,
            record_inserted=report.record_inserted,
            record_error=report.record_error,
        ),
    )
    return response.model_dump(mode="json")


async def _list_jobs(request: Request, body: dict, db, orchestrator: Orchestrator) -> dict:
    jobs = await JobRepository(db).list_all()
    stats = await aggregate_runs(
        db,
        [job.job_id for job in jobs],
        maintenance_job_ids=orchestrator.catalog.maintenance_job_ids,
    )
    enriched = []
    for job in jobs:
        job_stats = stats[job.job_id]
        enriched.append(JobStatsModel(
            job_id=job.job_id,
            name=job.name,
            command=job.command,
            schedule=job.schedule,
            schedule_description=describe_schedule(job.schedule),
            interval_minutes=interval_minutes(job.schedule),
            active=job.active,
            success_count=job_stats.success_count,
            failed_count=job_stats.failed_count,
            total_runs=job_stats.total_runs,
            last_run=job_stats.last_run or job.last_run,
            last_summary=job_stats.last_summary,
        ).model_dump(mode="json"))
    return {"ok": True, "jobs": enriched}


async def _job_logs(request: Request, body: dict, db, orchestrator: Orchestrator) -> dict:
    job_id = _job_id(request, body)
    rows = await merged_run_log(db, job_id, limit=_limit(request))
    return {
        "ok": True,
        "job_id": job_id,
        "logs": [row.model_dump(mode="json") for row in rows],
    }


Handler = Callable[[Request, dict, object, Orchestrator], Awaitable[dict]]

_ACTIONS: dict[str, tuple[frozenset[str], Handler]] = {
    "run_due_jobs": (frozenset({"GET", "POST"}), _run_due_jobs),
    "job_progress": (frozenset({"GET"}), _job_progress),
    "clear_job_progress": (frozenset({"POST"}), _clear_job_progress),
    "run_job": (frozenset({"POST"}), _run_job),
    "jobs": (frozenset({"GET"}), _list_jobs),
    "job_logs": (frozenset({"GET"}), _job_logs),
}


@router.api_route("/admin", methods=["GET", "POST"])
async def admin(
    request: Request,
    db: DBSession,
    orchestrator: OrchestratorDep,
    action: str | None = None,
) -> dict:
    entry = _ACTIONS.get(action or "")
    if entry is None:
        raise ValidationError(
            "Unknown or missing action",
            details={"actions": sorted(_ACTIONS)},
        )
    methods, handler = entry
    if request.method not in methods:
        raise ValidationError(
            f"Method {request.method} not allowed for action {action}",
            details={"allowed": sorted(methods)},
        )
    body = await _read_body(request)
    return await handler(request, body, db, orchestrator)
