"""Optional in-process timer that runs a due-job tick periodically.

Production ticks normally come from an external timer hitting the admin
endpoint; this loop exists for single-process deployments and local runs.
"""

import asyncio
import logging

from darkroom.services.orchestrator import Orchestrator

logger = logging.getLogger(__name__)


async def run_tick(app) -> dict | None:
    """Run one tick against the app's resources. Returns the tick report."""
    session_factory = getattr(app.state, "db_session_factory", None)
    if not session_factory:
        return None

    async with session_factory() as session:
        orchestrator = Orchestrator(
            session,
            rpc=app.state.rpc,
            catalog=app.state.catalog,
            supervisor=app.state.supervisor,
            session_factory=session_factory,
        )
        report = await orchestrator.tick()
    return report.to_dict()


async def run_scheduler(app, poll_seconds: int = 60) -> None:
    """Background task that ticks every ``poll_seconds``."""
    logger.info("Job scheduler started (poll_interval=%ds)", poll_seconds)

    while True:
        try:
            await asyncio.sleep(poll_seconds)

            report = await run_tick(app)
            if report and report["ran"]:
                logger.info("Scheduler ran %d jobs (%d failed)", report["ran"], report["failed"])

        except asyncio.CancelledError:
            logger.info("Job scheduler stopped")
            break
        except Exception as exc:
            logger.exception("Scheduler error: %s", exc)
            # Continue running despite errors
