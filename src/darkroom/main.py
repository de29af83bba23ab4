"""FastAPI application factory and lifespan management."""

import asyncio
import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from darkroom import __version__
from darkroom.config import settings
from darkroom.db.engine import create_db_engine, create_session_factory
from darkroom.logging_config import configure_logging
from darkroom.rpc.client import RpcClient
from darkroom.services.job_catalog import JobCatalog
from darkroom.workers.supervisor import BackgroundTaskSupervisor

# Configure logging at import time
_json_logs = os.environ.get("DARKROOM_LOCAL", "0") != "1"
configure_logging(log_level=settings.log_level, json_output=_json_logs)

logger = logging.getLogger(__name__)

# Seconds to wait for detached jobs before cancelling them at shutdown
_DRAIN_TIMEOUT = 30


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application startup and shutdown resources."""
    db_url = settings.effective_database_url
    engine = create_db_engine(db_url)

    # Auto-create tables for SQLite (local dev; deployed tables are managed externally)
    if "sqlite" in db_url:
        from darkroom.db.base import Base
        import darkroom.db.models  # noqa: F401 - register all ORM models

        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("SQLite tables created (local mode)")

    app.state.db_engine = engine
    app.state.db_session_factory = create_session_factory(engine)
    app.state.rpc = RpcClient(
        settings.rpc_base_url,
        service_key=settings.rpc_service_key,
        timeout=settings.rpc_timeout_seconds,
    )

    scheduler_task = None
    if settings.scheduler_enabled:
        from darkroom.workers.scheduler import run_scheduler
        scheduler_task = asyncio.create_task(
            run_scheduler(app, poll_seconds=settings.scheduler_poll_seconds)
        )

    logger.info("darkroom API started (db=%s)", "sqlite" if "sqlite" in db_url else "postgresql")
    yield

    # Shutdown
    if scheduler_task is not None:
        scheduler_task.cancel()
        try:
            await scheduler_task
        except asyncio.CancelledError:
            pass
    await app.state.supervisor.drain(timeout=_DRAIN_TIMEOUT)
    await app.state.rpc.aclose()
    await engine.dispose()
    logger.info("darkroom API shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="darkroom API",
        version=__version__,
        description="Background job scheduling and execution for the photography content site.",
        lifespan=lifespan,
    )

    # Read once; lifespan and tests share these
    app.state.catalog = JobCatalog()
    app.state.supervisor = BackgroundTaskSupervisor()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    from darkroom.api.middleware.trace_id import TraceIdMiddleware
    app.add_middleware(TraceIdMiddleware)

    from darkroom.errors.handlers import register_exception_handlers
    register_exception_handlers(app)

    from darkroom.api.router import api_router
    app.include_router(api_router)

    return app


app = create_app()
