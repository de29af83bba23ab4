"""Shared test fixtures."""

import inspect
from datetime import datetime, timezone

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from darkroom.db.base import Base
# Import all models to register with Base.metadata
import darkroom.db.models  # noqa: F401
from darkroom.db.models.job import ScheduledJobRow
from darkroom.rpc.client import RpcError, RpcResult
from darkroom.services.job_catalog import JobCatalog
from darkroom.workers.supervisor import BackgroundTaskSupervisor


class FakeRpc:
    """Scripted stand-in for RpcClient.

    Handlers receive the params dict and return data, an RpcResult, or raise.
    Unscripted procedures succeed with ``None``.
    """

    def __init__(self):
        self.calls: list[tuple[str, dict]] = []
        self.handlers: dict = {}

    def on(self, name: str, handler) -> None:
        self.handlers[name] = handler

    def returns(self, name: str, data) -> None:
        self.handlers[name] = lambda params: data

    def fails(self, name: str, message: str) -> None:
        self.handlers[name] = lambda params: RpcResult(error=RpcError(message=message, status_code=400))

    def called(self, name: str) -> list[dict]:
        return [params for called_name, params in self.calls if called_name == name]

    async def call(self, name: str, params: dict | None = None) -> RpcResult:
        self.calls.append((name, dict(params or {})))
        handler = self.handlers.get(name)
        if handler is None:
            return RpcResult(data=None)
        outcome = handler(dict(params or {}))
        if inspect.isawaitable(outcome):
            outcome = await outcome
        if isinstance(outcome, RpcResult):
            return outcome
        return RpcResult(data=outcome)


@pytest.fixture
async def db_engine(tmp_path):
    """File-backed SQLite engine so background sessions get their own connection."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'darkroom_test.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def fake_rpc():
    return FakeRpc()


@pytest.fixture
def catalog():
    return JobCatalog()


@pytest.fixture
async def supervisor():
    _supervisor = BackgroundTaskSupervisor()
    yield _supervisor
    await _supervisor.drain(timeout=5)


@pytest.fixture
def add_job(session_factory):
    """Insert a scheduled job row and return its id."""

    async def _add(
        job_id: int,
        command: str = "SELECT noop()",
        schedule: str | None = "Every hour",
        active: bool = True,
        last_run: datetime | None = None,
        name: str | None = None,
    ) -> int:
        async with session_factory() as session:
            session.add(ScheduledJobRow(
                job_id=job_id,
                name=name or f"job-{job_id}",
                command=command,
                schedule=schedule,
                active=active,
                last_run=last_run,
            ))
            await session.commit()
        return job_id

    return _add


@pytest.fixture
def now():
    return datetime.now(timezone.utc)


@pytest.fixture
def app(db_engine, session_factory, fake_rpc):
    """Create a test application instance with a test DB and scripted RPC."""
    from darkroom.main import create_app

    _app = create_app()
    _app.state.db_engine = db_engine
    _app.state.db_session_factory = session_factory
    _app.state.rpc = fake_rpc
    return _app


@pytest.fixture
async def client(app):
    """Async HTTP test client."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    await app.state.supervisor.drain(timeout=5)
