"""FastAPI dependency injection providers."""

import hmac
from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Request

from darkroom.config import settings
from darkroom.errors.exceptions import AuthenticationError
from darkroom.services.orchestrator import Orchestrator


async def get_db(request: Request) -> AsyncGenerator:
    """Yield a database session from the app's session factory."""
    session_factory = request.app.state.db_session_factory
    async with session_factory() as session:
        yield session


async def require_admin(request: Request) -> None:
    """Check the admin bearer token. An unset token disables the check."""
    expected = settings.admin_token.strip()
    if not expected:
        return
    header = request.headers.get("authorization", "")
    token = header[7:].strip() if header.startswith("Bearer ") else ""
    if not token or not hmac.compare_digest(token, expected):
        raise AuthenticationError("unauthorized")


async def get_orchestrator(request: Request, db=Depends(get_db)) -> Orchestrator:
    state = request.app.state
    return Orchestrator(
        db,
        rpc=state.rpc,
        catalog=state.catalog,
        supervisor=state.supervisor,
        session_factory=state.db_session_factory,
    )


# Type aliases for dependency injection
DBSession = Annotated[object, Depends(get_db)]
OrchestratorDep = Annotated[Orchestrator, Depends(get_orchestrator)]
RequireAdmin = Depends(require_admin)
