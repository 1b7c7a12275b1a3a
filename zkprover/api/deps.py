"""FastAPI dependency injection for service components."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from zkprover.core.pipeline import ProofPipeline
from zkprover.core.settings import ProverSettings

_security = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> ProverSettings:
    return request.app.state.settings


def get_pipeline(request: Request) -> ProofPipeline:
    return request.app.state.pipeline


async def require_debug_access(
    settings: Annotated[ProverSettings, Depends(get_settings)],
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(_security)],
) -> None:
    """Hide debug routes unless enabled; require the debug token when set."""
    if not settings.debug_endpoints:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    expected = settings.debug_token
    if not expected:
        return
    if credentials is None or credentials.credentials != expected:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)
