"""
Core dependencies for resolving the caller's client session
"""

from fastapi import Depends, Header, HTTPException, Request, status
from snapfeed.modules.session.orchestrator import SessionOrchestrator
from snapfeed.modules.session.registry import SessionRegistry


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.registry


def get_orchestrator(
    x_client_id: str = Header(..., description="Client session id returned by POST /sessions"),
    registry: SessionRegistry = Depends(get_registry)
) -> SessionOrchestrator:
    """Look up the orchestrator for the calling client session"""
    orchestrator = registry.get(x_client_id)
    if orchestrator is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Client session not found or expired"
        )
    return orchestrator


def require_setup_complete(
    orchestrator: SessionOrchestrator = Depends(get_orchestrator)
) -> SessionOrchestrator:
    """Gate for feed/profile endpoints: signed in and profile setup finished"""
    orchestrator.require_profile()
    return orchestrator
