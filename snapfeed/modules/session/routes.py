from fastapi import APIRouter, Depends, Header
from snapfeed.core.dependencies import get_orchestrator, get_registry
from snapfeed.modules.session.orchestrator import SessionOrchestrator
from snapfeed.modules.session.registry import SessionRegistry
from snapfeed.modules.session.schemas import ClientSessionResponse, NavigateRequest, ViewSnapshot

router = APIRouter(tags=["session"])


@router.post("/sessions", response_model=ClientSessionResponse, status_code=201)
async def open_client_session(registry: SessionRegistry = Depends(get_registry)):
    """Open a client session. Send the returned client_id as X-Client-Id afterwards."""
    client_id, orchestrator = await registry.open()
    await orchestrator.settle()
    return ClientSessionResponse(client_id=client_id, state=orchestrator.snapshot())


@router.get("/session", response_model=ViewSnapshot)
async def get_view(orchestrator: SessionOrchestrator = Depends(get_orchestrator)):
    """Which view to render right now"""
    await orchestrator.settle()
    return orchestrator.snapshot()


@router.delete("/session", status_code=204)
async def close_client_session(
    x_client_id: str = Header(...),
    registry: SessionRegistry = Depends(get_registry),
    orchestrator: SessionOrchestrator = Depends(get_orchestrator)
):
    await registry.close(x_client_id)
    return None


@router.post("/session/retry", response_model=ViewSnapshot)
async def retry_bootstrap(orchestrator: SessionOrchestrator = Depends(get_orchestrator)):
    """Retry loading the profile after the backend was unreachable"""
    await orchestrator.retry_bootstrap()
    await orchestrator.settle()
    return orchestrator.snapshot()


@router.post("/session/navigate", response_model=ViewSnapshot)
async def navigate(
    body: NavigateRequest,
    orchestrator: SessionOrchestrator = Depends(get_orchestrator)
):
    orchestrator.navigate(body.view)
    return orchestrator.snapshot()
