from fastapi import APIRouter, Depends, Request
from snapfeed.config import settings
from snapfeed.core.dependencies import get_orchestrator
from snapfeed.core.rate_limit import limiter
from snapfeed.modules.auth.schemas import LoginRequest, RegisterRequest, AuthResponse
from snapfeed.modules.auth.service import AuthService
from snapfeed.modules.session.orchestrator import SessionOrchestrator

router = APIRouter(prefix="/auth", tags=["auth"])


def get_auth_service(orchestrator: SessionOrchestrator = Depends(get_orchestrator)) -> AuthService:
    return AuthService(orchestrator.backend, orchestrator)


@router.post("/register", response_model=AuthResponse, status_code=201)
@limiter.limit(settings.auth_rate_limit)
async def register(
    request: Request,
    register_data: RegisterRequest,
    service: AuthService = Depends(get_auth_service),
    orchestrator: SessionOrchestrator = Depends(get_orchestrator)
):
    """Register a new user"""
    response = await service.register(register_data)
    await orchestrator.settle()
    response.state = orchestrator.snapshot()
    return response


@router.post("/login", response_model=AuthResponse)
@limiter.limit(settings.auth_rate_limit)
async def login(
    request: Request,
    login_data: LoginRequest,
    service: AuthService = Depends(get_auth_service),
    orchestrator: SessionOrchestrator = Depends(get_orchestrator)
):
    """Sign in; the response carries the view the client should render next"""
    response = await service.login(login_data)
    await orchestrator.settle()
    response.state = orchestrator.snapshot()
    return response


@router.post("/logout", response_model=AuthResponse)
async def logout(
    service: AuthService = Depends(get_auth_service),
    orchestrator: SessionOrchestrator = Depends(get_orchestrator)
):
    """Sign out and go back to the login view"""
    response = await service.logout()
    await orchestrator.settle()
    response.state = orchestrator.snapshot()
    return response
