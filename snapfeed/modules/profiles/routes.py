from fastapi import APIRouter, Depends, File, UploadFile
from snapfeed.core.dependencies import get_orchestrator, require_setup_complete
from snapfeed.modules.posts.schemas import Post
from snapfeed.modules.profiles.schemas import Profile, ProfileSetupRequest, ProfileResponse
from snapfeed.modules.profiles.service import ProfileService
from snapfeed.modules.session.orchestrator import SessionOrchestrator
from snapfeed.modules.session.schemas import ViewSnapshot
from typing import List

router = APIRouter(prefix="/profile", tags=["profile"])


def get_profile_service(orchestrator: SessionOrchestrator = Depends(get_orchestrator)) -> ProfileService:
    return ProfileService(orchestrator.backend)


@router.post("/setup", response_model=ViewSnapshot)
async def complete_setup(
    setup_data: ProfileSetupRequest,
    orchestrator: SessionOrchestrator = Depends(get_orchestrator)
):
    """Finish profile setup (username must be free) and move on to the feed"""
    await orchestrator.complete_setup(setup_data)
    await orchestrator.settle()
    return orchestrator.snapshot()


@router.get("/me", response_model=ProfileResponse)
async def get_my_profile(
    orchestrator: SessionOrchestrator = Depends(require_setup_complete),
    service: ProfileService = Depends(get_profile_service)
):
    return await service.get_own_profile(orchestrator)


@router.get("/me/posts", response_model=List[Post])
async def get_my_posts(
    orchestrator: SessionOrchestrator = Depends(require_setup_complete),
    service: ProfileService = Depends(get_profile_service)
):
    return await service.list_own_posts(orchestrator)


@router.post("/me/avatar", response_model=Profile)
async def upload_avatar(
    file: UploadFile = File(...),
    orchestrator: SessionOrchestrator = Depends(require_setup_complete),
    service: ProfileService = Depends(get_profile_service)
):
    """Upload a new profile picture"""
    content = await file.read()
    return await service.upload_avatar(
        orchestrator,
        content=content,
        filename=file.filename or "",
        content_type=file.content_type or "",
    )
