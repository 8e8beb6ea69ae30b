from fastapi import APIRouter, Depends, File, Form, UploadFile
from snapfeed.core.dependencies import require_setup_complete
from snapfeed.modules.posts.schemas import FeedResponse, Post
from snapfeed.modules.posts.service import PostService
from snapfeed.modules.session.orchestrator import SessionOrchestrator
from typing import Optional

router = APIRouter(tags=["posts"])


def get_post_service(orchestrator: SessionOrchestrator = Depends(require_setup_complete)) -> PostService:
    return PostService(orchestrator.backend)


@router.get("/feed", response_model=FeedResponse)
async def get_feed(orchestrator: SessionOrchestrator = Depends(require_setup_complete)):
    """Cached feed; refetched when realtime marked it stale"""
    await orchestrator.settle()
    if orchestrator.feed_stale:
        await orchestrator.refresh_feed()
    return FeedResponse(posts=orchestrator.posts, stale=orchestrator.feed_stale)


@router.post("/posts", response_model=Post, status_code=201)
async def create_post(
    content: str = Form(...),
    media: Optional[UploadFile] = File(None),
    orchestrator: SessionOrchestrator = Depends(require_setup_complete),
    service: PostService = Depends(get_post_service)
):
    media_bytes = await media.read() if media is not None else None
    return await service.create_post(
        orchestrator,
        content=content,
        media=media_bytes,
        filename=media.filename if media is not None else None,
        content_type=media.content_type if media is not None else None,
    )


@router.delete("/posts/{post_id}", status_code=204)
async def delete_post(
    post_id: str,
    orchestrator: SessionOrchestrator = Depends(require_setup_complete),
    service: PostService = Depends(get_post_service)
):
    await service.delete_post(orchestrator, post_id)
    return None
