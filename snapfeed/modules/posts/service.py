import logging
import time
from typing import List, Optional, TYPE_CHECKING

from fastapi import HTTPException

from snapfeed.backend.base import BackendClient
from snapfeed.modules.posts.schemas import Post, PostAuthor, PostCreate

if TYPE_CHECKING:
    from snapfeed.modules.session.orchestrator import SessionOrchestrator

logger = logging.getLogger(__name__)


def media_type_for(content_type: str) -> Optional[str]:
    if content_type.startswith("image/"):
        return "image"
    if content_type.startswith("video/"):
        return "video"
    return None


async def fetch_feed(backend: BackendClient) -> List[Post]:
    """All posts, newest first, each with its author's public profile fields."""
    posts = await backend.list_posts()
    if not posts:
        return []

    author_ids = list({post.user_id for post in posts})
    authors = {profile.id: profile for profile in await backend.get_profiles(author_ids)}

    feed = []
    for post in posts:
        author = authors.get(post.user_id)
        summary = None
        if author is not None:
            summary = PostAuthor(
                username=author.username,
                full_name=author.full_name,
                avatar_url=author.avatar_url,
            )
        feed.append(post.model_copy(update={"profile": summary}))
    return feed


class PostService:
    def __init__(self, backend: BackendClient):
        self.backend = backend

    async def create_post(
        self,
        orchestrator: "SessionOrchestrator",
        content: str,
        media: Optional[bytes] = None,
        filename: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> Post:
        """Upload media (if any), insert the post, refresh the feed"""
        profile = orchestrator.require_profile()
        if not content or not content.strip():
            raise HTTPException(status_code=400, detail="Post content is required")

        media_url = None
        media_type = None
        if media:
            media_type = media_type_for(content_type or "")
            if media_type is None:
                raise HTTPException(status_code=400, detail="Media must be an image or a video")
            ext = filename.rsplit(".", 1)[1].lower() if filename and "." in filename else media_type
            path = f"{profile.id}/{int(time.time() * 1000)}.{ext}"
            media_url = await self.backend.upload_media(path, media, content_type)

        post = await self.backend.create_post(PostCreate(
            user_id=profile.id,
            content=content,
            media_url=media_url,
            media_type=media_type,
        ))
        logger.info(f"Post {post.id} created by {profile.id}")

        # Post is already stored; a failed refetch only shows as the inline message
        await orchestrator.refresh_feed_quietly()
        return post

    async def delete_post(self, orchestrator: "SessionOrchestrator", post_id: str) -> None:
        profile = orchestrator.require_profile()
        post = await self.backend.get_post(post_id)
        if post is None:
            raise HTTPException(status_code=404, detail="Post not found")
        if post.user_id != profile.id:
            raise HTTPException(status_code=403, detail="You can only delete your own posts")

        media_path = self.backend.media_path_from_url(post.media_url)
        if media_path:
            await self.backend.remove_media([media_path])
        await self.backend.delete_post(post_id)
        logger.info(f"Post {post_id} deleted by {profile.id}")

        # Post is already stored; a failed refetch only shows as the inline message
        await orchestrator.refresh_feed_quietly()
