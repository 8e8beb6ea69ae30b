import logging
import time
from typing import List, TYPE_CHECKING

from fastapi import HTTPException

from snapfeed.backend.base import BackendClient
from snapfeed.config import settings
from snapfeed.modules.posts.schemas import Post
from snapfeed.modules.profiles.schemas import Profile, ProfileCreate, ProfileResponse, ProfileStats

if TYPE_CHECKING:
    from snapfeed.modules.session.orchestrator import SessionOrchestrator

logger = logging.getLogger(__name__)


def default_username(user_id: str) -> str:
    return settings.default_username_prefix + user_id[:8]


def default_avatar_url(user_id: str) -> str:
    return settings.default_avatar_url_template.format(user_id=user_id)


def default_profile(user_id: str) -> ProfileCreate:
    """Row inserted the first time a user signs in."""
    return ProfileCreate(
        id=user_id,
        username=default_username(user_id),
        avatar_url=default_avatar_url(user_id),
        is_setup_complete=False,
    )


def _file_extension(filename: str, content_type: str) -> str:
    if filename and "." in filename:
        return filename.rsplit(".", 1)[1].lower()
    return content_type.split("/", 1)[1] if "/" in content_type else "bin"


class ProfileService:
    def __init__(self, backend: BackendClient):
        self.backend = backend

    async def get_own_profile(self, orchestrator: "SessionOrchestrator") -> ProfileResponse:
        """Current profile plus post count for the profile page"""
        profile = orchestrator.require_profile()
        posts = await self.list_own_posts(orchestrator)
        return ProfileResponse(profile=profile, stats=ProfileStats(posts=len(posts)))

    async def list_own_posts(self, orchestrator: "SessionOrchestrator") -> List[Post]:
        profile = orchestrator.require_profile()
        return await self.backend.list_posts(user_id=profile.id)

    async def upload_avatar(
        self,
        orchestrator: "SessionOrchestrator",
        content: bytes,
        filename: str,
        content_type: str,
    ) -> Profile:
        """Replace the avatar: upload the new image, point the profile at it, drop the old file."""
        profile = orchestrator.require_profile()

        if not content_type or not content_type.startswith("image/"):
            raise HTTPException(status_code=400, detail="Please upload an image file")
        if len(content) > settings.avatar_max_bytes:
            limit_mb = settings.avatar_max_bytes // (1024 * 1024)
            raise HTTPException(status_code=400, detail=f"Image must be less than {limit_mb}MB")

        old_path = self.backend.media_path_from_url(profile.avatar_url)

        path = f"{profile.id}/avatar_{int(time.time() * 1000)}.{_file_extension(filename, content_type)}"
        public_url = await self.backend.upload_media(path, content, content_type)
        updated = await orchestrator.update_profile({"avatar_url": public_url})

        if old_path:
            try:
                await self.backend.remove_media([old_path])
            except Exception as e:
                # Orphaned file only; the profile already points at the new one
                logger.warning(f"Could not remove old avatar {old_path}: {e}")

        logger.info(f"Avatar updated for user {profile.id}")
        return updated
