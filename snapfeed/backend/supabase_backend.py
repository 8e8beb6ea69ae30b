import logging
from typing import List, Optional

import httpx
from supabase import AsyncClient

from snapfeed.backend.base import BackendClient, ChangeCallback, SessionCallback, Subscription
from snapfeed.config import settings
from snapfeed.core.errors import AuthError, BackendError, BackendUnavailable, SnapfeedError, UsernameTaken
from snapfeed.modules.auth.schemas import Session
from snapfeed.modules.posts.schemas import Post, PostCreate
from snapfeed.modules.profiles.schemas import Profile, ProfileCreate

logger = logging.getLogger(__name__)


def _backend_error(action: str, exc: Exception) -> SnapfeedError:
    """Translate a raw Supabase/transport error into one of our error kinds."""
    if isinstance(exc, SnapfeedError):
        return exc
    error_message = str(exc)
    if isinstance(exc, (httpx.ConnectError, httpx.TimeoutException)) or "connection" in error_message.lower():
        return BackendUnavailable(f"{action} failed: backend unavailable")
    return BackendError(f"{action} failed: {error_message}")


def _to_session(session) -> Optional[Session]:
    if session is None or session.user is None:
        return None
    return Session(
        user_id=session.user.id,
        email=session.user.email,
        access_token=session.access_token or "",
    )


class SupabaseBackend(BackendClient):
    def __init__(
        self,
        client: AsyncClient,
        base_url: Optional[str] = None,
        profiles_table: Optional[str] = None,
        posts_table: Optional[str] = None,
        media_bucket: Optional[str] = None,
    ):
        self.client = client
        self.base_url = (base_url or settings.supabase_url).rstrip("/")
        self.profiles_table = profiles_table or settings.profiles_table
        self.posts_table = posts_table or settings.posts_table
        self.media_bucket = media_bucket or settings.media_bucket

    # Auth

    async def get_current_session(self) -> Optional[Session]:
        try:
            session = await self.client.auth.get_session()
        except Exception as e:
            raise _backend_error("Session fetch", e) from e
        return _to_session(session)

    def on_session_change(self, callback: SessionCallback) -> Subscription:
        def listener(event, session):
            logger.debug(f"Auth event: {event}")
            callback(_to_session(session))

        subscription = self.client.auth.on_auth_state_change(listener)
        return Subscription(subscription.unsubscribe)

    async def sign_in_with_password(self, email: str, password: str) -> Session:
        try:
            auth_response = await self.client.auth.sign_in_with_password({
                "email": email,
                "password": password
            })
        except Exception as e:
            error_message = str(e)
            if "invalid" in error_message.lower() or "credentials" in error_message.lower():
                raise AuthError("Invalid email or password") from e
            if "not confirmed" in error_message.lower():
                raise AuthError("Email not confirmed") from e
            raise _backend_error("Login", e) from e

        session = _to_session(auth_response.session)
        if session is None:
            raise AuthError("Invalid email or password")
        return session

    async def sign_up(self, email: str, password: str) -> Optional[Session]:
        try:
            auth_response = await self.client.auth.sign_up({
                "email": email,
                "password": password
            })
        except Exception as e:
            error_message = str(e)
            if "already registered" in error_message.lower() or "already exists" in error_message.lower():
                raise AuthError("User already exists", status_code=400) from e
            if "password" in error_message.lower():
                raise AuthError(error_message, status_code=400) from e
            raise _backend_error("Registration", e) from e

        if not auth_response.user:
            raise AuthError("Failed to register user", status_code=400)
        return _to_session(auth_response.session)

    async def sign_out(self) -> None:
        try:
            await self.client.auth.sign_out()
        except Exception as e:
            raise _backend_error("Logout", e) from e

    # Profiles

    async def get_profile(self, user_id: str) -> Optional[Profile]:
        try:
            result = await self.client.table(self.profiles_table)\
                .select("*")\
                .eq("id", user_id)\
                .limit(1)\
                .execute()
        except Exception as e:
            raise _backend_error("Profile lookup", e) from e
        if not result.data:
            return None
        return Profile(**result.data[0])

    async def get_profiles(self, user_ids: List[str]) -> List[Profile]:
        if not user_ids:
            return []
        try:
            result = await self.client.table(self.profiles_table)\
                .select("*")\
                .in_("id", list(user_ids))\
                .execute()
        except Exception as e:
            raise _backend_error("Profile lookup", e) from e
        return [Profile(**row) for row in result.data or []]

    async def create_profile(self, defaults: ProfileCreate) -> Profile:
        try:
            result = await self.client.table(self.profiles_table)\
                .upsert(defaults.model_dump(), on_conflict="id", ignore_duplicates=True)\
                .execute()
        except Exception as e:
            raise _backend_error("Profile creation", e) from e
        if result.data:
            return Profile(**result.data[0])

        # Row already existed (another client won the race)
        existing = await self.get_profile(defaults.id)
        if existing is None:
            raise BackendError("Profile creation failed")
        return existing

    async def update_profile(self, user_id: str, fields: dict) -> Profile:
        try:
            result = await self.client.table(self.profiles_table)\
                .update(fields)\
                .eq("id", user_id)\
                .execute()
        except Exception as e:
            error_text = str(e).lower()
            if "username" in fields and ("unique" in error_text or "duplicate" in error_text):
                raise UsernameTaken() from e
            raise _backend_error("Profile update", e) from e
        if not result.data:
            raise BackendError("Profile not found")
        return Profile(**result.data[0])

    async def is_username_taken(self, username: str, excluding_user_id: str) -> bool:
        try:
            result = await self.client.table(self.profiles_table)\
                .select("id")\
                .eq("username", username)\
                .neq("id", excluding_user_id)\
                .limit(1)\
                .execute()
        except Exception as e:
            raise _backend_error("Username check", e) from e
        return bool(result.data)

    # Posts

    async def list_posts(self, user_id: Optional[str] = None) -> List[Post]:
        try:
            query = self.client.table(self.posts_table).select("*")
            if user_id:
                query = query.eq("user_id", user_id)
            result = await query.order("created_at", desc=True).execute()
        except Exception as e:
            raise _backend_error("Fetch posts", e) from e
        return [Post(**row) for row in result.data or []]

    async def get_post(self, post_id: str) -> Optional[Post]:
        try:
            result = await self.client.table(self.posts_table)\
                .select("*")\
                .eq("id", post_id)\
                .limit(1)\
                .execute()
        except Exception as e:
            raise _backend_error("Fetch post", e) from e
        if not result.data:
            return None
        return Post(**result.data[0])

    async def create_post(self, post: PostCreate) -> Post:
        try:
            result = await self.client.table(self.posts_table)\
                .insert(post.model_dump())\
                .execute()
        except Exception as e:
            raise _backend_error("Create post", e) from e
        if not result.data:
            raise BackendError("Failed to create post")
        return Post(**result.data[0])

    async def delete_post(self, post_id: str) -> None:
        try:
            await self.client.table(self.posts_table)\
                .delete()\
                .eq("id", post_id)\
                .execute()
        except Exception as e:
            raise _backend_error("Delete post", e) from e

    # Storage

    async def upload_media(self, path: str, content: bytes, content_type: str) -> str:
        try:
            await self.client.storage.from_(self.media_bucket).upload(
                path, content, {"content-type": content_type}
            )
        except Exception as e:
            raise _backend_error("Upload", e) from e
        return f"{self.base_url}/storage/v1/object/public/{self.media_bucket}/{path}"

    async def remove_media(self, paths: List[str]) -> None:
        if not paths:
            return
        try:
            await self.client.storage.from_(self.media_bucket).remove(paths)
        except Exception as e:
            raise _backend_error("Remove media", e) from e

    def media_path_from_url(self, url: Optional[str]) -> Optional[str]:
        marker = f"/{self.media_bucket}/"
        if not url or marker not in url:
            return None
        return url.split(marker, 1)[1] or None

    # Realtime

    async def subscribe_to_table_changes(self, table: str, callback: ChangeCallback) -> Subscription:
        channel = self.client.channel(f"{table}_channel")
        channel.on_postgres_changes(
            event="*",
            schema="public",
            table=table,
            callback=lambda _payload: callback(),
        )
        try:
            await channel.subscribe()
        except Exception as e:
            raise _backend_error("Realtime subscribe", e) from e
        logger.info(f"Subscribed to changes on {table}")

        async def release():
            await self.client.remove_channel(channel)

        return Subscription(release)

    async def aclose(self) -> None:
        try:
            await self.client.remove_all_channels()
        except Exception as e:
            logger.warning(f"Error closing realtime channels: {e}")
