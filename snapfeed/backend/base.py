"""
External backend capability set.

The orchestrator and services only talk to the hosted backend through this
interface. `SupabaseBackend` is the production implementation; tests use an
in-memory one.
"""

import inspect
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, List, Optional, Union

from snapfeed.modules.auth.schemas import Session
from snapfeed.modules.posts.schemas import Post, PostCreate
from snapfeed.modules.profiles.schemas import Profile, ProfileCreate

SessionCallback = Callable[[Optional[Session]], None]
ChangeCallback = Callable[[], None]


class Subscription:
    """Handle for a registered listener. `close()` is safe to call twice."""

    def __init__(self, release: Callable[[], Union[None, Awaitable[None]]]):
        self._release = release
        self.closed = False

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        result = self._release()
        if inspect.isawaitable(result):
            await result


class BackendClient(ABC):
    # Auth

    @abstractmethod
    async def get_current_session(self) -> Optional[Session]:
        ...

    @abstractmethod
    def on_session_change(self, callback: SessionCallback) -> Subscription:
        """Register a listener called with the new session (or None) on every auth event."""

    @abstractmethod
    async def sign_in_with_password(self, email: str, password: str) -> Session:
        ...

    @abstractmethod
    async def sign_up(self, email: str, password: str) -> Optional[Session]:
        """Returns None when the account still needs email confirmation."""

    @abstractmethod
    async def sign_out(self) -> None:
        ...

    # Profiles

    @abstractmethod
    async def get_profile(self, user_id: str) -> Optional[Profile]:
        ...

    @abstractmethod
    async def get_profiles(self, user_ids: List[str]) -> List[Profile]:
        ...

    @abstractmethod
    async def create_profile(self, defaults: ProfileCreate) -> Profile:
        """Insert unless a row with the same id exists; returns the stored row either way."""

    @abstractmethod
    async def update_profile(self, user_id: str, fields: dict) -> Profile:
        ...

    @abstractmethod
    async def is_username_taken(self, username: str, excluding_user_id: str) -> bool:
        ...

    # Posts

    @abstractmethod
    async def list_posts(self, user_id: Optional[str] = None) -> List[Post]:
        """Posts newest first, optionally only one author's. Author profiles are not attached."""

    @abstractmethod
    async def get_post(self, post_id: str) -> Optional[Post]:
        ...

    @abstractmethod
    async def create_post(self, post: PostCreate) -> Post:
        ...

    @abstractmethod
    async def delete_post(self, post_id: str) -> None:
        ...

    # Storage

    @abstractmethod
    async def upload_media(self, path: str, content: bytes, content_type: str) -> str:
        """Upload to the media bucket and return the public URL."""

    @abstractmethod
    async def remove_media(self, paths: List[str]) -> None:
        ...

    @abstractmethod
    def media_path_from_url(self, url: Optional[str]) -> Optional[str]:
        """Bucket path for a public URL, or None when the URL is not in the media bucket."""

    # Realtime

    @abstractmethod
    async def subscribe_to_table_changes(self, table: str, callback: ChangeCallback) -> Subscription:
        ...

    async def aclose(self) -> None:
        """Release transport resources held by the client."""
