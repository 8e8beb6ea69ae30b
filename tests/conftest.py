"""Shared fixtures: an in-memory stand-in for the hosted backend."""

from __future__ import annotations

import asyncio
import os
import uuid
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest

# Settings are read at import time; configure before importing application modules.
os.environ.setdefault("SUPABASE_URL", "https://example.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

from snapfeed.backend.base import BackendClient, ChangeCallback, SessionCallback, Subscription  # noqa: E402
from snapfeed.core.errors import AuthError, BackendError, BackendUnavailable, UsernameTaken  # noqa: E402
from snapfeed.modules.auth.schemas import Session  # noqa: E402
from snapfeed.modules.posts.schemas import Post, PostCreate  # noqa: E402
from snapfeed.modules.profiles.schemas import Profile, ProfileCreate  # noqa: E402

MEDIA_URL_PREFIX = "https://example.supabase.co/storage/v1/object/public/post-media/"
_EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)


class BackendStore:
    """Server-side state shared by every client connected to the fake backend."""

    def __init__(self) -> None:
        self.users: Dict[str, dict] = {}  # email -> {"id", "password"}
        self.profiles: Dict[str, dict] = {}
        self.posts: List[dict] = []
        self.media: Dict[str, bytes] = {}
        self.table_listeners: Dict[str, List[ChangeCallback]] = defaultdict(list)
        self.profile_inserts = 0
        self.profile_lookups = 0
        self.fail_profile_lookups = 0
        self.fail_profile_updates = False
        self._post_ids = 0

    def add_user(self, email: str, password: str = "pw123456", user_id: Optional[str] = None) -> str:
        user_id = user_id or str(uuid.uuid4())
        self.users[email] = {"id": user_id, "password": password}
        return user_id

    def add_profile(self, user_id: str, username: str, complete: bool = True, **fields) -> dict:
        row = {
            "id": user_id,
            "username": username,
            "full_name": None,
            "bio": "",
            "avatar_url": f"https://api.dicebear.com/7.x/avataaars/svg?seed={user_id}",
            "is_setup_complete": complete,
            "created_at": _EPOCH.isoformat(),
        }
        row.update(fields)
        self.profiles[user_id] = row
        return row

    def add_post(self, user_id: str, content: str, media_url: Optional[str] = None,
                 media_type: Optional[str] = None) -> dict:
        self._post_ids += 1
        row = {
            "id": self._post_ids,
            "user_id": user_id,
            "content": content,
            "media_url": media_url,
            "media_type": media_type,
            "created_at": (_EPOCH + timedelta(minutes=self._post_ids)).isoformat(),
        }
        self.posts.append(row)
        return row

    def notify(self, table: str) -> None:
        for callback in list(self.table_listeners[table]):
            callback()


class InMemoryBackend(BackendClient):
    """One client's view of the fake backend; fires auth listeners like Supabase does."""

    def __init__(self, store: BackendStore) -> None:
        self.store = store
        self.session: Optional[Session] = None
        self.listeners: List[SessionCallback] = []
        self.profile_gates: Dict[str, asyncio.Event] = {}
        self.session_gate: Optional[asyncio.Event] = None
        self.subscribe_gate: Optional[asyncio.Event] = None
        self.subscribe_calls = 0
        self.closed = False

    def emit(self, session: Optional[Session]) -> None:
        self.session = session
        for callback in list(self.listeners):
            callback(session)

    def _new_session(self, email: str) -> Session:
        return Session(user_id=self.store.users[email]["id"], email=email, access_token=uuid.uuid4().hex)

    # Auth

    async def get_current_session(self) -> Optional[Session]:
        session = self.session
        if self.session_gate is not None:
            await self.session_gate.wait()
        return session

    def on_session_change(self, callback: SessionCallback) -> Subscription:
        self.listeners.append(callback)
        return Subscription(lambda: self.listeners.remove(callback))

    async def sign_in_with_password(self, email: str, password: str) -> Session:
        user = self.store.users.get(email)
        if user is None or user["password"] != password:
            raise AuthError("Invalid email or password")
        session = self._new_session(email)
        self.emit(session)
        return session

    async def sign_up(self, email: str, password: str) -> Optional[Session]:
        if email in self.store.users:
            raise AuthError("User already exists", status_code=400)
        self.store.add_user(email, password)
        session = self._new_session(email)
        self.emit(session)
        return session

    async def sign_out(self) -> None:
        self.emit(None)

    # Profiles

    async def get_profile(self, user_id: str) -> Optional[Profile]:
        self.store.profile_lookups += 1
        gate = self.profile_gates.get(user_id)
        if gate is not None:
            await gate.wait()
        if self.store.fail_profile_lookups > 0:
            self.store.fail_profile_lookups -= 1
            raise BackendUnavailable("Profile lookup failed: backend unavailable")
        row = self.store.profiles.get(user_id)
        return Profile(**row) if row else None

    async def get_profiles(self, user_ids: List[str]) -> List[Profile]:
        return [Profile(**self.store.profiles[i]) for i in user_ids if i in self.store.profiles]

    async def create_profile(self, defaults: ProfileCreate) -> Profile:
        if defaults.id not in self.store.profiles:
            self.store.profile_inserts += 1
            self.store.add_profile(
                defaults.id,
                defaults.username,
                complete=defaults.is_setup_complete,
                avatar_url=defaults.avatar_url,
            )
        return Profile(**self.store.profiles[defaults.id])

    async def update_profile(self, user_id: str, fields: dict) -> Profile:
        if self.store.fail_profile_updates:
            raise BackendError("Profile update failed: write rejected")
        row = self.store.profiles.get(user_id)
        if row is None:
            raise BackendError("Profile not found")
        username = fields.get("username")
        if username is not None and any(
            other["username"] == username and other["id"] != user_id for other in self.store.profiles.values()
        ):
            # profiles.username is unique in the real schema
            raise UsernameTaken()
        row.update(fields)
        return Profile(**row)

    async def is_username_taken(self, username: str, excluding_user_id: str) -> bool:
        return any(
            row["username"] == username and row["id"] != excluding_user_id
            for row in self.store.profiles.values()
        )

    # Posts

    async def list_posts(self, user_id: Optional[str] = None) -> List[Post]:
        rows = [row for row in self.store.posts if user_id is None or row["user_id"] == user_id]
        rows.sort(key=lambda row: row["created_at"], reverse=True)
        return [Post(**row) for row in rows]

    async def get_post(self, post_id: str) -> Optional[Post]:
        for row in self.store.posts:
            if str(row["id"]) == str(post_id):
                return Post(**row)
        return None

    async def create_post(self, post: PostCreate) -> Post:
        row = self.store.add_post(post.user_id, post.content, post.media_url, post.media_type)
        self.store.notify("posts")
        return Post(**row)

    async def delete_post(self, post_id: str) -> None:
        self.store.posts = [row for row in self.store.posts if str(row["id"]) != str(post_id)]
        self.store.notify("posts")

    # Storage

    async def upload_media(self, path: str, content: bytes, content_type: str) -> str:
        self.store.media[path] = content
        return MEDIA_URL_PREFIX + path

    async def remove_media(self, paths: List[str]) -> None:
        for path in paths:
            self.store.media.pop(path, None)

    def media_path_from_url(self, url: Optional[str]) -> Optional[str]:
        if not url or not url.startswith(MEDIA_URL_PREFIX):
            return None
        return url[len(MEDIA_URL_PREFIX):]

    # Realtime

    async def subscribe_to_table_changes(self, table: str, callback: ChangeCallback) -> Subscription:
        self.subscribe_calls += 1
        if self.subscribe_gate is not None:
            await self.subscribe_gate.wait()
        listeners = self.store.table_listeners[table]
        listeners.append(callback)
        return Subscription(lambda: listeners.remove(callback))

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def store() -> BackendStore:
    return BackendStore()


@pytest.fixture
def backend(store: BackendStore) -> InMemoryBackend:
    return InMemoryBackend(store)


@pytest.fixture
def make_backend(store: BackendStore):
    """Factory for additional clients connected to the same backend."""
    return lambda: InMemoryBackend(store)
