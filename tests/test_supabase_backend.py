"""SupabaseBackend: query construction and error translation, against a mocked AsyncClient."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from snapfeed.backend.supabase_backend import SupabaseBackend
from snapfeed.core.errors import AuthError, BackendError, BackendUnavailable, UsernameTaken
from snapfeed.modules.profiles.schemas import ProfileCreate

pytestmark = pytest.mark.anyio

BASE_URL = "https://proj.supabase.co"


def _backend(client=None) -> SupabaseBackend:
    return SupabaseBackend(client or MagicMock(), base_url=BASE_URL)


def _gotrue_session(user_id="u-1", email="a@b.com", token="jwt"):
    return SimpleNamespace(user=SimpleNamespace(id=user_id, email=email), access_token=token)


def _profile_row(**fields):
    row = {"id": "u-1", "username": "carol", "is_setup_complete": False}
    row.update(fields)
    return row


async def test_get_profile_returns_none_when_no_row() -> None:
    client = MagicMock()
    query = client.table.return_value.select.return_value.eq.return_value.limit.return_value
    query.execute = AsyncMock(return_value=SimpleNamespace(data=[]))

    assert await _backend(client).get_profile("u-1") is None
    client.table.assert_called_with("profiles")
    client.table.return_value.select.return_value.eq.assert_called_with("id", "u-1")


async def test_get_profile_parses_row() -> None:
    client = MagicMock()
    query = client.table.return_value.select.return_value.eq.return_value.limit.return_value
    query.execute = AsyncMock(return_value=SimpleNamespace(data=[_profile_row(is_setup_complete=True)]))

    profile = await _backend(client).get_profile("u-1")

    assert profile.username == "carol"
    assert profile.is_setup_complete is True


async def test_connection_error_becomes_backend_unavailable() -> None:
    client = MagicMock()
    query = client.table.return_value.select.return_value.eq.return_value.limit.return_value
    query.execute = AsyncMock(side_effect=httpx.ConnectError("refused"))

    with pytest.raises(BackendUnavailable):
        await _backend(client).get_profile("u-1")


async def test_query_error_becomes_backend_error() -> None:
    client = MagicMock()
    query = client.table.return_value.update.return_value.eq.return_value
    query.execute = AsyncMock(side_effect=Exception("permission denied for table profiles"))

    with pytest.raises(BackendError) as exc_info:
        await _backend(client).update_profile("u-1", {"bio": "x"})

    assert not isinstance(exc_info.value, BackendUnavailable)
    assert "permission denied" in exc_info.value.message


async def test_username_unique_violation_becomes_username_taken() -> None:
    client = MagicMock()
    query = client.table.return_value.update.return_value.eq.return_value
    query.execute = AsyncMock(side_effect=Exception(
        'duplicate key value violates unique constraint "profiles_username_key"'
    ))

    with pytest.raises(UsernameTaken):
        await _backend(client).update_profile("u-1", {"username": "alice", "is_setup_complete": True})


async def test_create_profile_upserts_ignoring_duplicates() -> None:
    client = MagicMock()
    upsert = client.table.return_value.upsert
    upsert.return_value.execute = AsyncMock(return_value=SimpleNamespace(data=[_profile_row()]))
    defaults = ProfileCreate(id="u-1", username="user_u-1", avatar_url="https://avatar")

    profile = await _backend(client).create_profile(defaults)

    assert profile.id == "u-1"
    upsert.assert_called_once_with(defaults.model_dump(), on_conflict="id", ignore_duplicates=True)


async def test_create_profile_falls_back_to_existing_row() -> None:
    client = MagicMock()
    client.table.return_value.upsert.return_value.execute = AsyncMock(return_value=SimpleNamespace(data=[]))
    lookup = client.table.return_value.select.return_value.eq.return_value.limit.return_value
    lookup.execute = AsyncMock(return_value=SimpleNamespace(data=[_profile_row(username="kept")]))

    profile = await _backend(client).create_profile(
        ProfileCreate(id="u-1", username="user_u-1", avatar_url="https://avatar")
    )

    assert profile.username == "kept"


async def test_username_check_excludes_own_row() -> None:
    client = MagicMock()
    eq = client.table.return_value.select.return_value.eq
    neq = eq.return_value.neq
    neq.return_value.limit.return_value.execute = AsyncMock(return_value=SimpleNamespace(data=[{"id": "u-2"}]))

    assert await _backend(client).is_username_taken("alice", "u-1") is True
    eq.assert_called_with("username", "alice")
    neq.assert_called_with("id", "u-1")


async def test_sign_in_invalid_credentials() -> None:
    client = MagicMock()
    client.auth.sign_in_with_password = AsyncMock(side_effect=Exception("Invalid login credentials"))

    with pytest.raises(AuthError) as exc_info:
        await _backend(client).sign_in_with_password("a@b.com", "nope")

    assert exc_info.value.message == "Invalid email or password"


async def test_sign_in_returns_session() -> None:
    client = MagicMock()
    client.auth.sign_in_with_password = AsyncMock(
        return_value=SimpleNamespace(user=SimpleNamespace(id="u-1"), session=_gotrue_session())
    )

    session = await _backend(client).sign_in_with_password("a@b.com", "pw")

    assert session.user_id == "u-1"
    assert session.access_token == "jwt"


async def test_sign_up_duplicate_account() -> None:
    client = MagicMock()
    client.auth.sign_up = AsyncMock(side_effect=Exception("User already registered"))

    with pytest.raises(AuthError) as exc_info:
        await _backend(client).sign_up("a@b.com", "pw123456")

    assert exc_info.value.status_code == 400


async def test_sign_up_pending_confirmation_has_no_session() -> None:
    client = MagicMock()
    client.auth.sign_up = AsyncMock(return_value=SimpleNamespace(user=SimpleNamespace(id="u-1"), session=None))

    assert await _backend(client).sign_up("a@b.com", "pw123456") is None


async def test_auth_listener_translates_sessions() -> None:
    client = MagicMock()
    unsubscribe = MagicMock()
    client.auth.on_auth_state_change.return_value = SimpleNamespace(unsubscribe=unsubscribe)
    seen = []

    subscription = _backend(client).on_session_change(seen.append)
    listener = client.auth.on_auth_state_change.call_args.args[0]
    listener("SIGNED_IN", _gotrue_session(user_id="u-9"))
    listener("SIGNED_OUT", None)
    await subscription.close()

    assert seen[0].user_id == "u-9"
    assert seen[1] is None
    unsubscribe.assert_called_once()


async def test_upload_returns_public_url() -> None:
    client = MagicMock()
    bucket = client.storage.from_.return_value
    bucket.upload = AsyncMock()

    url = await _backend(client).upload_media("u-1/1.png", b"img", "image/png")

    assert url == f"{BASE_URL}/storage/v1/object/public/post-media/u-1/1.png"
    client.storage.from_.assert_called_with("post-media")
    bucket.upload.assert_awaited_once_with("u-1/1.png", b"img", {"content-type": "image/png"})


def test_media_path_from_url() -> None:
    backend = _backend()

    assert backend.media_path_from_url(f"{BASE_URL}/storage/v1/object/public/post-media/u-1/a.png") == "u-1/a.png"
    assert backend.media_path_from_url("https://api.dicebear.com/7.x/avataaars/svg?seed=u-1") is None
    assert backend.media_path_from_url(None) is None


async def test_table_subscription_removes_channel_on_close() -> None:
    client = MagicMock()
    channel = client.channel.return_value
    channel.subscribe = AsyncMock()
    client.remove_channel = AsyncMock()
    calls = []

    subscription = await _backend(client).subscribe_to_table_changes("posts", lambda: calls.append(1))
    callback = channel.on_postgres_changes.call_args.kwargs["callback"]
    callback({"eventType": "INSERT"})
    await subscription.close()
    await subscription.close()

    assert calls == [1]
    assert channel.on_postgres_changes.call_args.kwargs["table"] == "posts"
    client.remove_channel.assert_awaited_once_with(channel)
