from supabase import acreate_client, AsyncClient
from snapfeed.config import settings
from snapfeed.backend.base import BackendClient
from snapfeed.backend.supabase_backend import SupabaseBackend


class SupabaseClient:
    """Factory for async Supabase clients.

    Unlike a server-side service client, each client session needs its own
    instance: auth state (and the realtime socket) live on the client object.
    """

    @classmethod
    async def create_client(cls) -> AsyncClient:
        if not settings.supabase_url or not settings.supabase_key:
            raise RuntimeError("SUPABASE_URL and SUPABASE_KEY must be configured")
        return await acreate_client(settings.supabase_url, settings.supabase_key)


async def create_backend() -> BackendClient:
    client = await SupabaseClient.create_client()
    return SupabaseBackend(client)
