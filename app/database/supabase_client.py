from typing import Optional

from supabase import AsyncClient, acreate_client
from app.config import settings


class SupabaseClient:
    _client: Optional[AsyncClient] = None

    @classmethod
    async def get_client(cls) -> AsyncClient:
        """Client with service_role key; bypasses RLS. Authorization is enforced in the API layer."""
        if cls._client is None:
            cls._client = await acreate_client(
                settings.supabase_url, settings.supabase_service_role_key
            )
        return cls._client

    @classmethod
    def reset_client(cls):
        cls._client = None


async def get_supabase() -> AsyncClient:
    return await SupabaseClient.get_client()
