import logging
from typing import Optional
from supabase import create_async_client, AsyncClient
from rentpay.core.config import settings

logger = logging.getLogger(__name__)

class SupabaseManager:
    client: Optional[AsyncClient] = None
    service_client: Optional[AsyncClient] = None

    @classmethod
    async def get_client(cls) -> AsyncClient:
        if cls.client is None:
            if not settings.SUPABASE_URL or not settings.SUPABASE_KEY:
                raise ValueError("Supabase URL and Key must be provided in the environment variables.")
            cls.client = await create_async_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)
        return cls.client

    @classmethod
    async def get_service_client(cls) -> AsyncClient:
        """
        Service role client when SUPABASE_SERVICE_ROLE_KEY is set, else the anon client.
        """
        if cls.service_client is not None:
            return cls.service_client
        if not settings.SUPABASE_SERVICE_ROLE_KEY:
            logger.warning("SUPABASE_SERVICE_ROLE_KEY not set; using SUPABASE_KEY. RLS may hide rent rows.")
            return await cls.get_client()
        logger.info("Initializing Supabase client with Service Role Key.")
        cls.service_client = await create_async_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)
        return cls.service_client

    @classmethod
    async def tenant_rows(cls, table: str, tenant_id: str):
        """
        Select builder on ``table`` restricted to one tenant.

        The service role bypasses RLS, so every tenant read goes through here.
        """
        client = await cls.get_service_client()
        return client.table(table).select("*").eq("tenant_id", tenant_id)

# Global instance to access the client manager
db = SupabaseManager()
