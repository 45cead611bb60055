"""Supabase client factory for the document store backend."""

from typing import Any

from supabase import AsyncClient, acreate_client

from src.core.config import get_settings


async def create_supabase_client() -> AsyncClient:
    """Create the async Supabase client used by the document store.

    Uses the secret key (sb_secret_) for backend operations, which bypasses
    RLS at the PostgREST level. Realtime subscriptions require the async
    client, so a single async instance is created at application startup.

    Returns:
        AsyncClient: Supabase client instance.
    """
    settings = get_settings()
    return await acreate_client(
        settings.supabase_url,
        settings.supabase_secret_key,
    )


async def check_database_connection(client: AsyncClient, table: str) -> dict[str, Any]:
    """Check if database connection is healthy.

    Performs a simple query to verify database connectivity.

    Args:
        client: Supabase client to probe.
        table: Table used for the probe query.

    Returns:
        dict: Connection status with 'healthy' boolean and optional 'error' message.
    """
    try:
        await client.table(table).select("id").limit(1).execute()
        return {"healthy": True}
    except Exception as e:
        return {"healthy": False, "error": str(e)}
