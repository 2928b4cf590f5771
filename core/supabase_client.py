"""
Backend client for the project store.

The project store holds a single service-role client for its lifetime. That
key bypasses row-level security, so account scoping is not left to the
backend: the store's orchestrators check and filter on ``user_id`` (see
``OWNER_COLUMN``) for every row they read, list, overwrite or delete.
"""
import asyncio
from typing import Optional

from supabase import create_client, Client
from core.config import settings, logger

_service_client: Optional[Client] = None
_init_lock = asyncio.Lock()


async def get_supabase_client() -> Client:
    """Returns the shared service-role client, creating it on first use."""
    global _service_client
    if _service_client is not None:
        return _service_client

    async with _init_lock:
        if _service_client is None:
            if not settings.SUPABASE_URL or not settings.SUPABASE_SERVICE_KEY:
                logger.error("SUPABASE_URL or SUPABASE_SERVICE_KEY not configured. Cannot create client.")
                raise ValueError("Supabase URL or Service Role Key not configured")
            logger.info(f"Connecting project store to Supabase at {settings.SUPABASE_URL}...")
            try:
                # create_client is synchronous
                _service_client = await asyncio.to_thread(
                    create_client, settings.SUPABASE_URL, settings.SUPABASE_SERVICE_KEY)
            except Exception as e:
                logger.error(f"Failed to create Supabase client: {e}", exc_info=True)
                raise RuntimeError(f"Failed to initialize Supabase client: {e}") from e
            logger.info("Supabase client ready.")
    return _service_client


def reset_supabase_client() -> None:
    """Drops the shared client; the next get_supabase_client() builds a new one."""
    global _service_client
    _service_client = None


# Column names of the projects table
ID_COLUMN = "id"
OWNER_COLUMN = "user_id"
NAMESPACE_COLUMN = "app_name"
DOCUMENT_PATH_COLUMN = "storage_path"
THUMBNAIL_PATH_COLUMN = "thumbnail_path"
CREATED_AT_COLUMN = "created_at"
UPDATED_AT_COLUMN = "updated_at"
