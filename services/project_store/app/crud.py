# services/project_store/app/crud.py
import asyncio
from core.config import settings, logger as core_logger
from core.exceptions import MetadataDeleteFailed, MetadataReadFailed, MetadataWriteFailed
from core.supabase_client import ID_COLUMN, NAMESPACE_COLUMN, OWNER_COLUMN, UPDATED_AT_COLUMN
from typing import Any, Dict, List, Optional
from supabase import PostgrestAPIError

logger = core_logger.getChild("ProjectStore").getChild("CRUD")

SUMMARY_FIELDS = "id, name, created_at, updated_at, thumbnail_path"


def _describe(e: Exception) -> str:
    if isinstance(e, PostgrestAPIError):
        return f"{e.message} (Code: {e.code}, Details: {e.details})"
    return str(e)


class MetadataStoreClient:
    """Filtered CRUD against the single projects table."""

    def __init__(self, client: Any, table: Optional[str] = None):
        self.client = client
        self.table = table or settings.PROJECTS_TABLE

    async def upsert_project(self, row: Dict[str, Any]) -> Dict[str, Any]:
        """Insert-or-merge on ``id``. Returns the stored row as the backend echoes it."""
        job_prefix = f"[{row.get(ID_COLUMN)}]"
        logger.debug(f"{job_prefix} Attempting to upsert project row.")

        def db_call():
            return self.client.table(self.table)\
                   .upsert(row, on_conflict=ID_COLUMN)\
                   .execute()

        try:
            response = await asyncio.to_thread(db_call)
        except Exception as e:
            logger.error(f"{job_prefix} Supabase error upserting project row: {_describe(e)}", exc_info=False)
            raise MetadataWriteFailed(f"Saving project metadata failed: {_describe(e)}", {"id": row.get(ID_COLUMN)}) from e

        if not response or not response.data:
            logger.error(f"{job_prefix} Upsert executed but returned no data.")
            raise MetadataWriteFailed("Saving project metadata returned no row.", {"id": row.get(ID_COLUMN)})

        logger.info(f"{job_prefix} Successfully upserted project row.")
        return response.data[0]

    async def get_project(self, project_id: str, fields: str = "*") -> Optional[Dict[str, Any]]:
        """Returns the row (restricted to ``fields``) or None when no row matches."""
        job_prefix = f"[{project_id}]"
        logger.debug(f"{job_prefix} Attempting to retrieve project row ({fields}).")

        def db_call():
            return self.client.table(self.table)\
                   .select(fields)\
                   .eq(ID_COLUMN, project_id)\
                   .limit(1)\
                   .maybe_single()\
                   .execute()

        try:
            response = await asyncio.to_thread(db_call)
        except Exception as e:
            logger.error(f"{job_prefix} Supabase error retrieving project row: {_describe(e)}", exc_info=False)
            raise MetadataReadFailed(f"Reading project metadata failed: {_describe(e)}", {"id": project_id}) from e

        # maybe_single() gives back None (or empty data) when nothing matches
        if response and getattr(response, "data", None):
            return response.data
        logger.info(f"{job_prefix} No project row found.")
        return None

    async def list_projects(self, namespace: str, owner_id: str, fields: str = SUMMARY_FIELDS) -> List[Dict[str, Any]]:
        """Rows of ``owner_id`` in ``namespace``, most recently updated first. No pagination."""
        def db_call():
            return self.client.table(self.table)\
                   .select(fields)\
                   .eq(NAMESPACE_COLUMN, namespace)\
                   .eq(OWNER_COLUMN, owner_id)\
                   .order(UPDATED_AT_COLUMN, desc=True)\
                   .execute()

        try:
            response = await asyncio.to_thread(db_call)
        except Exception as e:
            logger.error(f"Supabase error listing projects for '{namespace}': {_describe(e)}", exc_info=False)
            raise MetadataReadFailed(f"Listing projects failed: {_describe(e)}", {"namespace": namespace}) from e

        rows = response.data if response and response.data else []
        logger.info(f"Retrieved {len(rows)} project rows for namespace '{namespace}'.")
        return rows

    async def delete_project(self, project_id: str, owner_id: str) -> None:
        """Deletes the row only if ``owner_id`` owns it; someone else's id matches nothing."""
        job_prefix = f"[{project_id}]"

        def db_call():
            return self.client.table(self.table)\
                   .delete()\
                   .eq(ID_COLUMN, project_id)\
                   .eq(OWNER_COLUMN, owner_id)\
                   .execute()

        try:
            await asyncio.to_thread(db_call)
        except Exception as e:
            logger.error(f"{job_prefix} Supabase error deleting project row: {_describe(e)}", exc_info=False)
            raise MetadataDeleteFailed(f"Deleting project metadata failed: {_describe(e)}", {"id": project_id}) from e
        logger.info(f"{job_prefix} Deleted project row.")
