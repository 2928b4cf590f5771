# core/storage.py
"""
Core Storage Utilities.

``BlobStoreClient`` uploads, downloads and deletes named binary objects in one
Supabase Storage bucket. Paths are chosen by the caller (``{user_id}/{id}.json``
and friends); this module only moves bytes and turns the storage API's errors
into the project store's failure types.
"""
import asyncio
from typing import Any, Optional

from core.config import settings, logger as core_logger
from core.exceptions import StorageReadFailed, StorageWriteFailed

logger = core_logger.getChild("Storage")

JSON_CONTENT_TYPE = "application/json"
PNG_CONTENT_TYPE = "image/png"

NOT_FOUND_CODES = {"404", "not_found", "notfound", "nosuchkey", "object not found"}


class BlobNotFound(StorageReadFailed):
    """The requested object does not exist in the bucket."""
    status_code = 404


def is_not_found_error(exc: BaseException) -> bool:
    """True if a storage error means the object does not exist."""
    if isinstance(exc, BlobNotFound):
        return True
    candidates = [getattr(exc, "status", None), getattr(exc, "code", None), getattr(exc, "error", None)]
    response = getattr(exc, "response", None)
    if response is not None:
        candidates.append(getattr(response, "status_code", None))
    # Older storage3 releases raise StorageException(dict) with the JSON error body
    if exc.args and isinstance(exc.args[0], dict):
        body = exc.args[0]
        candidates.extend([body.get("statusCode"), body.get("error"), body.get("message")])
    # a missing bucket comes back as a 404 too, but it is misconfiguration, not a missing object
    if any(value and "bucket" in str(value).lower() for value in [getattr(exc, "message", None), *candidates]):
        return False
    return any(value is not None and str(value).strip().lower() in NOT_FOUND_CODES for value in candidates)


class BlobStoreClient:
    def __init__(self, client: Any, bucket: Optional[str] = None):
        self.client = client
        self.bucket = bucket or settings.PROJECT_STORAGE_BUCKET

    def _bucket(self):
        return self.client.storage.from_(self.bucket)

    async def put(self, path: str, data: bytes, content_type: str, overwrite: bool = True) -> str:
        """Uploads ``data`` to ``path``. Raises StorageWriteFailed on any error."""
        logger.debug(f"Uploading {len(data)} bytes to '{self.bucket}/{path}' ({content_type}).")

        def do_upload():
            return self._bucket().upload(
                path=path,
                file=data,
                file_options={"content-type": content_type, "upsert": "true" if overwrite else "false"},
            )

        try:
            await asyncio.to_thread(do_upload)
        except Exception as e:
            logger.error(f"Storage upload failed for '{path}': {e}", exc_info=False)
            raise StorageWriteFailed(f"Storage upload failed for {path}: {e}", {"path": path}) from e
        logger.info(f"Uploaded '{path}' to bucket '{self.bucket}'.")
        return path

    async def get(self, path: str) -> bytes:
        """
        Downloads the object at ``path``.

        Raises BlobNotFound (a StorageReadFailed) when the object is missing
        and StorageReadFailed for every other error, so callers that treat a
        missing object as "absent" can catch the narrower type.
        """
        logger.debug(f"Downloading '{self.bucket}/{path}'.")
        try:
            data = await asyncio.to_thread(self._bucket().download, path)
        except Exception as e:
            if is_not_found_error(e):
                logger.info(f"Object '{path}' not found in bucket '{self.bucket}'.")
                raise BlobNotFound(f"Object not found: {path}", {"path": path}) from e
            logger.error(f"Storage download failed for '{path}': {e}", exc_info=False)
            raise StorageReadFailed(f"Storage download failed for {path}: {e}", {"path": path}) from e
        return bytes(data)

    async def delete(self, path: str) -> None:
        """Removes the object at ``path``. Raises StorageWriteFailed on error."""
        try:
            await asyncio.to_thread(self._bucket().remove, [path])
        except Exception as e:
            logger.error(f"Storage delete failed for '{path}': {e}", exc_info=False)
            raise StorageWriteFailed(f"Storage delete failed for {path}: {e}", {"path": path}) from e
        logger.info(f"Deleted '{path}' from bucket '{self.bucket}'.")
