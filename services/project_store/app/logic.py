# services/project_store/app/logic.py
"""
Project persistence orchestration.

A project is one metadata row plus one or two blobs (document JSON, optional
PNG preview). The table and the bucket fail independently and there is no
transaction spanning both, so every operation is an ordered list of steps,
each either fatal (abort, raise a typed failure) or non-fatal (log a warning
and carry on):

    save:   [check owner (fatal, updates only)] -> upload document (fatal)
            -> upload thumbnail (non-fatal) -> upsert row (fatal)
    load:   read row (fatal) -> download document (fatal) -> normalize
    delete: read paths + owner (non-fatal) -> delete row (fatal) -> delete blobs (non-fatal, each)

Two consequences are accepted rather than compensated for: a row upsert that
fails after the document upload leaves an orphaned document blob, and blob
deletions that fail after the row is gone leave orphaned blobs. Nothing here
rolls either back.

Every operation is scoped to the signed-in account: rows are listed and
deleted filtered on ``user_id``, and a row owned by someone else is reported
as NotFound, before any blob is read or written.

There is no per-id lock: two concurrent saves of the same id race and the
later row upsert wins.
"""
import asyncio
from typing import Any, List, Optional, Sequence

from core.config import settings, logger as core_logger
from core.exceptions import MetadataReadFailed, MetadataWriteFailed, NotFound, StorageReadFailed, StorageWriteFailed
from core.identity import IdentityResolver
from core.models import ProjectRecord, ProjectSummary, ThumbnailResult
from core.storage import BlobNotFound, BlobStoreClient, JSON_CONTENT_TYPE, PNG_CONTENT_TYPE
from core.supabase_client import (
    CREATED_AT_COLUMN, DOCUMENT_PATH_COLUMN, OWNER_COLUMN, THUMBNAIL_PATH_COLUMN,
)
from core.utils import document_blob_path, generate_project_id, thumbnail_blob_path, utc_now
from .crud import MetadataStoreClient
from .documents import decode_document, encode_document

logger = core_logger.getChild("ProjectStore").getChild("Logic")


def _owned_by(row: Optional[dict], user_id: str) -> bool:
    # rows of other accounts are reported as missing, never as forbidden
    return bool(row) and row.get(OWNER_COLUMN) == user_id


class ProjectWriter:
    def __init__(self, identity: IdentityResolver, blobs: BlobStoreClient, metadata: MetadataStoreClient,
                 namespace: Optional[str] = None, default_name: Optional[str] = None):
        self.identity = identity
        self.blobs = blobs
        self.metadata = metadata
        self.namespace = namespace or settings.APP_NAMESPACE
        self.default_name = default_name or settings.DEFAULT_PROJECT_NAME

    async def save(self, name: Optional[str], document: Any, thumbnail: Optional[bytes] = None,
                   project_id: Optional[str] = None) -> ProjectRecord:
        """
        Persists ``document`` (and ``thumbnail`` if given) and upserts the project row.

        Passing ``project_id`` overwrites that project in place, provided the
        caller owns it; otherwise a new id is generated.

        Raises:
            NotAuthenticated: no session, checked before every step.
            NotFound: ``project_id`` belongs to another account; nothing was written.
            MetadataReadFailed: ownership of ``project_id`` could not be checked.
            StorageWriteFailed: the document upload failed; no row was written.
            MetadataWriteFailed: the row upsert failed; the uploaded document
                blob is left in storage (orphaned).
        """
        identity = await self.identity.resolve()
        user_id = identity.user_id
        created_at = None
        if project_id:
            created_at = await self._claim(project_id, user_id)
            await self.identity.resolve()
        else:
            project_id = generate_project_id()
        job_prefix = f"[{project_id}]"
        display_name = (name or "").strip() or self.default_name
        payload = encode_document(document)

        # --- Step 1: document blob (fatal) ---
        document_path = document_blob_path(user_id, project_id)
        logger.info(f"{job_prefix} Uploading document ({len(payload)} bytes) to '{document_path}'.")
        await self.blobs.put(document_path, payload, JSON_CONTENT_TYPE, overwrite=True)

        # --- Step 2: thumbnail blob (non-fatal) ---
        thumbnail_path = None
        if thumbnail:
            await self.identity.resolve()
            candidate = thumbnail_blob_path(user_id, project_id)
            try:
                await self.blobs.put(candidate, thumbnail, PNG_CONTENT_TYPE, overwrite=True)
                thumbnail_path = candidate
            except StorageWriteFailed as e:
                logger.warning(f"{job_prefix} Thumbnail upload failed, saving without preview: {e.message}")

        # --- Step 3: metadata row (fatal) ---
        await self.identity.resolve()
        now = utc_now()
        record = ProjectRecord(
            id=project_id,
            owner_id=user_id,
            name=display_name,
            app_namespace=self.namespace,
            document_path=document_path,
            thumbnail_path=thumbnail_path,
            created_at=created_at or now,
            updated_at=now,
        )
        try:
            stored = await self.metadata.upsert_project(record.to_row())
        except MetadataWriteFailed:
            logger.error(f"{job_prefix} Metadata write failed; document blob '{document_path}' is left orphaned.")
            raise

        logger.info(f"{job_prefix} Project '{display_name}' saved.")
        return ProjectRecord.model_validate(stored)

    async def update(self, project_id: str, name: Optional[str], document: Any,
                     thumbnail: Optional[bytes] = None) -> ProjectRecord:
        return await self.save(name, document, thumbnail, project_id=project_id)

    async def _claim(self, project_id: str, user_id: str):
        """created_at of an existing row owned by ``user_id``, None for an unused id."""
        row = await self.metadata.get_project(project_id, f"{CREATED_AT_COLUMN}, {OWNER_COLUMN}")
        if not row:
            return None
        if row.get(OWNER_COLUMN) != user_id:
            logger.warning(f"[{project_id}] Refusing to overwrite a project owned by another account.")
            raise NotFound("Project not found.", {"id": project_id})
        return row.get(CREATED_AT_COLUMN)


class ProjectReader:
    def __init__(self, identity: IdentityResolver, blobs: BlobStoreClient, metadata: MetadataStoreClient,
                 markers: Optional[Sequence[str]] = None):
        self.identity = identity
        self.blobs = blobs
        self.metadata = metadata
        self.markers = markers

    async def load(self, project_id: str) -> Any:
        """
        Returns the normalized document for ``project_id``.

        Raises NotFound if no row matches or the row belongs to another
        account, and StorageReadFailed if the document blob cannot be
        downloaded, a missing blob included.
        """
        job_prefix = f"[{project_id}]"
        identity = await self.identity.resolve()
        row = await self.metadata.get_project(project_id, f"{DOCUMENT_PATH_COLUMN}, {OWNER_COLUMN}")
        if not _owned_by(row, identity.user_id):
            raise NotFound("Project not found.", {"id": project_id})
        document_path = row.get(DOCUMENT_PATH_COLUMN)
        if not document_path:
            raise StorageReadFailed("Project record has no document path.", {"id": project_id})

        await self.identity.resolve()
        try:
            blob = await self.blobs.get(document_path)
        except BlobNotFound as e:
            # unlike thumbnails, a record without its document is unrecoverable
            logger.error(f"{job_prefix} Document blob '{document_path}' is missing.")
            raise StorageReadFailed(f"Document blob is missing: {document_path}", {"id": project_id}) from e
        logger.info(f"{job_prefix} Loaded document ({len(blob)} bytes).")
        return decode_document(blob, self.markers)


class ProjectDeleter:
    def __init__(self, identity: IdentityResolver, blobs: BlobStoreClient, metadata: MetadataStoreClient):
        self.identity = identity
        self.blobs = blobs
        self.metadata = metadata

    async def delete(self, project_id: str) -> None:
        """
        Removes the project row, then its blobs.

        Only the row deletion can fail the call (MetadataDeleteFailed), and
        storage is left untouched when it does. Blob deletions are attempted
        one by one and their failures are only logged. A project owned by
        another account raises NotFound before anything is touched; if the
        lookup itself fails, the row delete is still filtered on the owner.
        """
        job_prefix = f"[{project_id}]"
        identity = await self.identity.resolve()

        paths: List[str] = []
        try:
            row = await self.metadata.get_project(
                project_id, f"{DOCUMENT_PATH_COLUMN}, {THUMBNAIL_PATH_COLUMN}, {OWNER_COLUMN}")
        except MetadataReadFailed as e:
            logger.warning(f"{job_prefix} Pre-delete lookup failed, deleting row without blob cleanup: {e.message}")
        else:
            if row and not _owned_by(row, identity.user_id):
                raise NotFound("Project not found.", {"id": project_id})
            if row:
                paths = [p for p in (row.get(DOCUMENT_PATH_COLUMN), row.get(THUMBNAIL_PATH_COLUMN)) if p]

        identity = await self.identity.resolve()
        await self.metadata.delete_project(project_id, identity.user_id)

        for path in paths:
            await self.identity.resolve()
            try:
                await self.blobs.delete(path)
            except StorageWriteFailed as e:
                logger.warning(f"{job_prefix} Storage delete failed for '{path}' (non-fatal): {e.message}")
        logger.info(f"{job_prefix} Project deleted.")


class ProjectLister:
    def __init__(self, identity: IdentityResolver, metadata: MetadataStoreClient, namespace: Optional[str] = None):
        self.identity = identity
        self.metadata = metadata
        self.namespace = namespace or settings.APP_NAMESPACE

    async def list(self) -> List[ProjectSummary]:
        """The caller's projects in this namespace, most recently updated first. Empty is fine."""
        identity = await self.identity.resolve()
        rows = await self.metadata.list_projects(self.namespace, identity.user_id)
        return [ProjectSummary.model_validate(row) for row in rows]


class ThumbnailLoader:
    def __init__(self, identity: IdentityResolver, blobs: BlobStoreClient, metadata: MetadataStoreClient):
        self.identity = identity
        self.blobs = blobs
        self.metadata = metadata

    async def load_thumbnail(self, record: Any) -> Optional[bytes]:
        """
        Preview bytes for ``record`` (a ProjectSummary/ProjectRecord), or None.

        No ``thumbnail_path`` means None without touching the network, and a
        missing object is also None. Any other failure raises StorageReadFailed.
        """
        return await self._fetch(getattr(record, "thumbnail_path", None))

    async def load_thumbnail_by_id(self, project_id: str) -> Optional[bytes]:
        identity = await self.identity.resolve()
        row = await self.metadata.get_project(project_id, f"{THUMBNAIL_PATH_COLUMN}, {OWNER_COLUMN}")
        if not _owned_by(row, identity.user_id):
            raise NotFound("Project not found.", {"id": project_id})
        return await self._fetch(row.get(THUMBNAIL_PATH_COLUMN))

    async def _fetch(self, path: Optional[str]) -> Optional[bytes]:
        if not path:
            return None
        await self.identity.resolve()
        try:
            return await self.blobs.get(path)
        except BlobNotFound:
            return None

    async def load_thumbnails(self, records: Sequence[Any]) -> List[ThumbnailResult]:
        """Fetches all previews concurrently; one item failing never affects the rest."""
        outcomes = await asyncio.gather(
            *(self.load_thumbnail(record) for record in records),
            return_exceptions=True,
        )
        results = []
        for record, outcome in zip(records, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning(f"[{record.id}] Thumbnail load failed: {outcome}")
                results.append(ThumbnailResult(project_id=record.id, error=str(outcome)))
            else:
                results.append(ThumbnailResult(project_id=record.id, image=outcome))
        return results


class ProjectStore:
    """The caller-facing surface: save, update, load, list, delete and thumbnails."""

    def __init__(self, identity: IdentityResolver, blobs: BlobStoreClient, metadata: MetadataStoreClient,
                 namespace: Optional[str] = None):
        self.identity = identity
        self.writer = ProjectWriter(identity, blobs, metadata, namespace=namespace)
        self.reader = ProjectReader(identity, blobs, metadata)
        self.deleter = ProjectDeleter(identity, blobs, metadata)
        self.lister = ProjectLister(identity, metadata, namespace=namespace)
        self.thumbnails = ThumbnailLoader(identity, blobs, metadata)

    async def save(self, name: Optional[str], document: Any, thumbnail: Optional[bytes] = None) -> ProjectRecord:
        return await self.writer.save(name, document, thumbnail)

    async def update(self, project_id: str, name: Optional[str], document: Any,
                     thumbnail: Optional[bytes] = None) -> ProjectRecord:
        return await self.writer.update(project_id, name, document, thumbnail)

    async def load(self, project_id: str) -> Any:
        return await self.reader.load(project_id)

    async def list(self) -> List[ProjectSummary]:
        return await self.lister.list()

    async def delete(self, project_id: str) -> None:
        await self.deleter.delete(project_id)

    async def load_thumbnail(self, record: Any) -> Optional[bytes]:
        return await self.thumbnails.load_thumbnail(record)

    async def load_thumbnail_by_id(self, project_id: str) -> Optional[bytes]:
        return await self.thumbnails.load_thumbnail_by_id(project_id)

    async def load_thumbnails(self, records: Sequence[Any]) -> List[ThumbnailResult]:
        return await self.thumbnails.load_thumbnails(records)
