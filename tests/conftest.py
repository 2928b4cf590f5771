import pytest
from typing import Dict, List, Optional

from core.exceptions import (
    MetadataDeleteFailed, MetadataReadFailed, MetadataWriteFailed, StorageReadFailed, StorageWriteFailed,
)
from core.identity import IdentityResolver
from core.models import Session
from core.storage import BlobNotFound


class StaticSessionProvider:
    """Session provider whose session can be revoked mid-test."""

    def __init__(self, session: Optional[Session]):
        self.session = session
        self.calls = 0

    async def get_current_session(self):
        self.calls += 1
        return self.session


class InMemoryBlobStore:
    """Dict-backed stand-in for BlobStoreClient with per-path failure injection."""

    def __init__(self):
        self.objects: Dict[str, bytes] = {}
        self.content_types: Dict[str, str] = {}
        self.fail_put: set = set()
        self.fail_get: set = set()
        self.fail_delete: set = set()
        self.fail_all_puts = False
        self.put_calls: List[str] = []
        self.get_calls: List[str] = []
        self.delete_calls: List[str] = []

    async def put(self, path, data, content_type, overwrite=True):
        self.put_calls.append(path)
        if self.fail_all_puts or path in self.fail_put:
            raise StorageWriteFailed(f"Storage upload failed for {path}")
        self.objects[path] = bytes(data)
        self.content_types[path] = content_type
        return path

    async def get(self, path):
        self.get_calls.append(path)
        if path in self.fail_get:
            raise StorageReadFailed(f"Storage download failed for {path}")
        if path not in self.objects:
            raise BlobNotFound(f"Object not found: {path}")
        return self.objects[path]

    async def delete(self, path):
        self.delete_calls.append(path)
        if path in self.fail_delete:
            raise StorageWriteFailed(f"Storage delete failed for {path}")
        self.objects.pop(path, None)


class InMemoryMetadataStore:
    """Dict-backed stand-in for MetadataStoreClient that counts every call."""

    def __init__(self):
        self.rows: Dict[str, dict] = {}
        self.calls: List[str] = []
        self.fail_upsert = False
        self.fail_get = False
        self.fail_list = False
        self.fail_delete = False

    async def upsert_project(self, row):
        self.calls.append("upsert")
        if self.fail_upsert:
            raise MetadataWriteFailed("Saving project metadata failed")
        merged = {**self.rows.get(row["id"], {}), **row}
        self.rows[row["id"]] = merged
        return dict(merged)

    async def get_project(self, project_id, fields="*"):
        self.calls.append("get")
        if self.fail_get:
            raise MetadataReadFailed("Reading project metadata failed")
        row = self.rows.get(project_id)
        if row is None:
            return None
        if fields == "*":
            return dict(row)
        wanted = [f.strip() for f in fields.split(",")]
        return {k: row.get(k) for k in wanted}

    async def list_projects(self, namespace, owner_id, fields=None):
        self.calls.append("list")
        if self.fail_list:
            raise MetadataReadFailed("Listing projects failed")
        rows = [dict(r) for r in self.rows.values()
                if r.get("app_name") == namespace and r.get("user_id") == owner_id]
        return sorted(rows, key=lambda r: r["updated_at"], reverse=True)

    async def delete_project(self, project_id, owner_id):
        self.calls.append("delete")
        if self.fail_delete:
            raise MetadataDeleteFailed("Deleting project metadata failed")
        if self.rows.get(project_id, {}).get("user_id") == owner_id:
            del self.rows[project_id]


@pytest.fixture
def session_provider():
    return StaticSessionProvider(Session(user_id="user-123", access_token="token-abc"))


@pytest.fixture
def identity(session_provider):
    return IdentityResolver(session_provider)


@pytest.fixture
def blobs():
    return InMemoryBlobStore()


@pytest.fixture
def metadata():
    return InMemoryMetadataStore()


@pytest.fixture
def other_identity():
    return IdentityResolver(StaticSessionProvider(Session(user_id="user-456", access_token="token-xyz")))
