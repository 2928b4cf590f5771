"""Failure taxonomy for cloud project persistence.

Every fatal failure of a save/load/list/delete reaches the caller as one of
these types so the caller can tell them apart. ``status_code`` is the HTTP
status the project store service answers with.
"""
from typing import Any, Dict, Optional


class ProjectStoreError(Exception):
    """Base exception for all project store failures."""
    status_code: int = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NotAuthenticated(ProjectStoreError):
    """Raised when no active session exists or the auth client is not initialized."""
    status_code = 401


class NotFound(ProjectStoreError):
    """Raised when no project record matches the requested id."""
    status_code = 404


class StorageWriteFailed(ProjectStoreError):
    """Raised when the document blob could not be uploaded."""
    status_code = 502


class StorageReadFailed(ProjectStoreError):
    """Raised when a blob could not be downloaded."""
    status_code = 502


class MetadataWriteFailed(ProjectStoreError):
    """Raised when the project record upsert fails."""
    status_code = 502


class MetadataReadFailed(ProjectStoreError):
    """Raised when selecting project records fails."""
    status_code = 502


class MetadataDeleteFailed(ProjectStoreError):
    """Raised when the project record could not be deleted."""
    status_code = 502


class InvalidThumbnail(ProjectStoreError):
    """Raised when a thumbnail payload cannot be decoded."""
    status_code = 400
