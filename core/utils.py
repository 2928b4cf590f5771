# core/utils.py
"""
Core Utility Functions.

Small helpers shared by the project store service and its tests: project id
generation, timestamps, blob path layout and thumbnail payload decoding.
"""
import base64
import binascii
import datetime
import uuid
from typing import Optional

from core.exceptions import InvalidThumbnail

DATA_URL_PREFIX = "data:"


def generate_project_id() -> str:
    """Random UUID4; treated as globally unique."""
    return str(uuid.uuid4())


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def document_blob_path(user_id: str, project_id: str) -> str:
    return f"{user_id}/{project_id}.json"


def thumbnail_blob_path(user_id: str, project_id: str) -> str:
    return f"{user_id}/{project_id}.png"


def decode_thumbnail(payload: Optional[str]) -> Optional[bytes]:
    """
    Decodes a base64 thumbnail, accepting either bare base64 or a
    ``data:image/png;base64,...`` URL. Empty input means no thumbnail.
    """
    if not payload:
        return None
    encoded = payload.strip()
    if encoded.startswith(DATA_URL_PREFIX):
        header, sep, encoded = encoded.partition(",")
        if not sep or ";base64" not in header:
            raise InvalidThumbnail("Thumbnail data URL must be base64 encoded.")
    try:
        image = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidThumbnail(f"Thumbnail is not valid base64: {e}") from e
    return image or None
