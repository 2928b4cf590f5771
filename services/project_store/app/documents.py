# services/project_store/app/documents.py
"""
Document encoding and shape normalization.

Projects saved over the years ended up in storage in three shapes: the bare
document, the document inside a ``{"data": ...}`` envelope, and a document
that was JSON-encoded twice (so the blob parses to a string). ``normalize_document``
maps all three back to the bare document.
"""
import json
from typing import Any, Iterable, Optional

from core.config import settings
from core.exceptions import StorageReadFailed, StorageWriteFailed

ENVELOPE_KEY = "data"


def encode_document(document: Any) -> bytes:
    try:
        return json.dumps(document, ensure_ascii=False).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise StorageWriteFailed(f"Document is not JSON serializable: {e}") from e


def normalize_document(value: Any, markers: Optional[Iterable[str]] = None) -> Any:
    """
    Unwraps known legacy storage shapes. Order matters and nothing recurses:
    first an envelope check, then one extra parse attempt for strings.
    """
    markers = list(settings.DOCUMENT_MARKERS if markers is None else markers)

    if isinstance(value, dict) and value.get(ENVELOPE_KEY) and not any(value.get(m) for m in markers):
        value = value[ENVELOPE_KEY]

    if isinstance(value, str) and value.strip().startswith("{"):
        try:
            value = json.loads(value)
        except ValueError:
            pass # unparsable strings are final

    return value


def decode_document(blob: bytes, markers: Optional[Iterable[str]] = None) -> Any:
    try:
        parsed = json.loads(blob)
    except ValueError as e:
        raise StorageReadFailed(f"Stored document is not valid JSON: {e}") from e
    return normalize_document(parsed, markers)
