import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from supabase import create_client

from app.core.config import get_settings

logger = logging.getLogger(__name__)

FOLDER_LEASES = "leases"
FOLDER_DEEDS = "deeds"

SIGNATURE_BUCKET_OPTIONS = {
    "public": False,
    "file_size_limit": 2 * 1024 * 1024,
    "allowed_mime_types": ["image/png", "image/jpeg"],
}


class StorageUploadError(Exception):
    pass


@dataclass(frozen=True)
class StoredDocument:
    bucket: str
    path: str
    original_name: str


def _safe_filename(filename: Optional[str]) -> str:
    name = Path(filename or "").name.strip()
    return name.replace(" ", "_") or "document"


def build_document_path(folder: str, filename: Optional[str], now_ms: Optional[int] = None) -> str:
    """``{folder}/{epoch_ms}-{original name}``; the timestamp keeps concurrent uploads apart."""
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    return f"{folder}/{stamp}-{_safe_filename(filename)}"


def get_storage_client():
    settings = get_settings()
    key = settings.supabase_service_role_key or settings.supabase_key
    if not settings.supabase_url or not key:
        raise RuntimeError("Supabase credentials are not configured")
    return create_client(settings.supabase_url, key)


def _result_error(result) -> Optional[object]:
    if isinstance(result, dict):
        return result.get("error")
    return getattr(result, "error", None)


def _result_path(result, fallback: str) -> str:
    if isinstance(result, dict):
        return result.get("path") or fallback
    return getattr(result, "path", None) or fallback


def upload_object(client, bucket: str, path: str, content: bytes, content_type: Optional[str]) -> str:
    """Upload a single object and return the stored path."""
    options = {"content-type": content_type} if content_type else None
    try:
        result = client.storage.from_(bucket).upload(path, content, options)
    except Exception as exc:
        raise StorageUploadError(f"Upload to {bucket}/{path} failed") from exc

    if _result_error(result):
        raise StorageUploadError(f"Upload to {bucket}/{path} failed")

    return _result_path(result, path)


def upload_document(
    *,
    folder: str,
    filename: Optional[str],
    content: bytes,
    content_type: Optional[str],
    client=None,
) -> StoredDocument:
    settings = get_settings()
    bucket = settings.documents_bucket
    path = build_document_path(folder, filename)
    if client is None:
        try:
            client = get_storage_client()
        except Exception as exc:
            raise StorageUploadError(f"Storage client unavailable for {bucket}/{path}") from exc
    stored_path = upload_object(client, bucket, path, content, content_type)
    logger.info("Stored document %s/%s", bucket, stored_path)
    return StoredDocument(bucket=bucket, path=stored_path, original_name=filename or "")


# ─── Provisioning (used by scripts) ───────────────────


def bucket_definitions() -> dict[str, dict]:
    settings = get_settings()
    return {
        settings.documents_bucket: {
            "public": False,
            "file_size_limit": settings.max_document_bytes,
            "allowed_mime_types": settings.allowed_document_types,
        },
        settings.signatures_bucket: dict(SIGNATURE_BUCKET_OPTIONS),
    }


def list_bucket_names(client) -> list[str]:
    buckets = client.storage.list_buckets() or []
    names = []
    for bucket in buckets:
        name = bucket.get("name") if isinstance(bucket, dict) else getattr(bucket, "name", None)
        if name:
            names.append(name)
    return names


def ensure_bucket(client, name: str, options: dict) -> bool:
    """Create ``name`` if missing. Returns True when the bucket was created."""
    if name in list_bucket_names(client):
        return False
    client.storage.create_bucket(name, options=options)
    return True
