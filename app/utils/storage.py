import re
import time
from typing import Optional
from google.cloud import storage as gcs_storage
from app.config import get_settings

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")

def get_storage_client():
    return gcs_storage.Client(project=get_settings().GCP_PROJECT_ID or None)

def get_bucket():
    client = get_storage_client()
    return client.bucket(get_settings().GCS_BUCKET_NAME)

def build_object_name(filename: Optional[str], index: int, now_ms: Optional[int] = None) -> str:
    """Collision-resistant object name: ``<prefix><epoch ms>-<index>-<filename>``."""
    stamp = now_ms if now_ms is not None else int(time.time() * 1000)
    safe = _UNSAFE_CHARS.sub("_", filename or "upload").strip("_") or "upload"
    return f"{get_settings().GCS_UPLOAD_PREFIX}{stamp}-{index}-{safe}"

def public_url(path: str) -> str:
    """Stable public URL for an object previously uploaded under ``path``."""
    settings = get_settings()
    return f"{settings.PUBLIC_URL_BASE.rstrip('/')}/{settings.GCS_BUCKET_NAME}/{path}"

def upload_file(path: str, file_bytes: bytes, content_type: str = "application/octet-stream") -> str:
    """Upload file to GCS bucket. Returns the public URL."""
    bucket = get_bucket()
    blob = bucket.blob(path)
    blob.upload_from_string(file_bytes, content_type=content_type)
    return public_url(path)

def delete_file(path: str) -> None:
    """Delete a file from GCS bucket."""
    bucket = get_bucket()
    blob = bucket.blob(path)
    blob.delete()

def bucket_accessible() -> bool:
    """Cheap readiness probe used by the deep health check."""
    if not get_settings().GCS_BUCKET_NAME:
        return False
    return get_bucket().exists()
