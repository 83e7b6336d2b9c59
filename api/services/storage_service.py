# api/services/storage_service.py
# ================================
# Equipment image storage
# ================================
# Writes original uploads to the equipment-images bucket under
# {user_id}/{epoch_ms}-{safe_filename} and returns their public URL.

import logging
import os
import re
import time
from typing import List, Optional

from supabase import Client

from api.errors import StorageFailure, StorageMisconfigured
from services.vision_models import UploadedImage

logger = logging.getLogger(__name__)

DEFAULT_BUCKET = "equipment-images"
_UNSAFE_CHARS_RE = re.compile(r'[^a-zA-Z0-9.-]')


def equipment_bucket() -> str:
    return os.getenv("EQUIPMENT_IMAGES_BUCKET", DEFAULT_BUCKET)


# ============================================
# Helpers
# ============================================

def _safe_filename(name: str) -> str:
    """Replace everything outside [a-zA-Z0-9.-] with underscores."""
    return _UNSAFE_CHARS_RE.sub("_", name or "upload")


def build_storage_key(user_id: str, filename: str, now_ms: Optional[int] = None) -> str:
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{user_id}/{now_ms}-{_safe_filename(filename)}"


def _is_missing_bucket(error: Exception) -> bool:
    return "bucket" in str(error).lower()


# ============================================
# Upload
# ============================================

def store_upload(supabase: Client, image: UploadedImage, bucket: Optional[str] = None) -> str:
    """
    Upload the original photo and return its public URL.

    Raises StorageMisconfigured when the bucket does not exist and
    StorageFailure for any other storage error.
    """
    bucket = bucket or equipment_bucket()
    key = build_storage_key(image.owner_id, image.original_filename)
    logger.info("[Storage] Uploading %s (%d bytes) to %s", key, len(image.raw_bytes), bucket)

    try:
        result = supabase.storage.from_(bucket).upload(
            path=key,
            file=image.raw_bytes,
            file_options={
                "content-type": image.mime_type,
                "cache-control": "3600",
                "upsert": "false",
            },
        )
    except Exception as e:
        logger.error("[Storage] Upload failed for user=%s file=%s: %s",
                     image.owner_id, image.original_filename, e)
        if _is_missing_bucket(e):
            raise StorageMisconfigured(
                f'Storage bucket "{bucket}" not found. Please create it in Supabase.',
                stage="store",
            )
        raise StorageFailure(f"Upload failed: {e}", stage="store")

    stored_path = getattr(result, "path", None) or key
    public_url = supabase.storage.from_(bucket).get_public_url(stored_path)
    logger.info("[Storage] Stored %s", stored_path)
    return public_url


def list_bucket_names(supabase: Client) -> List[str]:
    """Names of all storage buckets (empty list if the listing fails)."""
    try:
        buckets = supabase.storage.list_buckets() or []
    except Exception as e:
        logger.warning("[Storage] Could not list buckets: %s", e)
        return []
    return [getattr(b, "name", None) or b.get("name") for b in buckets if b]
