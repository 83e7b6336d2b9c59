# api/routers/vision.py
# ================================
# Vision API Router
# ================================
# Turns a photo of a lure or a tackle-shop receipt into equipment items.
#
# =============================================================================
# @process: Equipment_Vision
# @process_name: Equipment Photo Recognition
# @process_category: equipment
# @process_trigger: event
# @process_description: Extract equipment items from an uploaded lure or receipt photo
# @process_owner: Angler
#
# @step: 1
# @step_name: Photo Upload
# @step_type: action
# @step_description: Authenticated user uploads a photo (multipart field "file")
# @step_connects_to: 2
#
# @step: 2
# @step_name: Store in Bucket
# @step_type: action
# @step_description: Save original photo to the equipment-images bucket
# @step_connects_to: 3
#
# @step: 3
# @step_name: Vision Analysis
# @step_type: action
# @step_description: Google Vision text/label/logo detection (mock data as fallback)
# @step_connects_to: 4
#
# @step: 4
# @step_name: Extract Items
# @step_type: action
# @step_description: Classify lure vs. receipt and parse equipment attributes
# @step_connects_to: 5
#
# @step: 5
# @step_name: Product Images
# @step_type: action
# @step_description: Look up a product image per item via Brave Image Search
# =============================================================================

import gc
import logging
import os
from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile

from api.auth import get_current_user
from api.errors import BadRequest, PayloadTooLarge, VisionError
from api.services.image_search import brave_api_key, get_image_search
from api.services.storage_service import equipment_bucket, list_bucket_names
from api.services.vision_backend import get_vision_backend, google_api_key
from api.supabase_client import get_supabase
from services.vision_models import UploadedImage
from services.vision_scanner import scan_equipment_image

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/vision", tags=["Vision"])

DEFAULT_MAX_UPLOAD_MB = 10


def max_upload_bytes() -> int:
    try:
        mb = int(os.getenv("MAX_UPLOAD_MB", DEFAULT_MAX_UPLOAD_MB))
    except ValueError:
        mb = DEFAULT_MAX_UPLOAD_MB
    return mb * 1024 * 1024


# ====== ENDPOINTS ======

@router.post("/process")
async def process_image(
    file: Optional[UploadFile] = File(None),
    current_user: dict = Depends(get_current_user),
    supabase=Depends(get_supabase),
    backend=Depends(get_vision_backend),
    search=Depends(get_image_search),
):
    """
    Upload a lure or receipt photo and extract equipment items.

    Returns:
        {success, imageUrl, vision: {type, items, rawText}}
    """
    if file is None or not file.filename:
        raise BadRequest(stage="validate")

    max_bytes = max_upload_bytes()

    user_id = current_user["id"]
    logger.info("[Vision] user=%s file=%s type=%s stage=received",
                user_id, file.filename, file.content_type)

    file_content = await file.read()
    try:
        if len(file_content) > max_bytes:
            raise PayloadTooLarge(
                f"File too large. Maximum upload size is {max_bytes // (1024 * 1024)} MB.",
                stage="validate",
            )

        image = UploadedImage(
            owner_id=user_id,
            raw_bytes=file_content,
            mime_type=file.content_type or "application/octet-stream",
            original_filename=file.filename,
        )
        del file_content
        file_content = None

        result = await scan_equipment_image(image, supabase, backend, search)
        return result.to_payload()

    except VisionError as e:
        logger.error("[Vision] user=%s file=%s stage=%s failed: %s",
                     user_id, file.filename, e.stage, e.message)
        raise
    except Exception as e:
        logger.exception("[Vision] user=%s file=%s unexpected error: %s", user_id, file.filename, e)
        raise VisionError(stage="unknown")
    finally:
        if file_content is not None:
            del file_content
        gc.collect()


@router.get("/status")
def vision_status(
    current_user: dict = Depends(get_current_user),
    supabase=Depends(get_supabase),
):
    """Configuration check for the upload flow. Never returns key values."""
    bucket = equipment_bucket()
    buckets = list_bucket_names(supabase)
    return {
        "authenticated": True,
        "user": {"id": current_user["id"], "email": current_user.get("email")},
        "storage": {
            "bucket": bucket,
            "hasEquipmentBucket": bucket in buckets,
            "buckets": buckets,
        },
        "env": {
            "hasGoogleKey": google_api_key() is not None,
            "hasBraveKey": brave_api_key() is not None,
        },
    }
