# services/vision_scanner.py
# ================================
# Equipment photo scanning pipeline
# ================================
# Used by the upload endpoint (api/routers/vision.py /vision/process).
#
# Stages (each feeds the next):
#   store     -> original photo written to the equipment-images bucket
#   annotate  -> Google Vision (or mock data when unavailable)
#   classify  -> lure photo vs. receipt
#   extract   -> regex extraction of ExtractedItems
#   enrich    -> product image lookup per item (best effort)
#
# Only storage failures abort the scan once the caller is authenticated.
# Vision and image search failures degrade the content, never the response.

import asyncio
import logging
import os
from typing import Optional

from api.errors import ExtractionEmpty
from api.services.image_search import DEFAULT_CONCURRENCY, enrich_items
from api.services.ocr_metrics import log_ocr_metric, ocr_timer
from api.services.storage_service import store_upload
from api.services.vision_backend import annotate_with_fallback
from services.document_classifier import classify_document
from services.equipment_regex import extract_items
from services.vision_models import DocumentType, UploadedImage, VisionUploadResponse

logger = logging.getLogger(__name__)


def search_concurrency() -> int:
    try:
        return max(1, int(os.getenv("IMAGE_SEARCH_CONCURRENCY", DEFAULT_CONCURRENCY)))
    except ValueError:
        return DEFAULT_CONCURRENCY


async def scan_equipment_image(
    image: UploadedImage,
    supabase,
    backend,
    search=None,
    concurrency: Optional[int] = None,
) -> VisionUploadResponse:
    """
    Run the full scan for one uploaded photo.

    Args:
        image: the uploaded photo and its owner
        supabase: client used for storage and metrics
        backend: vision backend (GoogleVisionBackend / MockVisionBackend)
        search: image search client, or None to skip enrichment
        concurrency: max parallel image lookups

    Returns:
        VisionUploadResponse with the stored photo URL and the extraction.
    """
    user_id = image.owner_id
    filename = image.original_filename

    # ── store ──
    public_url = await asyncio.to_thread(store_upload, supabase, image)

    with ocr_timer() as t:
        # ── annotate ──
        annotations, method = await annotate_with_fallback(backend, image.raw_bytes)
        # Bytes are durable in storage now; drop our copy
        image.raw_bytes = b""

        # ── classify ──
        document_type = classify_document(annotations.full_text, annotations.labels)
        logger.info("[Vision] user=%s file=%s stage=classify type=%s method=%s text=%r",
                    user_id, filename, document_type.value, method, annotations.full_text[:100])

        # ── extract ──
        vision = extract_items(document_type, annotations)
        if document_type == DocumentType.LURE and not vision.items:
            logger.error("[Vision] user=%s file=%s stage=extract no lure found", user_id, filename)
            raise ExtractionEmpty(stage="extract")

        # ── enrich ──
        if search is not None and vision.items:
            await enrich_items(vision.items, search, concurrency or search_concurrency())

    resolved = sum(1 for item in vision.items if item.image_url)
    logger.info("[Vision] user=%s file=%s stage=respond items=%d images=%d %dms",
                user_id, filename, len(vision.items), resolved, t["elapsed_ms"])

    await asyncio.to_thread(
        log_ocr_metric,
        supabase,
        extraction_method=method,
        document_type=document_type.value,
        file_type=image.mime_type,
        processing_ms=t["elapsed_ms"],
        char_count=len(annotations.full_text),
        items_count=len(vision.items),
        images_resolved=resolved,
        user_id=user_id,
        image_url=public_url,
    )

    return VisionUploadResponse(imageUrl=public_url, vision=vision)
