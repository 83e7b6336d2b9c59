"""
Vision scan metrics logger.
Inserts one row per processed upload into the `ocr_metrics` table.

Usage:
    from api.services.ocr_metrics import log_ocr_metric, ocr_timer

    with ocr_timer() as t:
        ...
    log_ocr_metric(
        supabase,
        extraction_method="google_vision",
        document_type="receipt",
        processing_ms=t["elapsed_ms"],
        items_count=3,
        user_id="...",
    )
"""

import logging
import time
from contextlib import contextmanager
from typing import Optional

logger = logging.getLogger(__name__)

AGENT = "catchsmart"


def log_ocr_metric(
    supabase,
    extraction_method: str,
    document_type: Optional[str] = None,
    file_type: Optional[str] = None,
    processing_ms: Optional[int] = None,
    char_count: Optional[int] = None,
    success: bool = True,
    items_count: Optional[int] = None,
    images_resolved: Optional[int] = None,
    user_id: Optional[str] = None,
    image_url: Optional[str] = None,
):
    """Insert a single metric row. Fire-and-forget (never raises)."""
    try:
        row = {
            "agent": AGENT,
            "extraction_method": extraction_method,
            "success": success,
        }
        # Optional fields - only include if set
        optional = {
            "source": document_type,
            "file_type": file_type,
            "processing_ms": processing_ms,
            "char_count": char_count,
            "items_count": items_count,
            "receipt_url": image_url,
        }
        row.update({k: v for k, v in optional.items() if v is not None})

        metadata = {}
        if user_id is not None:
            metadata["user_id"] = user_id
        if images_resolved is not None:
            metadata["images_resolved"] = images_resolved
        if metadata:
            row["metadata"] = metadata

        supabase.table("ocr_metrics").insert(row).execute()
        logger.info("[OCR Metrics] %s/%s logged", AGENT, extraction_method)
    except Exception as exc:
        logger.warning("[OCR Metrics] Failed to log: %s", exc)


@contextmanager
def ocr_timer():
    """Context manager that yields a dict you can read `elapsed_ms` from after the block."""
    t = {"elapsed_ms": 0}
    start = time.perf_counter()
    try:
        yield t
    finally:
        t["elapsed_ms"] = int((time.perf_counter() - start) * 1000)
