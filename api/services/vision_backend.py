# api/services/vision_backend.py
# ============================================================================
# Image annotation backend (Google Cloud Vision REST) + deterministic mock
# ============================================================================
# Usage:
#   from api.services.vision_backend import get_vision_backend, annotate_with_fallback
#
#   backend = get_vision_backend()
#   annotations, method = await annotate_with_fallback(backend, image_bytes)
#
# GoogleVisionBackend.annotate raises UpstreamDegraded on any failure
# (timeout, transport error, non-2xx, malformed payload). The fallback
# helper swaps in the mock annotations so uploads never fail on vision.
# ============================================================================

import base64
import logging
import os
import time
from typing import Any, List, Optional, Tuple

import httpx

from api.errors import UpstreamDegraded
from services.vision_models import VisionAnnotations

logger = logging.getLogger(__name__)

GOOGLE_VISION_URL = "https://vision.googleapis.com/v1/images:annotate"
PLACEHOLDER_API_KEY = "your-google-cloud-api-key"
DEFAULT_TIMEOUT = 20.0

FEATURES = [
    {"type": "TEXT_DETECTION", "maxResults": 10},
    {"type": "LABEL_DETECTION", "maxResults": 10},
    {"type": "LOGO_DETECTION", "maxResults": 5},
    {"type": "OBJECT_LOCALIZATION", "maxResults": 10},
]

MOCK_TEXT = "Mock detection: Rapala Original Floater F11 Silver"


def mock_annotations() -> VisionAnnotations:
    return VisionAnnotations(full_text=MOCK_TEXT)


def google_api_key() -> Optional[str]:
    key = (os.getenv("GOOGLE_CLOUD_API_KEY") or "").strip()
    if not key or key == PLACEHOLDER_API_KEY:
        return None
    return key


# ── Response parsing ─────────────────────────────────────────────

def _descriptions(entries: Any, field: str = "description") -> List[str]:
    if not isinstance(entries, list):
        return []
    out = []
    for entry in entries:
        if isinstance(entry, dict) and isinstance(entry.get(field), str) and entry[field].strip():
            out.append(entry[field].strip())
    return out


def parse_annotate_response(data: Any) -> VisionAnnotations:
    """
    Map an images:annotate payload to VisionAnnotations.

    Missing or mistyped optional fields degrade to empty values; a payload
    without a usable first response raises UpstreamDegraded.
    """
    responses = data.get("responses") if isinstance(data, dict) else None
    if not isinstance(responses, list) or not responses or not isinstance(responses[0], dict):
        raise UpstreamDegraded("Malformed vision payload: no responses", stage="annotate")

    result = responses[0]
    if isinstance(result.get("error"), dict):
        message = result["error"].get("message") or "unknown error"
        raise UpstreamDegraded(f"Vision API error: {message}", stage="annotate")

    texts = _descriptions(result.get("textAnnotations"))
    return VisionAnnotations(
        full_text=texts[0] if texts else "",
        labels=[label.lower() for label in _descriptions(result.get("labelAnnotations"))],
        logos=_descriptions(result.get("logoAnnotations")),
        objects=_descriptions(result.get("localizedObjectAnnotations"), field="name"),
    )


# ── Backends ─────────────────────────────────────────────────────

class GoogleVisionBackend:
    name = "google_vision"

    def __init__(self, api_key: str, timeout: float = DEFAULT_TIMEOUT,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport

    async def annotate(self, image_bytes: bytes) -> VisionAnnotations:
        body = {
            "requests": [{
                "image": {"content": base64.b64encode(image_bytes).decode("ascii")},
                "features": FEATURES,
            }]
        }
        t0 = time.monotonic()
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(
                    GOOGLE_VISION_URL,
                    json=body,
                    headers={"X-Goog-Api-Key": self._api_key},
                )
        except httpx.HTTPError as e:
            raise UpstreamDegraded(f"Vision request failed: {type(e).__name__}", stage="annotate")

        ms = int((time.monotonic() - t0) * 1000)
        if response.status_code >= 400:
            try:
                detail = response.json().get("error", {}).get("message")
            except (ValueError, AttributeError):
                detail = None
            logger.warning("[VisionBackend] HTTP %d in %dms", response.status_code, ms)
            raise UpstreamDegraded(
                f"Vision API error: {detail or response.reason_phrase}", stage="annotate"
            )

        try:
            data = response.json()
        except ValueError:
            raise UpstreamDegraded("Malformed vision payload: not JSON", stage="annotate")

        annotations = parse_annotate_response(data)
        logger.info(
            "[VisionBackend] %dms text=%d chars labels=%d logos=%d objects=%d",
            ms, len(annotations.full_text), len(annotations.labels),
            len(annotations.logos), len(annotations.objects),
        )
        return annotations


class MockVisionBackend:
    """Deterministic stand-in used when no API key is configured."""
    name = "mock"

    async def annotate(self, image_bytes: bytes = b"") -> VisionAnnotations:
        return mock_annotations()


def vision_timeout() -> float:
    try:
        return float(os.getenv("VISION_TIMEOUT_SECONDS", DEFAULT_TIMEOUT))
    except ValueError:
        logger.warning("[VisionBackend] Invalid VISION_TIMEOUT_SECONDS, using %ss", DEFAULT_TIMEOUT)
        return DEFAULT_TIMEOUT


def get_vision_backend():
    api_key = google_api_key()
    if not api_key:
        logger.warning("[VisionBackend] GOOGLE_CLOUD_API_KEY not configured, using mock data")
        return MockVisionBackend()
    return GoogleVisionBackend(api_key, timeout=vision_timeout())


async def annotate_with_fallback(backend, image_bytes: bytes) -> Tuple[VisionAnnotations, str]:
    """Annotate with the configured backend; fall back to mock data on failure."""
    name = getattr(backend, "name", type(backend).__name__)
    try:
        return await backend.annotate(image_bytes), name
    except UpstreamDegraded as e:
        logger.warning("[VisionBackend] %s failed, falling back to mock data: %s",
                       name, e.message)
    except Exception as e:
        logger.exception("[VisionBackend] %s raised unexpectedly, falling back to mock data: %s",
                         name, e)
    return mock_annotations(), MockVisionBackend.name
