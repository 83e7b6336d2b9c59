# api/services/image_search.py
# ============================================================================
# Product image lookup via Brave Image Search
# ============================================================================
# Best-effort enrichment: every public helper here returns None / leaves the
# item untouched on failure. Only BraveImageSearch.search_images raises
# (UpstreamDegraded), and find_image absorbs it.
# ============================================================================

import asyncio
import logging
import os
from typing import Any, List, Optional
from urllib.parse import urlparse

import httpx

from api.errors import UpstreamDegraded
from services.vision_models import ExtractedItem, ImageSearchResult

logger = logging.getLogger(__name__)

BRAVE_IMAGE_SEARCH_URL = "https://api.search.brave.com/res/v1/images/search"
PLACEHOLDER_API_KEY = "your-brave-api-key"
DEFAULT_TIMEOUT = 10.0
DEFAULT_CONCURRENCY = 3
RESULT_COUNT = 5

# Manufacturer and retailer sites preferred for product images
TRUSTED_DOMAINS = (
    "rapala.com", "mepps.com", "savage-gear.com", "berkley-fishing.com",
    "amazon.com", "angelplatz.de", "anglermarkt.de", "fishingtackle24.de",
    "decathlon.de", "askari-sport.com",
)


def brave_api_key() -> Optional[str]:
    key = (os.getenv("BRAVE_SEARCH_API_KEY") or "").strip()
    if not key or key == PLACEHOLDER_API_KEY:
        return None
    return key


def _hostname(url: str) -> str:
    try:
        return (urlparse(url).hostname or "").lower()
    except ValueError:
        return ""


def _parse_results(data: Any) -> List[ImageSearchResult]:
    raw = data.get("results") if isinstance(data, dict) else None
    if not isinstance(raw, list):
        raise UpstreamDegraded("Malformed image search payload", stage="enrich")

    results = []
    for entry in raw:
        if not isinstance(entry, dict) or not isinstance(entry.get("url"), str) or not entry["url"]:
            continue
        thumbnail = entry.get("thumbnail")
        thumb_src = thumbnail.get("src") if isinstance(thumbnail, dict) else None
        results.append(ImageSearchResult(
            url=entry["url"],
            thumbnail_url=thumb_src if isinstance(thumb_src, str) and thumb_src else None,
            source_domain=_hostname(entry["url"]),
        ))
    return results


class BraveImageSearch:
    def __init__(self, api_key: str, timeout: float = DEFAULT_TIMEOUT,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport

    async def search_images(self, query: str, count: int = RESULT_COUNT,
                            safety: str = "moderate") -> List[ImageSearchResult]:
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.get(
                    BRAVE_IMAGE_SEARCH_URL,
                    params={"q": query, "count": str(count), "safesearch": safety},
                    headers={
                        "Accept": "application/json",
                        "X-Subscription-Token": self._api_key,
                    },
                )
        except httpx.HTTPError as e:
            raise UpstreamDegraded(f"Image search request failed: {type(e).__name__}", stage="enrich")

        if response.status_code >= 400:
            raise UpstreamDegraded(
                f"Image search failed: {response.status_code} {response.reason_phrase}",
                stage="enrich",
            )
        try:
            data = response.json()
        except ValueError:
            raise UpstreamDegraded("Malformed image search payload", stage="enrich")
        return _parse_results(data)


def search_timeout() -> float:
    try:
        return float(os.getenv("IMAGE_SEARCH_TIMEOUT_SECONDS", DEFAULT_TIMEOUT))
    except ValueError:
        logger.warning("[ImageSearch] Invalid IMAGE_SEARCH_TIMEOUT_SECONDS, using %ss", DEFAULT_TIMEOUT)
        return DEFAULT_TIMEOUT


def get_image_search() -> Optional[BraveImageSearch]:
    api_key = brave_api_key()
    if not api_key:
        return None
    return BraveImageSearch(api_key, timeout=search_timeout())


# ── Ranking ──────────────────────────────────────────────────────

def build_search_query(item: ExtractedItem) -> str:
    parts = [item.brand or "", item.name, item.model or "", "fishing lure product image"]
    return " ".join(" ".join(parts).split())


def pick_image(results: List[ImageSearchResult]) -> Optional[str]:
    """
    First trusted-domain result in upstream order, else the first result.

    Returns the thumbnail when there is one, otherwise the result URL.
    """
    for result in results:
        host = result.source_domain or _hostname(result.url)
        if any(domain in host for domain in TRUSTED_DOMAINS):
            logger.info("[ImageSearch] Found trusted image: %s", host)
            return result.thumbnail_url or result.url

    if not results:
        return None
    logger.info("[ImageSearch] Using first available image")
    return results[0].thumbnail_url or results[0].url


async def find_image(item: ExtractedItem, search) -> Optional[str]:
    """Resolve one product image. Never raises."""
    query = build_search_query(item)
    try:
        results = await search.search_images(query, count=RESULT_COUNT, safety="moderate")
    except UpstreamDegraded as e:
        logger.warning("[ImageSearch] Search failed for %r: %s", item.name, e.message)
        return None
    except Exception as e:
        logger.exception("[ImageSearch] Unexpected error for %r: %s", item.name, e)
        return None

    logger.info("[ImageSearch] %d results for %r", len(results), query)
    return pick_image(results)


async def enrich_items(items: List[ExtractedItem], search,
                       concurrency: int = DEFAULT_CONCURRENCY) -> List[ExtractedItem]:
    """
    Fill image_url on every item that has none.

    Lookups run concurrently (bounded by `concurrency`); a failed lookup
    leaves its item unchanged and does not affect the others.
    """
    if search is None:
        return items

    pending = [item for item in items if not item.image_url and item.name]
    if not pending:
        return items

    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def _resolve(item: ExtractedItem) -> None:
        async with semaphore:
            url = await find_image(item, search)
        if url and not item.image_url:
            item.image_url = url

    await asyncio.gather(*(_resolve(item) for item in pending))
    return items
