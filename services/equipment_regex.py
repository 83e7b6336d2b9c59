# services/equipment_regex.py
# ============================================================================
# Regex-based extraction of fishing equipment from OCR text.
#
# Two entry points:
#   extract_receipt_items(text, logos)       -> one item per priced tackle line
#   extract_lure_item(text, labels, logos)   -> exactly one item for a lure photo
#
# Confidence values are fixed per path (0.8 receipt, 0.9 lure photo); they
# are a coarse quality hint, not a calibrated probability.
# ============================================================================

import logging
import re
from typing import Iterable, List, Optional

from services.brand_lexicon import (
    CANDIDATE_TOKENS,
    LURE_COLORS,
    RECEIPT_COLORS,
    match_brand,
)
from services.vision_models import (
    DocumentType,
    ExtractedItem,
    VisionAnnotations,
    VisionResult,
)

logger = logging.getLogger(__name__)

RECEIPT_CONFIDENCE = 0.8
LURE_CONFIDENCE = 0.9
UNKNOWN_LURE_NAME = "unknown lure"

# ── Receipt line regexes ────────────────────────────────────────
# "<product name> <price>", price with comma or dot decimal: "Rapala Wobbler 12,99"
_PRODUCT_RE = re.compile(r'([A-Za-z\s\-]+\w+)\s+(\d+[.,]\d{2})')
# Leading quantity: "2 x Mepps Aglia 6,99"
_QTY_RE = re.compile(r'^\s*(\d+)\s*[xX×]\s+')
_RECEIPT_SIZE_RE = re.compile(r'(\d+(?:cm|mm|g|kg|lb|oz))', re.IGNORECASE)
_RECEIPT_COLOR_RE = re.compile('(' + '|'.join(RECEIPT_COLORS) + ')', re.IGNORECASE)

# ── Lure photo regexes ──────────────────────────────────────────
_LURE_SIZE_RE = re.compile(r'(\d+(?:cm|mm|g))', re.IGNORECASE)
_LURE_COLOR_RE = re.compile('(' + '|'.join(LURE_COLORS) + ')', re.IGNORECASE)
# Longer markers first so "Modell: X" does not stop at "Model"; the marker must end the word
_MODEL_RE = re.compile(r'\b(?:modell|model|type|typ)(?![a-z])[\s:]*([A-Za-z0-9\-]+)', re.IGNORECASE)

# Label families, checked in this order
_LABEL_SUFFIXES = (
    (("spinner", "spinnerbait"), " (Spinner)"),
    (("wobbler", "crankbait"), " (Wobbler)"),
)


# ── Helpers ─────────────────────────────────────────────────────

def parse_price(s: str) -> float:
    """Convert '12,99' or '12.99' to 12.99."""
    return float(s.replace(',', '.'))


def _is_candidate_line(line: str) -> bool:
    lower = line.lower()
    return any(token in lower for token in CANDIDATE_TOKENS)


def _first_group(pattern: re.Pattern, text: str) -> Optional[str]:
    m = pattern.search(text)
    return m.group(1) if m else None


def _brand_from(logos: Iterable[str], text: str) -> Optional[str]:
    for logo in logos or ():
        if logo and logo.strip():
            return logo.strip()
    return match_brand(text)


# ── Receipt path ────────────────────────────────────────────────

def _parse_receipt_line(line: str, logos: List[str]) -> Optional[ExtractedItem]:
    quantity = None
    body = line
    qty_match = _QTY_RE.match(line)
    if qty_match:
        quantity = int(qty_match.group(1))
        body = line[qty_match.end():]

    match = _PRODUCT_RE.search(body)
    if not match:
        return None

    product_name = match.group(1).strip()
    return ExtractedItem(
        name=product_name,
        brand=_brand_from(logos, product_name),
        size=_first_group(_RECEIPT_SIZE_RE, product_name),
        color=_first_group(_RECEIPT_COLOR_RE, product_name),
        price=parse_price(match.group(2)),
        quantity=quantity,
        confidence=RECEIPT_CONFIDENCE,
    )


def extract_receipt_items(text: str, logos: Optional[List[str]] = None) -> List[ExtractedItem]:
    """
    Best-effort extraction of tackle line items from receipt text.

    Only lines mentioning a fishing keyword or known brand AND ending in a
    price are kept. Source order is preserved and repeated lines yield
    repeated items (one per purchase).
    """
    logos = logos or []
    items = []
    for line in (text or "").split('\n'):
        if not line.strip() or not _is_candidate_line(line):
            continue
        item = _parse_receipt_line(line, logos)
        if item is None:
            continue
        items.append(item)
        logger.debug("[EquipmentRegex] receipt item: %s %.2f", item.name, item.price)

    logger.info("[EquipmentRegex] Found %d products in receipt", len(items))
    return items


# ── Single lure path ────────────────────────────────────────────

def extract_lure_item(
    text: str,
    labels: Iterable[str] = (),
    logos: Optional[List[str]] = None,
) -> List[ExtractedItem]:
    """Extract the one item shown on a lure photo. Always returns one item."""
    text = text or ""
    lines = [line.strip() for line in text.split('\n') if line.strip()]
    name = lines[0] if lines else UNKNOWN_LURE_NAME

    label_set = {str(label).lower() for label in labels or ()}
    for family, suffix in _LABEL_SUFFIXES:
        if any(label in label_set for label in family):
            name = f"{name}{suffix}"
            break

    item = ExtractedItem(
        name=name,
        brand=_brand_from(logos or [], text),
        model=_first_group(_MODEL_RE, text),
        size=_first_group(_LURE_SIZE_RE, text),
        color=_first_group(_LURE_COLOR_RE, text),
        confidence=LURE_CONFIDENCE,
    )
    logger.info("[EquipmentRegex] Extracted lure: %s (brand=%s)", item.name, item.brand)
    return [item]


# ── Router ──────────────────────────────────────────────────────

def extract_items(document_type: DocumentType, annotations: VisionAnnotations) -> VisionResult:
    """Run the extraction path that matches the document type."""
    if document_type == DocumentType.RECEIPT:
        items = extract_receipt_items(annotations.full_text, annotations.logos)
    else:
        items = extract_lure_item(annotations.full_text, annotations.labels, annotations.logos)

    return VisionResult(type=document_type, items=items, raw_text=annotations.full_text)
