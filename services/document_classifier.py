# services/document_classifier.py
# ================================
# Receipt vs. single-item photo classifier
# ================================

from typing import Iterable

from services.vision_models import DocumentType

# German/English receipt markers (substring match, any case)
RECEIPT_KEYWORDS = ("rechnung", "quittung", "receipt", "invoice", "order")
RECEIPT_LABELS = ("receipt", "document")


def classify_document(full_text: str, labels: Iterable[str] = ()) -> DocumentType:
    """
    Decide whether the annotated image is a receipt or a single lure photo.

    Pure OR of two signals: a receipt keyword anywhere in the OCR text,
    or a receipt/document label from the vision backend.
    """
    lower = (full_text or "").lower()
    if any(kw in lower for kw in RECEIPT_KEYWORDS):
        return DocumentType.RECEIPT

    label_set = {str(label).lower() for label in labels or ()}
    if any(label in label_set for label in RECEIPT_LABELS):
        return DocumentType.RECEIPT

    return DocumentType.LURE
