# services/vision_models.py
# ================================
# Vision pipeline data models
# ================================
# Everything here lives for one request only. Nothing is persisted
# except the original upload (see api/services/storage_service.py).
#
# NOTE: `confidence` on ExtractedItem is a hand-picked constant per
# extraction path (0.8 receipt line, 0.9 single lure photo), not a
# computed or calibrated score.

from enum import Enum
from typing import FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

UNKNOWN_ITEM_NAME = "unknown item"


class DocumentType(str, Enum):
    LURE = "lure"
    RECEIPT = "receipt"


# ====== ANNOTATIONS ======

class VisionAnnotations(BaseModel):
    """Raw signals produced once per image by the vision backend."""
    model_config = ConfigDict(frozen=True)

    full_text: str = ""
    labels: FrozenSet[str] = frozenset()
    logos: List[str] = []
    objects: List[str] = []

    @field_validator("labels", mode="before")
    @classmethod
    def _lower_labels(cls, v):
        return frozenset(str(label).lower() for label in (v or ()))


# ====== EXTRACTION ======

class ExtractedItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    brand: Optional[str] = None
    model: Optional[str] = None
    color: Optional[str] = None
    size: Optional[str] = None
    price: Optional[float] = None
    quantity: Optional[int] = None
    image_url: Optional[str] = Field(None, alias="imageUrl")
    confidence: float = Field(ge=0.0, le=1.0)

    @field_validator("name", mode="before")
    @classmethod
    def _name_or_placeholder(cls, v):
        name = str(v).strip() if v is not None else ""
        return name or UNKNOWN_ITEM_NAME


class VisionResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: DocumentType
    items: List[ExtractedItem] = []
    raw_text: Optional[str] = Field(None, alias="rawText")


class ImageSearchResult(BaseModel):
    url: str
    thumbnail_url: Optional[str] = None
    source_domain: str = ""


# ====== REQUEST / RESPONSE ======

class UploadedImage(BaseModel):
    owner_id: str
    raw_bytes: bytes
    mime_type: str = "application/octet-stream"
    original_filename: str = "upload"


class VisionUploadResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    image_url: str = Field(alias="imageUrl")
    vision: VisionResult

    def to_payload(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
