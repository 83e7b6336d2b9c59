# api/errors.py
# ================================
# Vision endpoint error taxonomy
# ================================
# Fatal errors carry the HTTP status the exception handler in
# api/main.py renders as {"error": message}. UpstreamDegraded is
# raised by outbound adapters and absorbed inside the pipeline.

from typing import Optional


class VisionError(Exception):
    status_code = 500
    default_message = "Failed to process image"

    def __init__(self, message: Optional[str] = None, stage: Optional[str] = None):
        self.message = message or self.default_message
        self.stage = stage
        super().__init__(self.message)


class Unauthorized(VisionError):
    status_code = 401
    default_message = "Unauthorized - Please log in again"


class BadRequest(VisionError):
    status_code = 400
    default_message = "No file provided"


class PayloadTooLarge(VisionError):
    status_code = 413
    default_message = "File too large"


class StorageFailure(VisionError):
    status_code = 500
    default_message = "Upload failed"


class StorageMisconfigured(StorageFailure):
    default_message = "Storage bucket not found. Please create it in Supabase."


class ExtractionEmpty(VisionError):
    status_code = 422
    default_message = "No equipment could be recognised in the photo"


class UpstreamDegraded(VisionError):
    """Vision backend or image search failed. Never shown to the caller."""
    status_code = 502
    default_message = "Upstream service unavailable"
