from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from starlette.testclient import TestClient

from api.main import app
from api.services.image_search import get_image_search
from api.services.vision_backend import get_vision_backend
from api.supabase_client import get_supabase
from services.vision_models import VisionAnnotations

PUBLIC_BASE = "https://demo.supabase.co/storage/v1/object/public/equipment-images/"
AUTH_HEADERS = {"Authorization": "Bearer valid-token"}


class StaticVisionBackend:
    name = "google_vision"

    def __init__(self, annotations: VisionAnnotations):
        self.annotations = annotations
        self.calls = 0

    async def annotate(self, image_bytes: bytes) -> VisionAnnotations:
        self.calls += 1
        return self.annotations


class RaisingVisionBackend:
    name = "google_vision"

    def __init__(self, exc: Exception):
        self.exc = exc

    async def annotate(self, image_bytes: bytes) -> VisionAnnotations:
        raise self.exc


class FakeImageSearch:
    """Maps a query substring to results or to an exception."""

    def __init__(self, responses=None, default=None):
        self.responses = responses or {}
        self.default = default if default is not None else []
        self.queries = []

    async def search_images(self, query, count=5, safety="moderate"):
        self.queries.append(query)
        for needle, outcome in self.responses.items():
            if needle in query:
                if isinstance(outcome, Exception):
                    raise outcome
                return outcome
        return self.default


def make_supabase(user_id="user-123", email="angler@example.com", upload_error=None, buckets=None):
    supabase = MagicMock()
    if user_id is None:
        supabase.auth.get_user.return_value = SimpleNamespace(user=None)
    else:
        supabase.auth.get_user.return_value = SimpleNamespace(
            user=SimpleNamespace(id=user_id, email=email)
        )

    bucket = supabase.storage.from_.return_value
    if upload_error is not None:
        bucket.upload.side_effect = upload_error
    else:
        bucket.upload.side_effect = lambda path, file, file_options: SimpleNamespace(path=path)
    bucket.get_public_url.side_effect = lambda path: PUBLIC_BASE + path

    supabase.storage.list_buckets.return_value = [
        SimpleNamespace(name=name) for name in (buckets or ["equipment-images"])
    ]
    return supabase


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for var in ("GOOGLE_CLOUD_API_KEY", "BRAVE_SEARCH_API_KEY", "EQUIPMENT_IMAGES_BUCKET",
                "MAX_UPLOAD_MB", "IMAGE_SEARCH_CONCURRENCY",
                "VISION_TIMEOUT_SECONDS", "IMAGE_SEARCH_TIMEOUT_SECONDS"):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def supabase():
    return make_supabase()


@pytest.fixture
def make_client():
    """Build a TestClient with the given collaborators wired in."""

    def _build(supabase, backend=None, search=None):
        app.dependency_overrides[get_supabase] = lambda: supabase
        if backend is not None:
            app.dependency_overrides[get_vision_backend] = lambda: backend
        app.dependency_overrides[get_image_search] = lambda: search
        return TestClient(app)

    yield _build
    app.dependency_overrides.clear()


def upload_files(content=b"\xff\xd8\xff fake jpeg", filename="lure photo.jpg", content_type="image/jpeg"):
    return {"file": (filename, content, content_type)}
