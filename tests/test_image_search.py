import asyncio

import httpx
import pytest

from api.errors import UpstreamDegraded
from api.services.image_search import (
    BraveImageSearch,
    build_search_query,
    enrich_items,
    find_image,
    get_image_search,
    pick_image,
)
from conftest import FakeImageSearch
from services.vision_models import ExtractedItem, ImageSearchResult


def _result(url, thumb=None):
    return ImageSearchResult(url=url, thumbnail_url=thumb, source_domain=httpx.URL(url).host)


def _item(name, **kw):
    return ExtractedItem(name=name, confidence=0.9, **kw)


# ====== RANKING ======

def test_no_results_returns_none():
    assert pick_image([]) is None


def test_first_trusted_result_wins_even_if_not_first():
    results = [
        _result("https://random-blog.net/post/1", "https://imgs.search.brave.com/a.jpg"),
        _result("https://www.angelplatz.de/rapala-f11", "https://imgs.search.brave.com/b.jpg"),
        _result("https://www.rapala.com/f11", "https://imgs.search.brave.com/c.jpg"),
    ]
    assert pick_image(results) == "https://imgs.search.brave.com/b.jpg"


def test_trusted_result_without_thumbnail_returns_url():
    results = [_result("https://other.org/x"), _result("https://mepps.com/aglia")]
    assert pick_image(results) == "https://mepps.com/aglia"


def test_untrusted_results_fall_back_to_first():
    results = [
        _result("https://forum.example/1", "https://thumbs.example/1.jpg"),
        _result("https://forum.example/2", "https://thumbs.example/2.jpg"),
    ]
    assert pick_image(results) == "https://thumbs.example/1.jpg"


def test_search_query_joins_brand_name_model():
    item = _item("Original Floater", brand="Rapala", model="F11")
    assert build_search_query(item) == "Rapala Original Floater F11 fishing lure product image"
    assert build_search_query(_item("Spinner")) == "Spinner fishing lure product image"


# ====== BEST-EFFORT RESOLUTION ======

def test_find_image_swallows_upstream_errors():
    search = FakeImageSearch(responses={"Aglia": UpstreamDegraded("boom")})
    assert asyncio.run(find_image(_item("Aglia"), search)) is None


def test_enrich_isolates_failures_per_item():
    search = FakeImageSearch(responses={
        "Aglia": RuntimeError("connection reset"),
        "Floater": [_result("https://rapala.com/f11", "https://thumbs.example/f11.jpg")],
    })
    items = [_item("Aglia"), _item("Floater"), _item("Comet", image_url="https://existing/img.jpg")]

    asyncio.run(enrich_items(items, search, concurrency=2))

    assert items[0].image_url is None
    assert items[1].image_url == "https://thumbs.example/f11.jpg"
    assert items[2].image_url == "https://existing/img.jpg"
    # items that already had an image are not searched again
    assert not any("Comet" in q for q in search.queries)


def test_enrich_without_search_client_is_noop():
    items = [_item("Aglia")]
    assert asyncio.run(enrich_items(items, None)) is items
    assert items[0].image_url is None


# ====== BRAVE CLIENT ======

def test_brave_client_parses_results_and_sends_headers():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["token"] = request.headers.get("X-Subscription-Token")
        seen["params"] = dict(request.url.params)
        return httpx.Response(200, json={"results": [
            {"url": "https://www.rapala.com/f11", "thumbnail": {"src": "https://t/f11.jpg"}},
            {"title": "no url"},
        ]})

    client = BraveImageSearch("brave-key", transport=httpx.MockTransport(handler))
    results = asyncio.run(client.search_images("Rapala F11"))

    assert seen["token"] == "brave-key"
    assert seen["params"] == {"q": "Rapala F11", "count": "5", "safesearch": "moderate"}
    assert len(results) == 1
    assert results[0].thumbnail_url == "https://t/f11.jpg"
    assert results[0].source_domain == "www.rapala.com"


def test_brave_client_non_success_status_degrades():
    transport = httpx.MockTransport(lambda request: httpx.Response(429, json={}))
    client = BraveImageSearch("brave-key", transport=transport)
    assert asyncio.run(find_image(_item("Aglia"), client)) is None


def test_brave_client_timeout_degrades():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    client = BraveImageSearch("brave-key", transport=httpx.MockTransport(handler))
    assert asyncio.run(find_image(_item("Aglia"), client)) is None


def test_enrich_bounds_in_flight_lookups():
    class CountingSearch:
        def __init__(self):
            self.in_flight = 0
            self.peak = 0
            self.calls = 0

        async def search_images(self, query, count=5, safety="moderate"):
            self.calls += 1
            self.in_flight += 1
            self.peak = max(self.peak, self.in_flight)
            await asyncio.sleep(0.01)
            self.in_flight -= 1
            return [_result("https://rapala.com/" + str(self.calls))]

    search = CountingSearch()
    items = [_item(f"Lure {i}") for i in range(10)]

    asyncio.run(enrich_items(items, search, concurrency=3))

    assert search.calls == 10
    assert search.peak == 3
    assert all(item.image_url for item in items)


# ====== CONFIG ======

def test_no_brave_key_disables_search(monkeypatch):
    monkeypatch.setenv("BRAVE_SEARCH_API_KEY", "your-brave-api-key")
    assert get_image_search() is None


@pytest.mark.parametrize("raw, expected", [("4", 4.0), ("10 seconds", 10.0)])
def test_search_timeout_from_env(monkeypatch, raw, expected):
    monkeypatch.setenv("BRAVE_SEARCH_API_KEY", "brave-key")
    monkeypatch.setenv("IMAGE_SEARCH_TIMEOUT_SECONDS", raw)
    search = get_image_search()
    assert isinstance(search, BraveImageSearch)
    assert search._timeout == expected
