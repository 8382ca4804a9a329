import asyncio

import pytest
from fastapi import HTTPException
from starlette.requests import Request

import backend.main as main_module
from backend.app.models import SearchRequest
from backend.app.services.youtube_client import YouTubeAuthError, YouTubeQuotaExceededError


def make_request(ip: str = "127.0.0.1") -> Request:
    return Request(
        {
            "type": "http",
            "method": "GET",
            "path": "/",
            "headers": [],
            "client": (ip, 8000),
            "query_string": b"",
            "server": ("test", 80),
            "scheme": "http",
            "http_version": "1.1",
        }
    )


def make_search_item(video_id, title, channel_id="C1"):
    return {
        "id": {"kind": "youtube#video", "videoId": video_id},
        "snippet": {
            "title": title,
            "channelId": channel_id,
            "channelTitle": "Smoke Channel",
            "publishedAt": "2025-01-01T00:00:00Z",
            "thumbnails": {"medium": {"url": f"https://img/{video_id}.jpg"}},
        },
    }


class StubClient:
    def __init__(self, pages=None, region_items=None):
        self.pages = pages or {}
        self.region_items = region_items or []

    def search(self, query, region_code=None, **_kwargs):
        return self.pages.get(region_code or "GL", {"items": []})

    def videos(self, video_ids):
        return [
            {"id": v, "statistics": {"viewCount": "300"}, "contentDetails": {"duration": "PT4M"}}
            for v in video_ids
        ]

    def channels(self, channel_ids):
        return [
            {"id": c, "statistics": {"subscriberCount": "100", "viewCount": "3000"}, "snippet": {"country": "JP"}}
            for c in channel_ids
        ]

    def regions(self, hl="en"):
        return self.region_items


@pytest.fixture(autouse=True)
def reset_state():
    main_module.API_RATE_LIMIT_BUCKETS.clear()
    yield
    main_module.API_RATE_LIMIT_BUCKETS.clear()


def test_health():
    assert main_module.health() == {"ok": True}


def test_search_endpoint_partitions_results(monkeypatch):
    stub = StubClient(
        pages={
            "JP": {
                "items": [
                    make_search_item("jp1", "ラーメン レビュー"),
                    make_search_item("jp2", "Ramen review"),
                ],
                "nextPageToken": "JP_2",
            },
        }
    )
    monkeypatch.setattr(main_module, "get_youtube_client", lambda: stub)

    payload = main_module.search(SearchRequest(query="ramen", regions=["JP"]), make_request())

    assert [item["video_id"] for item in payload["items"]] == ["jp1", "jp2"]
    assert payload["secondary_items"] == []
    assert payload["next_page_tokens"] == {"JP": "JP_2"}
    first = payload["items"][0]
    assert first["performance_ratio"] == pytest.approx(3.0)
    assert first["contribution_score"] == pytest.approx(10.0)
    assert first["duration_seconds"] == 240


def test_search_endpoint_strict_korean(monkeypatch):
    stub = StubClient(pages={"KR": {"items": [make_search_item("kr1", "Ramen review")]}})
    monkeypatch.setattr(main_module, "get_youtube_client", lambda: stub)

    payload = main_module.search(SearchRequest(query="ramen", regions=["KR"]), make_request())

    assert payload["items"] == []
    assert [item["video_id"] for item in payload["secondary_items"]] == ["kr1"]


def test_search_requires_api_key(monkeypatch):
    monkeypatch.setattr(main_module, "YOUTUBE_API_KEY", None)
    with pytest.raises(HTTPException) as excinfo:
        main_module.search(SearchRequest(query="ramen"), make_request())
    assert excinfo.value.status_code == 500


def test_search_rate_limit(monkeypatch):
    monkeypatch.setattr(main_module, "get_youtube_client", lambda: StubClient())
    monkeypatch.setattr(main_module, "API_RATE_LIMIT_MAX_REQUESTS", 2)
    request = make_request("10.0.0.1")

    main_module.search(SearchRequest(query="a"), request)
    main_module.search(SearchRequest(query="a"), request)
    with pytest.raises(HTTPException) as excinfo:
        main_module.search(SearchRequest(query="a"), request)
    assert excinfo.value.status_code == 429

    main_module.search(SearchRequest(query="a"), make_request("10.0.0.2"))


def test_forwarded_ip_is_used_for_rate_limit():
    request = Request(
        {
            "type": "http",
            "method": "GET",
            "path": "/",
            "headers": [(b"x-forwarded-for", b"203.0.113.9, 10.0.0.1")],
            "client": ("10.0.0.1", 8000),
            "query_string": b"",
            "server": ("test", 80),
            "scheme": "http",
            "http_version": "1.1",
        }
    )
    assert main_module.get_client_ip(request) == "203.0.113.9"


def test_regions_endpoint(monkeypatch):
    stub = StubClient(
        region_items=[
            {"id": "ZW", "snippet": {"gl": "ZW", "name": "Zimbabwe"}},
            {"id": "US", "snippet": {"gl": "US", "name": "United States"}},
            {"id": "KR", "snippet": {"gl": "KR", "name": "South Korea"}},
            {"snippet": {}},
        ]
    )
    monkeypatch.setattr(main_module, "get_youtube_client", lambda: stub)

    payload = main_module.regions(make_request(), hl="en")

    assert [region["id"] for region in payload["items"]] == ["KR", "US", "ZW"]
    assert payload["items"][0]["target_language"] == "ko"
    assert payload["items"][2]["target_language"] == "en"


def test_exception_handlers():
    quota = asyncio.run(
        main_module.youtube_quota_exceeded_handler(make_request(), YouTubeQuotaExceededError("quota"))
    )
    auth = asyncio.run(main_module.youtube_auth_error_handler(make_request(), YouTubeAuthError("bad key")))

    assert quota.status_code == 429
    assert auth.status_code == 401


def test_parse_cors_origins(monkeypatch):
    monkeypatch.setenv("CORS_ALLOWED_ORIGINS", "")
    assert main_module.parse_cors_origins() == (["http://localhost:5173"], True)
    monkeypatch.setenv("CORS_ALLOWED_ORIGINS", "*")
    assert main_module.parse_cors_origins() == (["*"], False)
    monkeypatch.setenv("CORS_ALLOWED_ORIGINS", "https://a.example, https://b.example")
    assert main_module.parse_cors_origins() == (["https://a.example", "https://b.example"], True)
