from __future__ import annotations

import sys
from pathlib import Path
from unittest.mock import patch

from starlette.requests import Request

ROOT_DIR = Path(__file__).resolve().parents[2]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

import backend.main as main_module
from backend.app.models import SearchRequest
from backend.app.services import youtube_client


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


def make_search_item(video_id: str, title: str, channel_id: str) -> dict:
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


def assert_true(condition: bool, message: str) -> None:
    if not condition:
        raise AssertionError(message)


def reset_state() -> None:
    main_module.API_RATE_LIMIT_BUCKETS.clear()


def fake_youtube_api_get(url: str, params: dict, timeout: float = 15) -> dict:
    _ = timeout
    if url == youtube_client.YOUTUBE_SEARCH_LIST:
        if params.get("regionCode") == "KR":
            return {"items": [make_search_item("v1", "인공지능 뉴스", "c1")], "nextPageToken": "KR_NEXT"}
        if params.get("regionCode") == "US":
            return {"items": [make_search_item("v1", "인공지능 뉴스", "c1"), make_search_item("v2", "AI news", "c2")]}
        return {"items": []}
    if url == youtube_client.YOUTUBE_VIDEOS_LIST:
        ids = params["id"].split(",")
        return {"items": [{"id": v, "statistics": {"viewCount": "1000"}} for v in ids]}
    if url == youtube_client.YOUTUBE_CHANNELS_LIST:
        raise youtube_client.YouTubeAPIError("channels.list unavailable")
    if url == youtube_client.YOUTUBE_I18N_REGIONS_LIST:
        return {"items": [{"id": "KR", "snippet": {"gl": "KR", "name": "South Korea"}}]}
    raise AssertionError(f"unexpected url {url}")


def test_health() -> None:
    payload = main_module.health()
    assert_true(payload.get("ok") is True, "/health should return ok=true")


def test_search_partial_failure() -> None:
    reset_state()
    with (
        patch.object(main_module, "YOUTUBE_API_KEY", "smoke-key"),
        patch.object(youtube_client, "youtube_api_get", side_effect=fake_youtube_api_get),
    ):
        payload = main_module.search(SearchRequest(query="AI", regions=["KR", "US"]), make_request())

    ids = [item["video_id"] for item in payload["items"]]
    assert_true(ids == ["v1", "v2"], "/search should keep first-seen order across regions")
    assert_true(payload["items"][0]["region"] == "KR", "/search should tag duplicates with the first region")
    assert_true(
        all(item["subscriber_count"] == "0" for item in payload["items"]),
        "/search should zero channel stats when channels.list fails",
    )
    assert_true(len(payload["failures"]) == 1, "/search should report the failed channel batch")
    assert_true(payload["next_page_tokens"].get("KR") == "KR_NEXT", "/search should return per-region cursors")


def test_regions() -> None:
    reset_state()
    with (
        patch.object(main_module, "YOUTUBE_API_KEY", "smoke-key"),
        patch.object(youtube_client, "youtube_api_get", side_effect=fake_youtube_api_get),
    ):
        payload = main_module.regions(make_request())
    assert_true(payload["items"][0]["target_language"] == "ko", "/regions should attach target language")


def run() -> int:
    checks = [
        ("health", test_health),
        ("search partial failure", test_search_partial_failure),
        ("regions", test_regions),
    ]
    failures = []

    for check_name, check_fn in checks:
        try:
            check_fn()
            print(f"[PASS] {check_name}")
        except Exception as exc:  # pragma: no cover - smoke script output path
            failures.append((check_name, str(exc)))
            print(f"[FAIL] {check_name}: {exc}")

    if failures:
        print(f"\nSmoke checks failed: {len(failures)}")
        for check_name, message in failures:
            print(f"- {check_name}: {message}")
        return 1

    print("\nAll smoke checks passed.")
    return 0


if __name__ == "__main__":
    sys.exit(run())
