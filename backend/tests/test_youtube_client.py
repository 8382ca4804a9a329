from datetime import datetime, timezone

import pytest
import requests

from backend.app.services import youtube_client
from backend.app.services.youtube_client import (
    YouTubeAPIError,
    YouTubeAuthError,
    YouTubeClient,
    YouTubeQuotaExceededError,
    youtube_api_get,
)


class FakeResponse:
    def __init__(self, status_code, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else str(payload)

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


def error_payload(code, reason, message="error"):
    return {"error": {"code": code, "message": message, "errors": [{"reason": reason}]}}


def install_response(monkeypatch, response, calls=None):
    def fake_get(url, params=None, timeout=None):
        if calls is not None:
            calls.append({"url": url, "params": params, "timeout": timeout})
        if isinstance(response, Exception):
            raise response
        return response

    monkeypatch.setattr(youtube_client.requests, "get", fake_get)


def test_ok_response_returns_json(monkeypatch):
    install_response(monkeypatch, FakeResponse(200, {"items": [1]}))
    assert youtube_api_get("https://x", {}) == {"items": [1]}


def test_quota_error(monkeypatch):
    install_response(monkeypatch, FakeResponse(403, error_payload(403, "quotaExceeded")))
    with pytest.raises(YouTubeQuotaExceededError):
        youtube_api_get("https://x", {})


def test_invalid_key_error(monkeypatch):
    install_response(monkeypatch, FakeResponse(400, error_payload(400, "keyInvalid", "API key not valid")))
    with pytest.raises(YouTubeAuthError):
        youtube_api_get("https://x", {})


def test_server_error_is_generic(monkeypatch):
    install_response(monkeypatch, FakeResponse(500, None, text="oops"))
    with pytest.raises(YouTubeAPIError) as excinfo:
        youtube_api_get("https://x", {})
    assert not isinstance(excinfo.value, (YouTubeAuthError, YouTubeQuotaExceededError))
    assert "500" in str(excinfo.value)


def test_transport_error_is_wrapped(monkeypatch):
    install_response(monkeypatch, requests.ConnectionError("refused"))
    with pytest.raises(YouTubeAPIError):
        youtube_api_get("https://x", {})


def test_non_json_body(monkeypatch):
    install_response(monkeypatch, FakeResponse(200, None, text="<html>"))
    with pytest.raises(YouTubeAPIError):
        youtube_api_get("https://x", {})


def test_search_params(monkeypatch):
    calls = []
    install_response(monkeypatch, FakeResponse(200, {"items": []}), calls)
    client = YouTubeClient("KEY", timeout=5)
    client.search(
        "AI",
        region_code="KR",
        relevance_language="ko",
        published_after=datetime(2024, 1, 1, tzinfo=timezone.utc),
        duration="any",
        page_token="TOKEN",
    )

    params = calls[0]["params"]
    assert calls[0]["url"] == youtube_client.YOUTUBE_SEARCH_LIST
    assert calls[0]["timeout"] == 5
    assert params["key"] == "KEY"
    assert params["q"] == "AI"
    assert params["type"] == "video"
    assert params["maxResults"] == 50
    assert params["regionCode"] == "KR"
    assert params["relevanceLanguage"] == "ko"
    assert params["publishedAfter"] == "2024-01-01T00:00:00Z"
    assert params["pageToken"] == "TOKEN"
    assert "videoDuration" not in params


def test_unscoped_search_omits_region(monkeypatch):
    calls = []
    install_response(monkeypatch, FakeResponse(200, {"items": []}), calls)
    YouTubeClient("KEY").search("AI", duration="long")

    params = calls[0]["params"]
    assert "regionCode" not in params
    assert "relevanceLanguage" not in params
    assert "pageToken" not in params
    assert params["videoDuration"] == "long"


def test_detail_lookups_join_ids(monkeypatch):
    calls = []
    install_response(monkeypatch, FakeResponse(200, {"items": [{"id": "a"}]}), calls)
    client = YouTubeClient("KEY")

    assert client.videos(["a", "b"]) == [{"id": "a"}]
    assert client.channels(["c"]) == [{"id": "a"}]
    assert calls[0]["params"]["id"] == "a,b"
    assert calls[0]["params"]["part"] == "snippet,statistics,contentDetails"
    assert calls[1]["params"]["part"] == "snippet,statistics"


def test_detail_lookup_rejects_oversized_batch():
    with pytest.raises(ValueError):
        YouTubeClient("KEY").videos([str(i) for i in range(51)])


def test_client_requires_key():
    with pytest.raises(ValueError):
        YouTubeClient("")
