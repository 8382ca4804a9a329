import logging
from datetime import datetime, timezone
from typing import Any

import requests

logger = logging.getLogger(__name__)

YOUTUBE_API_BASE = "https://www.googleapis.com/youtube/v3"
YOUTUBE_SEARCH_LIST = f"{YOUTUBE_API_BASE}/search"
YOUTUBE_VIDEOS_LIST = f"{YOUTUBE_API_BASE}/videos"
YOUTUBE_CHANNELS_LIST = f"{YOUTUBE_API_BASE}/channels"
YOUTUBE_I18N_REGIONS_LIST = f"{YOUTUBE_API_BASE}/i18nRegions"

# Upstream ceiling for maxResults and for ids per videos.list / channels.list call.
MAX_PAGE_SIZE = 50

QUOTA_REASONS = {"quotaExceeded", "dailyLimitExceeded", "rateLimitExceeded", "userRateLimitExceeded"}
AUTH_REASONS = {"keyInvalid", "keyExpired", "forbidden", "accessNotConfigured", "ipRefererBlocked", "unauthorized"}


class YouTubeAPIError(Exception):
    pass


class YouTubeQuotaExceededError(YouTubeAPIError):
    pass


class YouTubeAuthError(YouTubeAPIError):
    pass


def _error_reason(response: requests.Response) -> tuple[str, str]:
    reason = ""
    message = response.text
    try:
        payload = response.json()
        error = payload.get("error") or {}
        errors = error.get("errors") or []
        if errors and isinstance(errors[0], dict):
            reason = str(errors[0].get("reason") or "")
        message = str(error.get("message") or message)
    except (ValueError, AttributeError):
        pass
    return reason, message


def youtube_api_get(url: str, params: dict[str, Any], timeout: float = 15) -> dict[str, Any]:
    try:
        response = requests.get(url, params=params, timeout=timeout)
    except requests.RequestException as exc:
        raise YouTubeAPIError(f"YouTube request failed: {exc}") from exc

    if response.status_code == 200:
        try:
            return response.json()
        except ValueError as exc:
            raise YouTubeAPIError("YouTube returned a non-JSON response") from exc

    reason, message = _error_reason(response)
    lowered = response.text.lower()
    if response.status_code in {403, 429} and (reason in QUOTA_REASONS or "quotaexceeded" in lowered):
        raise YouTubeQuotaExceededError("YouTube API quota exceeded")
    if response.status_code in {400, 401, 403} and reason in AUTH_REASONS:
        raise YouTubeAuthError(f"YouTube API rejected the key ({reason}): {message}")
    raise YouTubeAPIError(
        f"YouTube API returned {response.status_code}. reason={reason or 'unknown'} message={message}"
    )


def format_rfc3339(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


class YouTubeClient:
    """Thin read-only wrapper over the YouTube Data API v3 endpoints used by search."""

    def __init__(self, api_key: str, timeout: float = 15):
        if not api_key:
            raise ValueError("api_key is required")
        self.api_key = api_key
        self.timeout = timeout

    def _get(self, url: str, params: dict[str, Any]) -> dict[str, Any]:
        merged = {key: value for key, value in params.items() if value is not None}
        merged["key"] = self.api_key
        return youtube_api_get(url, merged, timeout=self.timeout)

    def search(
        self,
        query: str,
        region_code: str | None = None,
        relevance_language: str | None = None,
        published_after: datetime | None = None,
        duration: str | None = None,
        page_token: str | None = None,
        max_results: int = MAX_PAGE_SIZE,
    ) -> dict[str, Any]:
        params = {
            "part": "snippet",
            "type": "video",
            "q": query,
            "maxResults": max(1, min(max_results, MAX_PAGE_SIZE)),
            "regionCode": region_code or None,
            "relevanceLanguage": relevance_language or None,
            "publishedAfter": format_rfc3339(published_after) if published_after else None,
            "videoDuration": duration if duration and duration != "any" else None,
            "pageToken": page_token or None,
        }
        logger.debug("search.list region=%s page_token=%s", region_code or "-", page_token)
        return self._get(YOUTUBE_SEARCH_LIST, params)

    def videos(self, video_ids: list[str]) -> list[dict[str, Any]]:
        if len(video_ids) > MAX_PAGE_SIZE:
            raise ValueError(f"videos.list accepts at most {MAX_PAGE_SIZE} ids")
        payload = self._get(
            YOUTUBE_VIDEOS_LIST,
            {"part": "snippet,statistics,contentDetails", "id": ",".join(video_ids)},
        )
        return payload.get("items") or []

    def channels(self, channel_ids: list[str]) -> list[dict[str, Any]]:
        if len(channel_ids) > MAX_PAGE_SIZE:
            raise ValueError(f"channels.list accepts at most {MAX_PAGE_SIZE} ids")
        payload = self._get(
            YOUTUBE_CHANNELS_LIST,
            {"part": "snippet,statistics", "id": ",".join(channel_ids)},
        )
        return payload.get("items") or []

    def regions(self, hl: str = "en") -> list[dict[str, Any]]:
        payload = self._get(YOUTUBE_I18N_REGIONS_LIST, {"part": "snippet", "hl": hl})
        return payload.get("items") or []
