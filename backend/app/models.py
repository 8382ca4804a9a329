from __future__ import annotations

import re
from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

GLOBAL_REGION = "GL"
REGION_CODE_RE = re.compile(r"^[A-Z]{2}$")


class Classification(str, Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"


class FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True)


class SearchRequest(FrozenModel):
    query: str = Field(min_length=1)
    published_after: datetime | None = None
    duration: Literal["short", "medium", "long", "any"] = "any"
    regions: tuple[str, ...] = ()
    page_tokens: dict[str, str | None] = Field(default_factory=dict)

    @field_validator("query")
    @classmethod
    def _strip_query(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("query must not be blank")
        return value

    @field_validator("regions", mode="before")
    @classmethod
    def _normalize_regions(cls, value: Any) -> tuple[str, ...]:
        """Upper-case, drop blanks, collapse duplicates and sort so order never matters."""
        if value is None:
            return ()
        if isinstance(value, str):
            value = value.split(",")
        elif not isinstance(value, (list, tuple, set, frozenset)):
            raise ValueError("regions must be a list of region codes or a comma-separated string")
        codes = set()
        for raw in value:
            code = str(raw or "").strip().upper()
            if not code:
                continue
            if not REGION_CODE_RE.match(code):
                raise ValueError(f"invalid region code: {raw!r}")
            codes.add(code)
        return tuple(sorted(codes))

    @field_validator("page_tokens", mode="before")
    @classmethod
    def _normalize_page_tokens(cls, value: Any) -> dict[str, str | None]:
        if not value:
            return {}
        if not isinstance(value, dict):
            raise ValueError("page_tokens must be an object keyed by region")
        return {str(key).strip().upper(): (token or None) for key, token in value.items()}


class RawHit(FrozenModel):
    video_id: str | None
    region: str
    title: str = ""
    description: str = ""
    channel_id: str | None = None
    channel_title: str = ""
    published_at: str | None = None
    thumbnail_url: str | None = None

    @classmethod
    def from_api(cls, item: dict[str, Any], region: str) -> RawHit:
        """Build a hit from one ``search.list`` item.

        Search items carry ``id`` as ``{"kind": ..., "videoId": ...}``; a bare string id is
        accepted as well.
        """
        raw_id = item.get("id")
        if isinstance(raw_id, dict):
            video_id = raw_id.get("videoId")
        else:
            video_id = raw_id
        snip = item.get("snippet") or {}
        thumbs = snip.get("thumbnails") or {}
        thumb = thumbs.get("medium") or thumbs.get("high") or thumbs.get("default") or {}
        return cls(
            video_id=str(video_id) if video_id else None,
            region=region,
            title=snip.get("title") or "",
            description=snip.get("description") or "",
            channel_id=snip.get("channelId") or None,
            channel_title=snip.get("channelTitle") or "",
            published_at=snip.get("publishedAt"),
            thumbnail_url=thumb.get("url"),
        )


class VideoDetail(FrozenModel):
    video_id: str
    view_count: str = "0"
    like_count: str = "0"
    duration: str = ""
    title: str = ""
    description: str = ""
    channel_title: str = ""
    default_audio_language: str | None = None
    default_language: str | None = None

    @classmethod
    def from_api(cls, item: dict[str, Any]) -> VideoDetail:
        stats = item.get("statistics") or {}
        details = item.get("contentDetails") or {}
        snip = item.get("snippet") or {}
        return cls(
            video_id=str(item.get("id") or ""),
            view_count=str(stats.get("viewCount") or "0"),
            like_count=str(stats.get("likeCount") or "0"),
            duration=details.get("duration") or "",
            title=snip.get("title") or "",
            description=snip.get("description") or "",
            channel_title=snip.get("channelTitle") or "",
            default_audio_language=snip.get("defaultAudioLanguage") or None,
            default_language=snip.get("defaultLanguage") or None,
        )


class ChannelDetail(FrozenModel):
    channel_id: str
    subscriber_count: str = "0"
    view_count: str = "0"
    country: str | None = None

    @classmethod
    def from_api(cls, item: dict[str, Any]) -> ChannelDetail:
        stats = item.get("statistics") or {}
        snip = item.get("snippet") or {}
        return cls(
            channel_id=str(item.get("id") or ""),
            subscriber_count=str(stats.get("subscriberCount") or "0"),
            view_count=str(stats.get("viewCount") or "0"),
            country=snip.get("country") or None,
        )


class EnrichedItem(FrozenModel):
    video_id: str
    region: str
    target_language: str
    title: str
    description: str = ""
    channel_id: str | None = None
    channel_title: str
    channel_country: str | None = None
    published_at: str | None = None
    thumbnail_url: str | None = None
    view_count: str = "0"
    like_count: str = "0"
    duration: str = ""
    duration_seconds: int = 0
    default_audio_language: str | None = None
    default_language: str | None = None
    subscriber_count: str = "0"
    channel_view_count: str = "0"
    performance_ratio: float = 0.0
    contribution_score: float = 0.0


class PartialFailure(FrozenModel):
    stage: Literal["search", "videos", "channels"]
    key: str
    message: str


class SearchResult(FrozenModel):
    items: tuple[EnrichedItem, ...] = ()
    secondary_items: tuple[EnrichedItem, ...] = ()
    next_page_tokens: dict[str, str | None] = Field(default_factory=dict)
    failures: tuple[PartialFailure, ...] = ()


class Region(FrozenModel):
    id: str
    name: str
    target_language: str
