import re
from typing import Any

ISO8601_DURATION_RE = re.compile(r"P(?:(\d+)D)?(?:T(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?)?")


def parse_count(value: Any) -> int:
    """YouTube returns counts as strings; anything unparsable or negative counts as 0."""
    try:
        count = int(str(value).strip())
    except (TypeError, ValueError):
        return 0
    return max(count, 0)


def iso8601_duration_to_seconds(duration: str) -> int:
    match = ISO8601_DURATION_RE.fullmatch(duration or "")
    if not match:
        return 0
    days = int(match.group(1) or 0)
    hours = int(match.group(2) or 0)
    minutes = int(match.group(3) or 0)
    seconds = int(match.group(4) or 0)
    return days * 86400 + hours * 3600 + minutes * 60 + seconds


def performance_ratio(view_count: Any, subscriber_count: Any) -> float:
    """Views generated per channel subscriber; >= 1 means the video outran its channel's base."""
    subscribers = parse_count(subscriber_count)
    if subscribers <= 0:
        return 0.0
    return parse_count(view_count) / subscribers


def contribution_score(view_count: Any, channel_view_count: Any) -> float:
    """Percentage of the channel's lifetime views that came from this one video."""
    channel_views = parse_count(channel_view_count)
    if channel_views <= 0:
        return 0.0
    return parse_count(view_count) / channel_views * 100
