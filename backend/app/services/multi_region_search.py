"""
Multi-region keyword search.

Pipeline, one stage after another, each stage joined before the next starts:

- fan out one ``search.list`` call per selected region (or one unscoped call)
- merge the per-region hits, first occurrence of a video wins
- hydrate videos and channels with batched ``videos.list`` / ``channels.list`` calls
- derive metrics, classify relevance and partition into primary / secondary

Failures of a single region or batch are recorded and logged; they only thin out the
result. Subtasks never touch shared state: each returns into its own slot and slots are
merged in submission order, so the output does not depend on completion timing.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from functools import partial
from typing import Any, Callable, Iterable, Protocol

from ..models import (
    ChannelDetail,
    Classification,
    EnrichedItem,
    PartialFailure,
    RawHit,
    SearchRequest,
    SearchResult,
    VideoDetail,
)
from .metrics import contribution_score, iso8601_duration_to_seconds, performance_ratio
from .regions import lang_for_region, region_tag
from .relevance import classify
from .youtube_client import MAX_PAGE_SIZE, YouTubeAPIError, YouTubeAuthError, YouTubeQuotaExceededError

logger = logging.getLogger(__name__)

BATCH_SIZE = MAX_PAGE_SIZE
DEFAULT_MAX_WORKERS = 8

# Errors a single region or batch may fail with without failing the search.
ISOLATED_ERRORS = (YouTubeAPIError, TimeoutError, ValueError)
KEY_WIDE_ERRORS = (YouTubeAuthError, YouTubeQuotaExceededError)


class SearchClient(Protocol):
    def search(
        self,
        query: str,
        region_code: str | None = None,
        relevance_language: str | None = None,
        published_after: Any = None,
        duration: str | None = None,
        page_token: str | None = None,
    ) -> dict[str, Any]: ...

    def videos(self, video_ids: list[str]) -> list[dict[str, Any]]: ...

    def channels(self, channel_ids: list[str]) -> list[dict[str, Any]]: ...


@dataclass
class RegionOutcome:
    region: str
    hits: list[RawHit]
    next_page_token: str | None = None
    error: Exception | None = None
    skipped: bool = False


@dataclass
class Enrichment:
    videos: dict[str, VideoDetail]
    channels: dict[str, ChannelDetail]
    failures: list[PartialFailure]


def chunked(lst, n):
    for i in range(0, len(lst), n):
        yield lst[i:i + n]


def run_all(
    tasks: list[Callable[[], Any]],
    max_workers: int = DEFAULT_MAX_WORKERS,
    timeout: float | None = None,
) -> list[Any]:
    """Run ``tasks`` concurrently and return one slot per task, in task order.

    A slot holds the task's return value or the exception it raised. Tasks still running
    when ``timeout`` elapses are abandoned: their slot holds a ``TimeoutError`` and
    whatever they produce later is never read.
    """
    if not tasks:
        return []

    executor = ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(tasks))))
    futures = [executor.submit(task) for task in tasks]
    try:
        done, _ = wait(futures, timeout=timeout)
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    slots: list[Any] = []
    for future in futures:
        if future not in done:
            future.cancel()
            slots.append(TimeoutError(f"abandoned after {timeout}s deadline"))
            continue
        exc = future.exception()
        slots.append(exc if exc is not None else future.result())
    return slots


# ---------------------------
# Region fan-out
# ---------------------------

def search_region(client: SearchClient, request: SearchRequest, region: str) -> RegionOutcome:
    tag = region_tag(region)
    payload = client.search(
        request.query,
        region_code=region or None,
        relevance_language=lang_for_region(region) if region else None,
        published_after=request.published_after,
        duration=request.duration,
        page_token=request.page_tokens.get(tag),
    )
    try:
        hits = [RawHit.from_api(item, tag) for item in payload.get("items") or []]
        next_page_token = payload.get("nextPageToken") or None
    except (AttributeError, TypeError) as exc:
        raise YouTubeAPIError(f"malformed search.list payload for region {tag}") from exc
    return RegionOutcome(region=tag, hits=hits, next_page_token=next_page_token)


def search_regions(
    request: SearchRequest,
    client: SearchClient,
    max_workers: int = DEFAULT_MAX_WORKERS,
    timeout: float | None = None,
) -> list[RegionOutcome]:
    regions = list(request.regions) or [""]
    outcomes: list[RegionOutcome | None] = []
    pending: list[tuple[int, str]] = []

    for region in regions:
        tag = region_tag(region)
        # A cursor key present with no value means the region has no more pages.
        if tag in request.page_tokens and not request.page_tokens[tag]:
            outcomes.append(RegionOutcome(region=tag, hits=[], skipped=True))
            continue
        pending.append((len(outcomes), region))
        outcomes.append(None)

    slots = run_all(
        [partial(search_region, client, request, region) for _, region in pending],
        max_workers=max_workers,
        timeout=timeout,
    )
    for (index, region), slot in zip(pending, slots):
        tag = region_tag(region)
        if isinstance(slot, ISOLATED_ERRORS):
            logger.warning("Search failed for region %s: %s", tag, slot)
            outcomes[index] = RegionOutcome(region=tag, hits=[], error=slot)
        elif isinstance(slot, BaseException):
            raise slot
        else:
            outcomes[index] = slot

    return [outcome for outcome in outcomes if outcome is not None]


def raise_if_total_failure(outcomes: list[RegionOutcome]) -> None:
    searched = [outcome for outcome in outcomes if not outcome.skipped]
    if not searched or any(outcome.error is None for outcome in searched):
        return
    for outcome in searched:
        if isinstance(outcome.error, KEY_WIDE_ERRORS):
            raise outcome.error


def next_page_tokens(request: SearchRequest, outcomes: list[RegionOutcome]) -> dict[str, str | None]:
    tokens: dict[str, str | None] = {}
    for outcome in outcomes:
        if outcome.skipped:
            tokens[outcome.region] = None
        elif outcome.error is not None:
            previous = request.page_tokens.get(outcome.region)
            if previous:
                tokens[outcome.region] = previous
        else:
            tokens[outcome.region] = outcome.next_page_token
    return tokens


# ---------------------------
# Dedup
# ---------------------------

def dedupe_hits(hits: Iterable[RawHit]) -> list[RawHit]:
    unique: list[RawHit] = []
    seen_ids: set[str] = set()
    for hit in hits:
        if not hit.video_id or hit.video_id in seen_ids:
            continue
        seen_ids.add(hit.video_id)
        unique.append(hit)
    return unique


def unique_channel_ids(hits: Iterable[RawHit]) -> list[str]:
    return list(dict.fromkeys(hit.channel_id for hit in hits if hit.channel_id))


# ---------------------------
# Batched enrichment
# ---------------------------

def fetch_video_details(client: SearchClient, video_ids: list[str]) -> list[VideoDetail]:
    return [VideoDetail.from_api(item) for item in client.videos(video_ids)]


def fetch_channel_details(client: SearchClient, channel_ids: list[str]) -> list[ChannelDetail]:
    return [ChannelDetail.from_api(item) for item in client.channels(channel_ids)]


def enrich_hits(
    hits: list[RawHit],
    client: SearchClient,
    max_workers: int = DEFAULT_MAX_WORKERS,
    timeout: float | None = None,
) -> Enrichment:
    video_ids = [hit.video_id for hit in hits if hit.video_id]
    channel_ids = unique_channel_ids(hits)

    jobs: list[tuple[str, list[str]]] = [("videos", batch) for batch in chunked(video_ids, BATCH_SIZE)]
    jobs += [("channels", batch) for batch in chunked(channel_ids, BATCH_SIZE)]
    fetchers = {"videos": fetch_video_details, "channels": fetch_channel_details}

    slots = run_all(
        [partial(fetchers[kind], client, batch) for kind, batch in jobs],
        max_workers=max_workers,
        timeout=timeout,
    )

    enrichment = Enrichment(videos={}, channels={}, failures=[])
    for (kind, batch), slot in zip(jobs, slots):
        if isinstance(slot, ISOLATED_ERRORS):
            logger.warning("%s batch of %d failed: %s", kind, len(batch), slot)
            enrichment.failures.append(PartialFailure(stage=kind, key=",".join(batch), message=str(slot)))
            continue
        if isinstance(slot, BaseException):
            raise slot
        for detail in slot:
            if isinstance(detail, VideoDetail) and detail.video_id:
                enrichment.videos[detail.video_id] = detail
            elif isinstance(detail, ChannelDetail) and detail.channel_id:
                enrichment.channels[detail.channel_id] = detail
    return enrichment


# ---------------------------
# Assembly
# ---------------------------

def build_enriched_item(
    hit: RawHit,
    video: VideoDetail | None,
    channel: ChannelDetail | None,
) -> EnrichedItem | None:
    if not hit.video_id:
        return None
    video = video or VideoDetail(video_id=hit.video_id)
    channel = channel or ChannelDetail(channel_id=hit.channel_id or "")
    return EnrichedItem(
        video_id=hit.video_id,
        region=hit.region,
        target_language=lang_for_region(hit.region),
        title=video.title or hit.title or "Unknown Title",
        description=video.description or hit.description,
        channel_id=hit.channel_id,
        channel_title=video.channel_title or hit.channel_title or "Unknown Channel",
        channel_country=channel.country,
        published_at=hit.published_at,
        thumbnail_url=hit.thumbnail_url,
        view_count=video.view_count,
        like_count=video.like_count,
        duration=video.duration,
        duration_seconds=iso8601_duration_to_seconds(video.duration),
        default_audio_language=video.default_audio_language,
        default_language=video.default_language,
        subscriber_count=channel.subscriber_count,
        channel_view_count=channel.view_count,
        performance_ratio=performance_ratio(video.view_count, channel.subscriber_count),
        contribution_score=contribution_score(video.view_count, channel.view_count),
    )


def assemble_results(
    hits: list[RawHit],
    enrichment: Enrichment,
    page_tokens: dict[str, str | None],
    failures: list[PartialFailure],
) -> SearchResult:
    primary: list[EnrichedItem] = []
    secondary: list[EnrichedItem] = []
    for hit in hits:
        item = build_enriched_item(
            hit,
            enrichment.videos.get(hit.video_id or ""),
            enrichment.channels.get(hit.channel_id or ""),
        )
        if item is None:
            continue
        if classify(item, item.region, item.target_language) is Classification.PRIMARY:
            primary.append(item)
        else:
            secondary.append(item)

    return SearchResult(
        items=tuple(primary),
        secondary_items=tuple(secondary),
        next_page_tokens=page_tokens,
        failures=tuple(failures),
    )


def search_multi_region(
    request: SearchRequest,
    client: SearchClient,
    max_workers: int = DEFAULT_MAX_WORKERS,
    timeout: float | None = None,
) -> SearchResult:
    deadline = time.monotonic() + timeout if timeout is not None else None
    outcomes = search_regions(request, client, max_workers=max_workers, timeout=timeout)
    raise_if_total_failure(outcomes)

    failures = [
        PartialFailure(stage="search", key=outcome.region, message=str(outcome.error))
        for outcome in outcomes
        if outcome.error is not None
    ]
    tokens = next_page_tokens(request, outcomes)
    hits = dedupe_hits(hit for outcome in outcomes for hit in outcome.hits)
    if not hits:
        return SearchResult(next_page_tokens=tokens, failures=tuple(failures))

    remaining = max(deadline - time.monotonic(), 0.0) if deadline is not None else None
    enrichment = enrich_hits(hits, client, max_workers=max_workers, timeout=remaining)
    result = assemble_results(hits, enrichment, tokens, failures + enrichment.failures)
    logger.info(
        "Search %r across %s: %d primary, %d secondary, %d partial failures",
        request.query,
        ",".join(outcome.region for outcome in outcomes),
        len(result.items),
        len(result.secondary_items),
        len(result.failures),
    )
    return result
