import logging
import os
import time
from collections import deque
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv
try:
    from backend.app.models import Region, SearchRequest
    from backend.app.services.multi_region_search import search_multi_region
    from backend.app.services.regions import REGION_LANG, lang_for_region
    from backend.app.services.youtube_client import (
        YouTubeAPIError,
        YouTubeAuthError,
        YouTubeClient,
        YouTubeQuotaExceededError,
    )
except ModuleNotFoundError:
    from app.models import Region, SearchRequest
    from app.services.multi_region_search import search_multi_region
    from app.services.regions import REGION_LANG, lang_for_region
    from app.services.youtube_client import (
        YouTubeAPIError,
        YouTubeAuthError,
        YouTubeClient,
        YouTubeQuotaExceededError,
    )


# ---------------------------
# Config
# ---------------------------

load_dotenv()

YOUTUBE_API_KEY = os.getenv("YOUTUBE_API_KEY")
YOUTUBE_HTTP_TIMEOUT_SECONDS = float(os.getenv("YOUTUBE_HTTP_TIMEOUT_SECONDS") or 15)
SEARCH_MAX_WORKERS = int(os.getenv("SEARCH_MAX_WORKERS") or 8)
SEARCH_TIMEOUT_SECONDS = float(os.getenv("SEARCH_TIMEOUT_SECONDS")) if os.getenv("SEARCH_TIMEOUT_SECONDS") else None

logging.basicConfig(
    level=(os.getenv("LOG_LEVEL") or "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

API_RATE_LIMIT_WINDOW_SECONDS = 60
API_RATE_LIMIT_MAX_REQUESTS = 30
API_RATE_LIMIT_BUCKETS: dict[str, deque[float]] = {}


# ---------------------------
# Helpers
# ---------------------------

def get_client_ip(request: Request) -> str:
    forwarded = (request.headers.get("x-forwarded-for") or "").strip()
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def enforce_api_rate_limit(request: Request, scope: str = "youtube") -> None:
    now_ts = time.time()
    key = f"{scope}:{get_client_ip(request)}"
    bucket = API_RATE_LIMIT_BUCKETS.get(key)
    if bucket is None:
        bucket = deque()
        API_RATE_LIMIT_BUCKETS[key] = bucket

    cutoff = now_ts - API_RATE_LIMIT_WINDOW_SECONDS
    while bucket and bucket[0] < cutoff:
        bucket.popleft()

    if len(bucket) >= API_RATE_LIMIT_MAX_REQUESTS:
        raise HTTPException(
            status_code=429,
            detail="Too many requests. Please wait a minute and try again.",
        )

    bucket.append(now_ts)


def get_youtube_client() -> YouTubeClient:
    if not YOUTUBE_API_KEY:
        raise HTTPException(status_code=500, detail="Missing YOUTUBE_API_KEY in backend/.env")
    return YouTubeClient(YOUTUBE_API_KEY, timeout=YOUTUBE_HTTP_TIMEOUT_SECONDS)


def parse_cors_origins() -> tuple[list[str], bool]:
    raw = (os.getenv("CORS_ALLOWED_ORIGINS") or "").strip()
    if not raw:
        return ["http://localhost:5173"], True
    if raw == "*":
        return ["*"], False
    origins = [origin.strip() for origin in raw.split(",") if origin.strip()]
    if not origins:
        return ["http://localhost:5173"], True
    return origins, True


# ---------------------------
# App setup
# ---------------------------

app = FastAPI()

cors_origins, cors_credentials = parse_cors_origins()

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=cors_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(YouTubeQuotaExceededError)
async def youtube_quota_exceeded_handler(_request: Request, _exc: YouTubeQuotaExceededError):
    return JSONResponse(
        status_code=429,
        content={
            "detail": "YouTube API quota is currently exhausted. Try again later.",
            "error_code": "youtube_quota_exhausted",
        },
    )


@app.exception_handler(YouTubeAuthError)
async def youtube_auth_error_handler(_request: Request, _exc: YouTubeAuthError):
    return JSONResponse(
        status_code=401,
        content={
            "detail": "YouTube rejected the configured API key.",
            "error_code": "youtube_auth_invalid",
        },
    )


@app.get("/health")
def health():
    return {"ok": True}


@app.post("/search")
def search(payload: SearchRequest, request: Request):
    """
    Keyword search fanned out over the selected regions (global when none selected).
    Results are deduplicated, hydrated with video/channel statistics and split into
    primary (matches the region's language) and secondary (probable false positives).
    """
    enforce_api_rate_limit(request, scope="search")

    result = search_multi_region(
        payload,
        get_youtube_client(),
        max_workers=SEARCH_MAX_WORKERS,
        timeout=SEARCH_TIMEOUT_SECONDS,
    )
    return result.model_dump(mode="json")


@app.get("/regions")
def regions(request: Request, hl: str = "en"):
    """Regions selectable for search, each with the language its results are filtered on."""
    enforce_api_rate_limit(request, scope="regions")
    try:
        items = get_youtube_client().regions(hl=hl)
    except (YouTubeAuthError, YouTubeQuotaExceededError):
        raise
    except YouTubeAPIError:
        raise HTTPException(status_code=502, detail="Could not fetch YouTube regions right now.")

    out = []
    for item in items:
        snip = item.get("snippet") or {}
        code = (snip.get("gl") or item.get("id") or "").upper()
        if not code:
            continue
        out.append(Region(id=code, name=snip.get("name") or code, target_language=lang_for_region(code)))
    out.sort(key=lambda region: (region.id not in REGION_LANG, region.name))
    logger.debug("Listed %d regions (hl=%s)", len(out), hl)
    return {"items": [region.model_dump() for region in out]}
