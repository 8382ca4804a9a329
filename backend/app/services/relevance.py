"""
Primary/secondary relevance classification.

Keyword search happily returns videos that merely mention the query terms. Each stage
below looks at one signal and either decides or passes (returns None); stages run in a
fixed order and the first decisive one wins.
"""

import re
from typing import Callable

from ..models import Classification, EnrichedItem

Stage = Callable[[EnrichedItem, str, str], Classification | None]

GLOBAL_LANGUAGE = "en"
STRICT_SCRIPT_LANGUAGES = frozenset({"ko", "ja"})

HANGUL_RE = re.compile(r"[\u1100-\u11FF\u3130-\u318F\uAC00-\uD7AF]")
KANA_RE = re.compile(r"[\u3040-\u309F\u30A0-\u30FF]")
CJK_RE = re.compile(r"[\u4E00-\u9FFF]")
ARABIC_RE = re.compile(r"[\u0600-\u06FF]")
CYRILLIC_RE = re.compile(r"[\u0400-\u04FF]")

SCRIPT_PATTERNS = {
    "ko": HANGUL_RE,
    "ja": KANA_RE,
    "ar": ARABIC_RE,
    "ru": CYRILLIC_RE,
}


def script_pattern_for(lang: str) -> re.Pattern[str] | None:
    if lang.startswith("zh"):
        return CJK_RE
    return SCRIPT_PATTERNS.get(lang)


def declared_languages(item: EnrichedItem) -> list[str]:
    return [
        value.lower()
        for value in (item.default_audio_language, item.default_language)
        if value
    ]


def global_language_stage(item: EnrichedItem, region: str, lang: str) -> Classification | None:
    if lang == GLOBAL_LANGUAGE:
        return Classification.PRIMARY
    return None


def declared_language_stage(item: EnrichedItem, region: str, lang: str) -> Classification | None:
    declared = declared_languages(item)
    if not declared:
        return None
    target = lang.lower()
    if any(value.startswith(target) for value in declared):
        return Classification.PRIMARY
    # Only a mismatched audio language is decisive. A stray metadata language
    # falls through to the channel and script checks.
    if item.default_audio_language:
        return Classification.SECONDARY
    return None


def channel_origin_stage(item: EnrichedItem, region: str, lang: str) -> Classification | None:
    country = (item.channel_country or "").upper()
    if country and country == region.upper():
        return Classification.PRIMARY
    return None


def script_stage(item: EnrichedItem, region: str, lang: str) -> Classification | None:
    text = f"{item.title} {item.description} {item.channel_title}"
    pattern = script_pattern_for(lang)
    if pattern is not None and pattern.search(text):
        return Classification.PRIMARY
    if lang in STRICT_SCRIPT_LANGUAGES:
        return Classification.SECONDARY
    return None


STAGES: tuple[Stage, ...] = (
    global_language_stage,
    declared_language_stage,
    channel_origin_stage,
    script_stage,
)


def classify(item: EnrichedItem, region: str, lang: str) -> Classification:
    for stage in STAGES:
        verdict = stage(item, region, lang)
        if verdict is not None:
            return verdict
    # Inconclusive: favor inclusion.
    return Classification.PRIMARY
