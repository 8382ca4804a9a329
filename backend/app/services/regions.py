from types import MappingProxyType

from ..models import GLOBAL_REGION

DEFAULT_LANGUAGE = "en"

# Region -> language the region is presumed to consume content in (bias, not guarantee).
REGION_LANG = MappingProxyType({
    # East Asia
    "KR": "ko",
    "JP": "ja",
    "TW": "zh-Hant",
    "HK": "zh-Hant",
    "CN": "zh-Hans",
    # English speaking
    "US": "en",
    "GB": "en",
    "CA": "en",
    "AU": "en",
    "NZ": "en",
    "IE": "en",
    "SG": "en",
    "PH": "en",
    # Europe
    "FR": "fr",
    "DE": "de",
    "IT": "it",
    "ES": "es",
    "RU": "ru",
    "PT": "pt",
    "NL": "nl",
    # Americas
    "MX": "es",
    "AR": "es",
    "BR": "pt",
    # SE Asia
    "VN": "vi",
    "TH": "th",
    "ID": "id",
    "MY": "ms",
    # Others
    "IN": "hi",
    "SA": "ar",
    "EG": "ar",
    "AE": "ar",
    "TR": "tr",
})


def lang_for_region(region: str) -> str:
    return REGION_LANG.get((region or "").upper(), DEFAULT_LANGUAGE)


def region_tag(region: str) -> str:
    """Tag used for hits and cursors; the unscoped search is tagged ``GL``."""
    return (region or "").upper() or GLOBAL_REGION
