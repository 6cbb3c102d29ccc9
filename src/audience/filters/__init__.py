from audience.filters.engine import FIELD_MATCHERS, matches, matching_ids, no_match
from audience.filters.phone import detect_phone, normalize_phone, validate_phone

__all__ = [
    "FIELD_MATCHERS",
    "detect_phone",
    "matches",
    "matching_ids",
    "no_match",
    "normalize_phone",
    "validate_phone",
]
