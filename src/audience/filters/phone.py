"""Phone number detection and validation.

Numbers in this domain are often typed in national form with a trunk or
operator prefix (``0501234567``, ``01012345678``), so detection tries the
international reading first and then a small set of operator-prefix
heuristics before giving up.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from functools import lru_cache

import phonenumbers
from phonenumbers import NumberParseException, PhoneNumberFormat

logger = logging.getLogger(__name__)

UNKNOWN_REGION = "ZZ"
NON_DIGITS_RE = re.compile(r"\D")

# (prefix pattern on the digits, region) tried in order.
OPERATOR_PREFIXES: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"^(?:010|011|012|015)"), "EG"),
    (re.compile(r"^05"), "SA"),
    (re.compile(r"^07"), "GB"),
    (re.compile(r"^1[2-9]"), "US"),
]


@dataclass(frozen=True)
class PhoneDetection:
    country_code: str | None
    country_iso: str | None
    formatted_number: str | None
    is_valid: bool
    national_number: str


@dataclass(frozen=True)
class PhoneValidation:
    is_valid: bool
    formatted: str | None = None
    country_iso: str | None = None
    error: str | None = None


def detect_phone(text: str | None) -> PhoneDetection:
    if not text or len(text) < 3:
        return _undetected(text or "")

    digits = NON_DIGITS_RE.sub("", text)
    if len(digits) < 3:
        return _undetected(digits)

    parsed = _parse("+" + digits)
    if parsed is not None and phonenumbers.is_valid_number(parsed):
        return _detected(parsed, is_valid=True)

    if len(digits) >= 4:
        for pattern, region in OPERATOR_PREFIXES:
            if not pattern.match(digits):
                continue
            candidate = _parse(digits, region)
            if (
                candidate is not None
                and phonenumbers.is_valid_number(candidate)
                and phonenumbers.region_code_for_number(candidate) == region
            ):
                return _detected(candidate, is_valid=True)

    lenient = _parse(text if text.startswith("+") else "+" + digits)
    if lenient is not None and _region(lenient):
        return _detected(lenient, is_valid=phonenumbers.is_valid_number(lenient))

    return _undetected(digits)


def validate_phone(text: str, default_country: str | None = None) -> PhoneValidation:
    if not text or not text.strip():
        return PhoneValidation(is_valid=False, error="Phone number is required")

    parsed = _parse(text, default_country)
    if parsed is None:
        return PhoneValidation(is_valid=False, error="Invalid phone number format")
    if not phonenumbers.is_valid_number(parsed):
        return PhoneValidation(is_valid=False, error="Please enter a valid phone number")
    return PhoneValidation(
        is_valid=True,
        formatted=phonenumbers.format_number(parsed, PhoneNumberFormat.E164),
        country_iso=_region(parsed),
    )


@lru_cache(maxsize=4096)
def normalize_phone(text: str) -> str:
    """Return the E.164 form of ``text``, or ``text`` itself when unparseable."""
    detection = detect_phone(text)
    if detection.is_valid and detection.formatted_number:
        return detection.formatted_number
    validation = validate_phone(text)
    if validation.is_valid and validation.formatted:
        return validation.formatted
    return text


@lru_cache(maxsize=4096)
def national_number(text: str) -> str:
    """National significant number of ``text`` (country code stripped)."""
    detection = detect_phone(text)
    if detection.is_valid and detection.national_number:
        return detection.national_number
    validation = validate_phone(text)
    if validation.is_valid and validation.formatted:
        parsed = _parse(validation.formatted)
        if parsed is not None:
            return phonenumbers.national_significant_number(parsed)
    return text


def _parse(text: str, region: str | None = None) -> phonenumbers.PhoneNumber | None:
    try:
        return phonenumbers.parse(text, region)
    except NumberParseException as exc:
        logger.debug("Phone parse failed for %r (region=%s): %s", text, region, exc)
        return None


def _region(number: phonenumbers.PhoneNumber) -> str | None:
    region = phonenumbers.region_code_for_number(number)
    if not region or region == UNKNOWN_REGION:
        return None
    return region


def _detected(number: phonenumbers.PhoneNumber, is_valid: bool) -> PhoneDetection:
    return PhoneDetection(
        country_code=f"+{number.country_code}",
        country_iso=_region(number),
        formatted_number=phonenumbers.format_number(number, PhoneNumberFormat.E164),
        is_valid=is_valid,
        national_number=phonenumbers.national_significant_number(number),
    )


def _undetected(national: str) -> PhoneDetection:
    return PhoneDetection(
        country_code=None,
        country_iso=None,
        formatted_number=None,
        is_valid=False,
        national_number=national,
    )
