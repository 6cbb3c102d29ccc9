from audience.domain.models import Contact, FilterRule
from audience.filters import matches
from audience.filters.phone import detect_phone, normalize_phone, validate_phone

SAUDI = Contact(contact_id="c-1", phone="+966501234567")


def _rule(operator, value=None) -> FilterRule:
    return FilterRule(field="phoneNumber", operator=operator, value=value)


def test_contains_falls_back_to_raw_substring() -> None:
    assert matches(SAUDI, _rule("contains", "501234567"))
    assert matches(SAUDI, _rule("contains", "1234"))
    assert not matches(SAUDI, _rule("contains", "999"))


def test_equals_compares_normalized_numbers() -> None:
    assert matches(SAUDI, _rule("equals", "+966 50 123 4567"))
    assert matches(SAUDI, _rule("equals", "966501234567"))
    assert matches(SAUDI, _rule("equals", "0501234567"))
    assert not matches(SAUDI, _rule("equals", "+966501234568"))
    assert matches(SAUDI, _rule("notEquals", "+966501234568"))


def test_starts_with_checks_normalized_and_raw_forms() -> None:
    assert matches(SAUDI, _rule("startsWith", "+9665"))
    assert matches(SAUDI, _rule("startsWith", "+966501234567"))
    assert not matches(SAUDI, _rule("startsWith", "+20"))


def test_ends_with_uses_the_national_number() -> None:
    assert matches(SAUDI, _rule("endsWith", "0501234567"))
    assert matches(SAUDI, _rule("endsWith", "4567"))
    assert not matches(SAUDI, _rule("endsWith", "4568"))


def test_presence_operators() -> None:
    assert matches(SAUDI, _rule("exists"))
    assert matches(Contact(contact_id="c-2"), _rule("doesNotExist"))
    assert matches(Contact(contact_id="c-3", phone=""), _rule("doesNotExist"))
    assert not matches(Contact(contact_id="c-4"), _rule("contains", "5"))


def test_phone_value_must_be_a_string() -> None:
    assert not matches(SAUDI, _rule("equals", 966501234567))
    assert not matches(SAUDI, _rule("contains", ["5012"]))


def test_detect_international_number() -> None:
    detection = detect_phone("+966 50 123 4567")
    assert detection.is_valid
    assert detection.country_iso == "SA"
    assert detection.country_code == "+966"
    assert detection.formatted_number == "+966501234567"
    assert detection.national_number == "501234567"


def test_detect_operator_prefix() -> None:
    detection = detect_phone("01012345678")
    assert detection.is_valid
    assert detection.country_iso == "EG"
    assert detection.formatted_number == "+201012345678"

    saudi = detect_phone("0501234567")
    assert saudi.country_iso == "SA"
    assert saudi.formatted_number == "+966501234567"


def test_detect_rejects_short_input() -> None:
    assert not detect_phone("12").is_valid
    assert not detect_phone("").is_valid
    assert detect_phone("a-1-b").national_number == "1"


def test_validate_phone() -> None:
    assert validate_phone("").error == "Phone number is required"
    assert not validate_phone("501234567").is_valid

    result = validate_phone("0501234567", default_country="SA")
    assert result.is_valid
    assert result.formatted == "+966501234567"
    assert result.country_iso == "SA"


def test_normalize_phone_falls_back_to_input() -> None:
    assert normalize_phone("0501234567") == "+966501234567"
    assert normalize_phone("not a phone") == "not a phone"


def test_normalize_phone_uses_validation_when_detection_fails() -> None:
    # Detection folds the extension digits into the number; parsing strips them.
    text = "Tel: +966 50 123 4567 ext. 12"
    assert not detect_phone(text).is_valid
    assert validate_phone(text).formatted == "+966501234567"
    assert normalize_phone(text) == "+966501234567"
    assert matches(SAUDI, _rule("equals", text))
