from datetime import UTC, datetime, timedelta

from audience.domain.models import Contact, FilterRule
from audience.filters import matching_ids

NOW = datetime(2026, 3, 1, tzinfo=UTC)

CONTACTS = [
    Contact(contact_id="c-1", tags=("VIP",), country_iso="SA", channel="whatsapp"),
    Contact(contact_id="c-2", tags=("VIP",), country_iso="EG", channel="sms"),
    Contact(contact_id="c-3", tags=(), country_iso="SA", channel="WhatsApp"),
    Contact(
        contact_id="c-4",
        tags=("Active",),
        country_iso=None,
        created_at=NOW - timedelta(days=40),
    ),
]

RULES = [
    FilterRule("tags", "hasAnyOf", ["VIP"]),
    FilterRule("countryISO", "equals", "sa"),
    FilterRule("channel", "equals", "whatsapp"),
    FilterRule("createdAt", "isGreaterThanTime", 30),
    FilterRule("createdAt", "doesNotExist"),
    FilterRule("tags", "hasNoneOf", ["Active"]),
    FilterRule("nickname", "equals", "x"),
]


def test_empty_rule_set_matches_nothing() -> None:
    assert matching_ids(CONTACTS, []) == []


def test_multi_rule_segment() -> None:
    rules = [
        FilterRule("tags", "hasAnyOf", ["VIP"]),
        FilterRule("countryISO", "equals", "sa"),
    ]
    assert set(matching_ids(CONTACTS[:3], rules)) == {"c-1"}


def test_rules_combine_with_and() -> None:
    for first in RULES:
        for second in RULES:
            both = set(matching_ids(CONTACTS, [first, second], now=NOW))
            left = set(matching_ids(CONTACTS, [first], now=NOW))
            right = set(matching_ids(CONTACTS, [second], now=NOW))
            assert both == left & right


def test_unknown_field_excludes_every_contact() -> None:
    assert matching_ids(CONTACTS, [FilterRule("nickname", "equals", "x")]) == []
    assert matching_ids(CONTACTS, [FilterRule("nickname", "doesNotExist")]) == []


def test_single_rule_results() -> None:
    assert set(matching_ids(CONTACTS, [FilterRule("channel", "equals", "WHATSAPP")])) == {
        "c-1",
        "c-3",
    }
    assert matching_ids(CONTACTS, [FilterRule("createdAt", "isGreaterThanTime", 30)], now=NOW) == [
        "c-4"
    ]


def test_naive_clock_is_read_as_utc() -> None:
    naive_now = datetime(2026, 3, 1)
    rules = [FilterRule("createdAt", "isLessThanTime", 41)]
    assert matching_ids(CONTACTS, rules, now=naive_now) == ["c-4"]


def test_accepts_any_iterable_of_contacts() -> None:
    rules = [FilterRule("tags", "isEmpty")]
    assert matching_ids(iter(CONTACTS), rules) == ["c-3"]
