from datetime import UTC, datetime, timedelta

import pytest

from audience.domain.models import Contact, FilterRule
from audience.filters import matches

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def _rule(field, operator, value=None) -> FilterRule:
    return FilterRule(field=field, operator=operator, value=value)


@pytest.mark.parametrize(
    "field",
    ["createdAt", "lastInteractionTime", "conversationOpenedTime", "timeSinceLastIncomingMessage"],
)
def test_absent_timestamp_only_matches_absence_operators(field: str) -> None:
    contact = Contact(contact_id="c-1")
    assert matches(contact, _rule(field, "doesNotExist"), NOW)
    assert matches(contact, _rule(field, "isEmpty"), NOW)
    assert not matches(contact, _rule(field, "exists"), NOW)
    assert not matches(contact, _rule(field, "isGreaterThanTime", 5), NOW)
    assert not matches(contact, _rule(field, "isLessThanTime", 5), NOW)
    assert not matches(contact, _rule(field, "isTimestampBefore", "2030-01-01"), NOW)


def test_present_timestamp_presence_operators() -> None:
    contact = Contact(contact_id="c-1", created_at=NOW - timedelta(days=1))
    assert matches(contact, _rule("createdAt", "exists"), NOW)
    assert not matches(contact, _rule("createdAt", "doesNotExist"), NOW)
    assert not matches(contact, _rule("createdAt", "isEmpty"), NOW)


def test_relative_days_use_strict_comparison_at_the_boundary() -> None:
    contact = Contact(contact_id="c-1", last_interaction_time=NOW - timedelta(days=5))
    assert not matches(contact, _rule("lastInteractionTime", "isGreaterThanTime", 5), NOW)
    assert not matches(contact, _rule("lastInteractionTime", "isLessThanTime", 5), NOW)
    assert matches(contact, _rule("lastInteractionTime", "isGreaterThanTime", 4), NOW)
    assert matches(contact, _rule("lastInteractionTime", "isLessThanTime", 6), NOW)


def test_relative_days_floor_partial_days() -> None:
    contact = Contact(contact_id="c-1", last_interaction_time=NOW - timedelta(days=5, hours=23))
    assert not matches(contact, _rule("lastInteractionTime", "isGreaterThanTime", 5), NOW)
    later = Contact(contact_id="c-2", last_interaction_time=NOW - timedelta(days=6))
    assert matches(later, _rule("lastInteractionTime", "isGreaterThanTime", 5), NOW)


def test_relative_days_accept_fractional_thresholds() -> None:
    contact = Contact(contact_id="c-1", created_at=NOW - timedelta(days=2))
    assert matches(contact, _rule("createdAt", "isLessThanTime", 2.5), NOW)


@pytest.mark.parametrize("value", ["5", True, None, [5]])
def test_relative_days_need_a_number(value) -> None:
    contact = Contact(contact_id="c-1", created_at=NOW - timedelta(days=30))
    assert not matches(contact, _rule("createdAt", "isGreaterThanTime", value), NOW)


def test_conversation_opened_time_supports_relative_days() -> None:
    contact = Contact(contact_id="c-1", conversation_opened_time=NOW - timedelta(days=10))
    assert matches(contact, _rule("conversationOpenedTime", "isGreaterThanTime", 7), NOW)


def test_time_since_last_incoming_message_reads_last_interaction_time() -> None:
    contact = Contact(contact_id="c-1", last_interaction_time=NOW - timedelta(days=3))
    assert matches(contact, _rule("timeSinceLastIncomingMessage", "isLessThanTime", 4), NOW)
    assert matches(contact, _rule("timeSinceLastIncomingMessage", "exists"), NOW)


def test_between_is_inclusive_on_both_ends() -> None:
    start = datetime(2026, 1, 1, tzinfo=UTC)
    end = datetime(2026, 1, 31, tzinfo=UTC)
    window = {"from": "2026-01-01T00:00:00+00:00", "to": "2026-01-31T00:00:00Z"}
    assert matches(Contact(contact_id="c-1", created_at=start), _rule("createdAt", "isTimestampBetween", window))
    assert matches(Contact(contact_id="c-2", created_at=end), _rule("createdAt", "isTimestampBetween", window))
    outside = Contact(contact_id="c-3", created_at=end + timedelta(seconds=1))
    assert not matches(outside, _rule("createdAt", "isTimestampBetween", window))


def test_between_accepts_datetime_bounds() -> None:
    stamp = datetime(2026, 2, 10, tzinfo=UTC)
    window = {"from": datetime(2026, 2, 1, tzinfo=UTC), "to": datetime(2026, 2, 28, tzinfo=UTC)}
    assert matches(Contact(contact_id="c-1", created_at=stamp), _rule("createdAt", "isTimestampBetween", window))


@pytest.mark.parametrize(
    "window",
    [
        {"from": "2026-01-01"},
        {"from": "not a date", "to": "2026-12-31"},
        ["2026-01-01", "2026-12-31"],
        "2026-01-01",
    ],
)
def test_between_rejects_malformed_windows(window) -> None:
    contact = Contact(contact_id="c-1", created_at=datetime(2026, 6, 1, tzinfo=UTC))
    assert not matches(contact, _rule("createdAt", "isTimestampBetween", window))


def test_after_and_before_are_strict() -> None:
    contact = Contact(contact_id="c-1", created_at=datetime(2026, 1, 1, tzinfo=UTC))
    assert not matches(contact, _rule("createdAt", "isTimestampAfter", "2026-01-01T00:00:00Z"))
    assert not matches(contact, _rule("createdAt", "isTimestampBefore", "2026-01-01T00:00:00Z"))
    assert matches(contact, _rule("createdAt", "isTimestampAfter", "2025-12-31"))
    assert matches(contact, _rule("createdAt", "isTimestampBefore", "2026-01-01T00:00:01+00:00"))


def test_unparseable_date_does_not_match() -> None:
    contact = Contact(contact_id="c-1", created_at=datetime(2026, 1, 1, tzinfo=UTC))
    assert not matches(contact, _rule("createdAt", "isTimestampAfter", "yesterday"))
    assert not matches(contact, _rule("createdAt", "isTimestampBefore", 20260101))


def test_naive_timestamps_are_read_as_utc() -> None:
    contact = Contact(contact_id="c-1", created_at=datetime(2026, 2, 20, 12, 0))
    assert matches(contact, _rule("createdAt", "isGreaterThanTime", 8), datetime(2026, 3, 1, 12, 0))
    assert matches(contact, _rule("createdAt", "isTimestampAfter", "2026-02-20T11:59:59+00:00"))
