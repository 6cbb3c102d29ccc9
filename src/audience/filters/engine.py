"""Contact filter evaluation.

A rule is a ``(field, operator, value)`` triple and a rule set is the AND of
its rules. Each field name maps to one matcher in ``FIELD_MATCHERS``; a field
missing from the table, an operator the matcher does not handle and a value of
the wrong shape all evaluate to ``False``. Nothing here raises for bad rules.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from datetime import UTC, date, datetime, timedelta
from enum import Enum
from typing import Any

from audience.domain.models import Contact, FilterRule
from audience.filters.phone import national_number, normalize_phone

logger = logging.getLogger(__name__)

FieldMatcher = Callable[[Contact, str, Any, datetime], bool]

ONE_DAY = timedelta(days=1)


def matches(contact: Contact, rule: FilterRule, now: datetime | None = None) -> bool:
    operator = _name(rule.operator)
    if not isinstance(operator, str):
        return False
    return matcher_for(rule.field)(contact, operator, rule.value, _clock(now))


def matching_ids(
    contacts: Iterable[Contact],
    rules: Sequence[FilterRule],
    now: datetime | None = None,
) -> list[str]:
    """Ids of the contacts satisfying every rule, in input order.

    An empty rule set matches no contact.
    """
    if not rules:
        return []
    for rule in rules:
        if matcher_for(rule.field) is no_match:
            logger.debug("Rule on unknown field %r matches no contact", rule.field)
    now = _clock(now)
    return [
        contact.contact_id
        for contact in contacts
        if all(matches(contact, rule, now) for rule in rules)
    ]


def no_match(contact: Contact, operator: str, value: Any, now: datetime) -> bool:
    return False


def matcher_for(field: Any) -> FieldMatcher:
    field = _name(field)
    if not isinstance(field, str):
        return no_match
    return FIELD_MATCHERS.get(field, no_match)


# --- value shapes -----------------------------------------------------------


def _clock(now: datetime | None) -> datetime:
    if now is None:
        return datetime.now(UTC)
    if now.tzinfo is None:
        return now.replace(tzinfo=UTC)
    return now


def _name(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return value


def _is_list(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def _strings(value: Any) -> list[str]:
    return [item for item in value if isinstance(item, str)]


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _instant(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


# --- matcher families -------------------------------------------------------


def _choice_matcher(
    attribute: Callable[[Contact], str | None],
    normalize: Callable[[str], str] = lambda text: text,
    extra: frozenset[str] = frozenset(),
) -> FieldMatcher:
    """Single-valued categorical field: equals, notEquals, in, notIn, hasAnyOf."""

    def match(contact: Contact, operator: str, value: Any, now: datetime) -> bool:
        current = normalize(attribute(contact) or "")
        if operator == "equals" and isinstance(value, str):
            return current == normalize(value)
        if operator == "notEquals" and isinstance(value, str):
            return current != normalize(value)
        if operator in ("in", "hasAnyOf") and _is_list(value):
            return any(normalize(item) == current for item in _strings(value))
        if operator == "notIn" and _is_list(value):
            return not any(normalize(item) == current for item in _strings(value))
        if operator in extra:
            if operator == "isEmpty":
                return current == ""
            if operator == "isNotEmpty":
                return current != ""
        return False

    return match


def _channel_matcher(attribute: Callable[[Contact], str | None], with_sets: bool) -> FieldMatcher:
    def match(contact: Contact, operator: str, value: Any, now: datetime) -> bool:
        current = (attribute(contact) or "").lower()
        if operator == "equals" and isinstance(value, str):
            return current == value.lower()
        if operator == "notEquals" and isinstance(value, str):
            return current != value.lower()
        if operator == "exists":
            return current != ""
        if operator == "doesNotExist":
            return current == ""
        if not with_sets or not _is_list(value):
            return False
        wanted = [item.lower() for item in _strings(value)]
        if operator == "hasAnyOf":
            return current in wanted
        if operator == "hasAllOf":
            # A contact has a single channel.
            return len(value) > 0 and len(wanted) == len(value) and all(
                item == current for item in wanted
            )
        if operator == "hasNoneOf":
            return current not in wanted
        return False

    return match


def _text_matcher(attribute: Callable[[Contact], str | None], presence: str) -> FieldMatcher:
    """Free text: exact equality, case-insensitive substring operators.

    ``presence`` selects the emptiness operators the field answers to:
    ``"empty"`` for isEmpty/isNotEmpty, ``"exists"`` for exists/doesNotExist.
    """

    def match(contact: Contact, operator: str, value: Any, now: datetime) -> bool:
        current = attribute(contact) or ""
        if presence == "empty" and operator in ("isEmpty", "isNotEmpty"):
            return (current == "") == (operator == "isEmpty")
        if presence == "exists" and operator in ("exists", "doesNotExist"):
            return (current != "") == (operator == "exists")
        if not isinstance(value, str):
            return False
        if operator == "equals":
            return current == value
        if operator == "notEquals":
            return current != value
        lowered, needle = current.lower(), value.lower()
        if operator == "contains":
            return needle in lowered
        if operator == "notContains" and presence == "empty":
            return needle not in lowered
        if operator == "startsWith":
            return lowered.startswith(needle)
        if operator == "endsWith":
            return lowered.endswith(needle)
        return False

    return match


def _match_tags(contact: Contact, operator: str, value: Any, now: datetime) -> bool:
    tags = set(contact.tags)
    if operator == "isEmpty":
        return not tags
    if operator == "isNotEmpty":
        return bool(tags)
    if operator == "equals" and isinstance(value, str):
        return value in tags
    if not _is_list(value):
        return False
    if operator == "hasAnyOf":
        return any(isinstance(tag, str) and tag in tags for tag in value)
    if operator == "hasAllOf":
        return all(isinstance(tag, str) and tag in tags for tag in value)
    if operator == "hasNoneOf":
        return not any(isinstance(tag, str) and tag in tags for tag in value)
    return False


def _match_phone(contact: Contact, operator: str, value: Any, now: datetime) -> bool:
    raw = contact.phone or ""
    if operator == "exists":
        return raw != ""
    if operator == "doesNotExist":
        return raw == ""
    if not isinstance(value, str):
        return False

    current = normalize_phone(raw) if raw else raw
    wanted = normalize_phone(value) if value else value
    if operator == "equals":
        return current == wanted
    if operator == "notEquals":
        return current != wanted
    if operator == "contains":
        return wanted in current or value in raw
    if operator == "startsWith":
        return current.startswith(wanted) or raw.startswith(value)
    if operator == "endsWith":
        suffix = national_number(value) if value else value
        return current.endswith(suffix) or raw.endswith(value)
    return False


def _timestamp_matcher(attribute: Callable[[Contact], datetime | None]) -> FieldMatcher:
    def match(contact: Contact, operator: str, value: Any, now: datetime) -> bool:
        moment = attribute(contact)
        if moment is None:
            return operator in ("doesNotExist", "isEmpty")
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=UTC)

        if operator == "exists":
            return True
        if operator in ("isLessThanTime", "isGreaterThanTime") and _is_number(value):
            days = (now - moment) // ONE_DAY
            return days < value if operator == "isLessThanTime" else days > value
        if operator in ("isTimestampAfter", "isTimestampBefore") and isinstance(
            value, (str, date)
        ):
            boundary = _instant(value)
            if boundary is None:
                return False
            return moment > boundary if operator == "isTimestampAfter" else moment < boundary
        if operator == "isTimestampBetween" and isinstance(value, Mapping):
            if "from" not in value or "to" not in value:
                return False
            start, end = _instant(value["from"]), _instant(value["to"])
            if start is None or end is None:
                return False
            return start <= moment <= end
        return False

    return match


FIELD_MATCHERS: dict[str, FieldMatcher] = {
    "countryISO": _choice_matcher(lambda c: c.country_iso, str.upper),
    "tags": _match_tags,
    "channel": _channel_matcher(lambda c: c.channel, with_sets=True),
    "conversationStatus": _choice_matcher(lambda c: c.conversation_status),
    "firstName": _text_matcher(lambda c: c.first_name, presence="empty"),
    "lastName": _text_matcher(lambda c: c.last_name, presence="empty"),
    "phoneNumber": _match_phone,
    "emailAddress": _text_matcher(lambda c: c.email_address, presence="exists"),
    "language": _choice_matcher(lambda c: c.language),
    "botStatus": _choice_matcher(lambda c: c.bot_status),
    "assignee": _choice_matcher(
        lambda c: c.assignee, extra=frozenset({"isEmpty", "isNotEmpty"})
    ),
    "lastInteractedChannel": _channel_matcher(lambda c: c.last_interacted_channel, with_sets=False),
    "createdAt": _timestamp_matcher(lambda c: c.created_at),
    "lastInteractionTime": _timestamp_matcher(lambda c: c.last_interaction_time),
    "conversationOpenedTime": _timestamp_matcher(lambda c: c.conversation_opened_time),
    "timeSinceLastIncomingMessage": _timestamp_matcher(
        lambda c: c.time_since_last_incoming_message
    ),
}
