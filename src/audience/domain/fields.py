from __future__ import annotations

from enum import Enum


class FilterField(str, Enum):
    COUNTRY_ISO = "countryISO"
    TAGS = "tags"
    CHANNEL = "channel"
    CONVERSATION_STATUS = "conversationStatus"
    FIRST_NAME = "firstName"
    LAST_NAME = "lastName"
    PHONE_NUMBER = "phoneNumber"
    EMAIL_ADDRESS = "emailAddress"
    LANGUAGE = "language"
    BOT_STATUS = "botStatus"
    ASSIGNEE = "assignee"
    LAST_INTERACTED_CHANNEL = "lastInteractedChannel"
    CREATED_AT = "createdAt"
    LAST_INTERACTION_TIME = "lastInteractionTime"
    CONVERSATION_OPENED_TIME = "conversationOpenedTime"
    TIME_SINCE_LAST_INCOMING_MESSAGE = "timeSinceLastIncomingMessage"


class FilterOperator(str, Enum):
    EQUALS = "equals"
    NOT_EQUALS = "notEquals"
    IN = "in"
    NOT_IN = "notIn"
    CONTAINS = "contains"
    NOT_CONTAINS = "notContains"
    STARTS_WITH = "startsWith"
    ENDS_WITH = "endsWith"
    EXISTS = "exists"
    DOES_NOT_EXIST = "doesNotExist"
    IS_EMPTY = "isEmpty"
    IS_NOT_EMPTY = "isNotEmpty"
    HAS_ANY_OF = "hasAnyOf"
    HAS_ALL_OF = "hasAllOf"
    HAS_NONE_OF = "hasNoneOf"
    IS_LESS_THAN_TIME = "isLessThanTime"
    IS_GREATER_THAN_TIME = "isGreaterThanTime"
    IS_TIMESTAMP_AFTER = "isTimestampAfter"
    IS_TIMESTAMP_BEFORE = "isTimestampBefore"
    IS_TIMESTAMP_BETWEEN = "isTimestampBetween"


class ConversationStatus(str, Enum):
    UNASSIGNED = "unassigned"
    ASSIGNED = "assigned"
    OPEN = "open"
    RESOLVED = "resolved"
    CLOSED = "closed"


class Channel(str, Enum):
    WHATSAPP = "whatsapp"
    MESSENGER = "messenger"
    INSTAGRAM = "instagram"
    SMS = "sms"
    EMAIL = "email"
    PHONE = "phone"
    RCS = "rcs"
    PUSH = "push"


_O = FilterOperator

_EQUALITY = {_O.EQUALS, _O.NOT_EQUALS, _O.IN, _O.NOT_IN, _O.HAS_ANY_OF}
_NAME = {
    _O.EQUALS,
    _O.NOT_EQUALS,
    _O.CONTAINS,
    _O.NOT_CONTAINS,
    _O.STARTS_WITH,
    _O.ENDS_WITH,
    _O.IS_EMPTY,
    _O.IS_NOT_EMPTY,
}
_TIMESTAMP = {
    _O.EXISTS,
    _O.DOES_NOT_EXIST,
    # Matches only when the timestamp is absent.
    _O.IS_EMPTY,
    _O.IS_LESS_THAN_TIME,
    _O.IS_GREATER_THAN_TIME,
    _O.IS_TIMESTAMP_AFTER,
    _O.IS_TIMESTAMP_BEFORE,
    _O.IS_TIMESTAMP_BETWEEN,
}

# Operators each field evaluates; every other pair is a non-match.
SUPPORTED_OPERATORS: dict[FilterField, frozenset[FilterOperator]] = {
    FilterField.COUNTRY_ISO: frozenset(_EQUALITY),
    FilterField.TAGS: frozenset(
        {_O.IS_EMPTY, _O.IS_NOT_EMPTY, _O.HAS_ANY_OF, _O.HAS_ALL_OF, _O.HAS_NONE_OF, _O.EQUALS}
    ),
    FilterField.CHANNEL: frozenset(
        {
            _O.EQUALS,
            _O.NOT_EQUALS,
            _O.EXISTS,
            _O.DOES_NOT_EXIST,
            _O.HAS_ANY_OF,
            _O.HAS_ALL_OF,
            _O.HAS_NONE_OF,
        }
    ),
    FilterField.CONVERSATION_STATUS: frozenset(_EQUALITY),
    FilterField.FIRST_NAME: frozenset(_NAME),
    FilterField.LAST_NAME: frozenset(_NAME),
    FilterField.PHONE_NUMBER: frozenset(
        {
            _O.EQUALS,
            _O.NOT_EQUALS,
            _O.CONTAINS,
            _O.STARTS_WITH,
            _O.ENDS_WITH,
            _O.EXISTS,
            _O.DOES_NOT_EXIST,
        }
    ),
    FilterField.EMAIL_ADDRESS: frozenset(
        {
            _O.EQUALS,
            _O.NOT_EQUALS,
            _O.CONTAINS,
            _O.STARTS_WITH,
            _O.ENDS_WITH,
            _O.EXISTS,
            _O.DOES_NOT_EXIST,
        }
    ),
    FilterField.LANGUAGE: frozenset(_EQUALITY),
    FilterField.BOT_STATUS: frozenset(_EQUALITY),
    FilterField.ASSIGNEE: frozenset(_EQUALITY | {_O.IS_EMPTY, _O.IS_NOT_EMPTY}),
    FilterField.LAST_INTERACTED_CHANNEL: frozenset(
        {_O.EQUALS, _O.NOT_EQUALS, _O.EXISTS, _O.DOES_NOT_EXIST}
    ),
    FilterField.CREATED_AT: frozenset(_TIMESTAMP),
    FilterField.LAST_INTERACTION_TIME: frozenset(_TIMESTAMP),
    FilterField.CONVERSATION_OPENED_TIME: frozenset(_TIMESTAMP),
    FilterField.TIME_SINCE_LAST_INCOMING_MESSAGE: frozenset(_TIMESTAMP),
}

VALUELESS_OPERATORS = frozenset(
    {_O.EXISTS, _O.DOES_NOT_EXIST, _O.IS_EMPTY, _O.IS_NOT_EMPTY}
)
