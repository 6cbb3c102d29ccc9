from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any


@dataclass(frozen=True)
class Contact:
    contact_id: str
    name: str = ""
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    email_address: str | None = None
    country_iso: str | None = None
    tags: tuple[str, ...] = ()
    channel: str | None = None
    conversation_status: str | None = None
    assignee: str | None = None
    language: str | None = None
    bot_status: str | None = None
    last_interacted_channel: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    last_interaction_time: datetime | None = None
    conversation_opened_time: datetime | None = None

    @property
    def time_since_last_incoming_message(self) -> datetime | None:
        # No separate inbound-message timestamp is recorded yet.
        return self.last_interaction_time


@dataclass(frozen=True)
class FilterRule:
    field: str
    operator: str
    value: Any = None

    def as_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"field": _plain(self.field), "operator": _plain(self.operator)}
        if self.value is not None:
            payload["value"] = _plain(self.value)
        return payload


@dataclass(frozen=True)
class Segment:
    segment_id: str
    name: str
    description: str | None
    filters: tuple[FilterRule, ...]
    contact_ids: tuple[str, ...]
    created_at: datetime
    updated_at: datetime


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [_plain(item) for item in value]
    if isinstance(value, dict):
        return {key: _plain(item) for key, item in value.items()}
    return value
