from __future__ import annotations

import csv
import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from uuid import uuid4

from audience.domain import rules
from audience.domain.fields import Channel, ConversationStatus
from audience.domain.models import Contact
from audience.domain.rules import ValidationError
from audience.filters.phone import validate_phone
from audience.services.utils import dump_json, iso_or_none, load_json_list, normalize_tags, utc_now_iso
from audience.store.sqlite import SqliteStore

logger = logging.getLogger(__name__)

DEFAULT_CHANNEL = Channel.WHATSAPP.value
DEFAULT_CONVERSATION_STATUS = ConversationStatus.UNASSIGNED.value

CONTACT_COLUMNS = (
    "contact_id",
    "name",
    "first_name",
    "last_name",
    "phone",
    "email_address",
    "country_iso",
    "tags",
    "channel",
    "conversation_status",
    "assignee",
    "language",
    "bot_status",
    "last_interacted_channel",
    "last_interaction_time",
    "conversation_opened_time",
    "created_at",
    "updated_at",
)

# CSV header aliases accepted by import_contacts_csv.
CSV_ALIASES = {
    "email": "email_address",
    "phone_number": "phone",
    "country": "country_iso",
    "status": "conversation_status",
}


@dataclass
class ImportSummary:
    created: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)


def add_contact(
    store: SqliteStore,
    *,
    name: str | None = None,
    first_name: str | None = None,
    last_name: str | None = None,
    phone: str | None = None,
    email_address: str | None = None,
    country_iso: str | None = None,
    tags: list[str] | str | None = None,
    channel: str | None = None,
    conversation_status: str | None = None,
    assignee: str | None = None,
    language: str | None = None,
    bot_status: str | None = None,
    last_interacted_channel: str | None = None,
    last_interaction_time: datetime | None = None,
    conversation_opened_time: datetime | None = None,
    default_country: str | None = None,
) -> Contact:
    display_name = (name or " ".join(p for p in (first_name, last_name) if p)).strip()
    if not display_name and not phone:
        raise ValidationError("name or phone is required.")

    channel = (channel or DEFAULT_CHANNEL).lower()
    conversation_status = conversation_status or DEFAULT_CONVERSATION_STATUS
    rules.validate_enum(channel, [c.value for c in Channel], "channel")
    rules.validate_enum(
        conversation_status, [s.value for s in ConversationStatus], "conversation_status"
    )
    if last_interacted_channel:
        last_interacted_channel = last_interacted_channel.lower()
        rules.validate_enum(last_interacted_channel, [c.value for c in Channel], "last_interacted_channel")

    country_iso = country_iso.strip().upper() if country_iso else None
    if phone:
        region = country_iso or (default_country.upper() if default_country else None)
        validation = validate_phone(phone, default_country=region)
        if not validation.is_valid:
            raise ValidationError(f"phone: {validation.error}")
        phone = validation.formatted
        country_iso = country_iso or validation.country_iso

    now = utc_now_iso()
    contact_id = str(uuid4())
    values = {
        "contact_id": contact_id,
        "name": display_name or phone,
        "first_name": first_name or None,
        "last_name": last_name or None,
        "phone": phone,
        "email_address": email_address or None,
        "country_iso": country_iso,
        "tags": dump_json(list(normalize_tags(tags))),
        "channel": channel,
        "conversation_status": conversation_status,
        "assignee": assignee or None,
        "language": language or None,
        "bot_status": bot_status or None,
        "last_interacted_channel": last_interacted_channel or None,
        "last_interaction_time": iso_or_none(last_interaction_time),
        "conversation_opened_time": iso_or_none(conversation_opened_time),
        "created_at": now,
        "updated_at": now,
    }
    placeholders = ", ".join("?" for _ in CONTACT_COLUMNS)
    store.execute(
        f"INSERT INTO contacts ({', '.join(CONTACT_COLUMNS)}) VALUES ({placeholders})",
        [values[column] for column in CONTACT_COLUMNS],
    )
    logger.info("Created contact %s", contact_id)
    return row_to_contact(values)


def fetch_contacts(store: SqliteStore) -> list[Contact]:
    rows = store.fetch_all("SELECT * FROM contacts ORDER BY created_at DESC")
    return [row_to_contact(row) for row in rows]


def fetch_contact(store: SqliteStore, contact_id: str) -> Contact | None:
    row = store.fetch_one("SELECT * FROM contacts WHERE contact_id = ?", (contact_id,))
    return row_to_contact(row) if row else None


def delete_contact(store: SqliteStore, contact_id: str) -> bool:
    deleted = store.execute("DELETE FROM contacts WHERE contact_id = ?", (contact_id,))
    return deleted > 0


def import_contacts_csv(
    store: SqliteStore, path: Path, default_country: str | None = None
) -> ImportSummary:
    summary = ImportSummary()
    with path.open(newline="", encoding="utf-8-sig") as handle:
        reader = csv.DictReader(handle)
        for line_no, raw in enumerate(reader, start=2):
            row = _canonical_row(raw)
            try:
                add_contact(
                    store,
                    name=row.get("name"),
                    first_name=row.get("first_name"),
                    last_name=row.get("last_name"),
                    phone=row.get("phone"),
                    email_address=row.get("email_address"),
                    country_iso=row.get("country_iso"),
                    tags=(row.get("tags") or "").replace(";", ","),
                    channel=row.get("channel"),
                    conversation_status=row.get("conversation_status"),
                    assignee=row.get("assignee"),
                    language=row.get("language"),
                    bot_status=row.get("bot_status"),
                    last_interacted_channel=row.get("last_interacted_channel"),
                    last_interaction_time=rules.parse_datetime(
                        row.get("last_interaction_time"), "last_interaction_time"
                    ),
                    conversation_opened_time=rules.parse_datetime(
                        row.get("conversation_opened_time"), "conversation_opened_time"
                    ),
                    default_country=default_country,
                )
            except ValidationError as exc:
                summary.skipped += 1
                summary.errors.append(f"line {line_no}: {exc}")
                continue
            summary.created += 1
    logger.info(
        "Imported contacts from %s: created=%d skipped=%d", path, summary.created, summary.skipped
    )
    return summary


def row_to_contact(row: sqlite3.Row | dict) -> Contact:
    return Contact(
        contact_id=row["contact_id"],
        name=row["name"] or "",
        first_name=row["first_name"],
        last_name=row["last_name"],
        phone=row["phone"],
        email_address=row["email_address"],
        country_iso=row["country_iso"],
        tags=tuple(tag for tag in load_json_list(row["tags"]) if isinstance(tag, str)),
        channel=row["channel"],
        conversation_status=row["conversation_status"],
        assignee=row["assignee"],
        language=row["language"],
        bot_status=row["bot_status"],
        last_interacted_channel=row["last_interacted_channel"],
        created_at=rules.parse_datetime(row["created_at"], "created_at"),
        updated_at=rules.parse_datetime(row["updated_at"], "updated_at"),
        last_interaction_time=rules.parse_datetime(
            row["last_interaction_time"], "last_interaction_time"
        ),
        conversation_opened_time=rules.parse_datetime(
            row["conversation_opened_time"], "conversation_opened_time"
        ),
    )


def _canonical_row(raw: dict[str, str | None]) -> dict[str, str]:
    row: dict[str, str] = {}
    for key, value in raw.items():
        if key is None:
            continue
        name = key.strip().lower().replace(" ", "_")
        name = CSV_ALIASES.get(name, name)
        row[name] = (value or "").strip()
    return row
