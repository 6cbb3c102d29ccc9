from __future__ import annotations

import logging
import sqlite3
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from uuid import uuid4

from audience.domain import rules
from audience.domain.models import Contact, FilterRule, Segment
from audience.filters.engine import matching_ids
from audience.services.contacts import fetch_contacts
from audience.services.utils import dump_json, load_json_list, utc_now_iso
from audience.store.sqlite import SqliteStore

logger = logging.getLogger(__name__)


class SegmentError(RuntimeError):
    pass


@dataclass(frozen=True)
class SegmentPreview:
    contact_ids: list[str]
    total_contacts: int
    problems: list[str]


def create_segment(
    store: SqliteStore,
    name: str,
    filters: Sequence[FilterRule],
    description: str | None = None,
    now: datetime | None = None,
) -> Segment:
    rules.require(name, "name")
    _warn_about(filters)

    segment_id = str(uuid4())
    stamp = utc_now_iso()
    store.execute(
        "INSERT INTO segments (segment_id, name, description, filters, contact_ids, created_at, updated_at) "
        "VALUES (?, ?, ?, ?, ?, ?, ?)",
        (segment_id, name, description or None, _dump_filters(filters), "[]", stamp, stamp),
    )
    logger.info("Created segment %s (%s)", segment_id, name)
    return refresh_segment_contacts(store, segment_id, now=now)


def fetch_segments(store: SqliteStore) -> list[Segment]:
    rows = store.fetch_all("SELECT * FROM segments ORDER BY created_at DESC")
    return [row_to_segment(row) for row in rows]


def fetch_segment(store: SqliteStore, segment_id: str) -> Segment | None:
    row = store.fetch_one("SELECT * FROM segments WHERE segment_id = ?", (segment_id,))
    return row_to_segment(row) if row else None


def get_segment(store: SqliteStore, segment_id: str) -> Segment:
    segment = fetch_segment(store, segment_id)
    if segment is None:
        raise SegmentError(f"Segment not found: {segment_id}")
    return segment


def update_segment(
    store: SqliteStore,
    segment_id: str,
    *,
    name: str | None = None,
    description: str | None = None,
    filters: Sequence[FilterRule] | None = None,
    contact_ids: Sequence[str] | None = None,
    now: datetime | None = None,
) -> Segment:
    """Apply the given changes; unset arguments are left untouched.

    New filters trigger a recomputation of the member list unless
    ``contact_ids`` is given explicitly in the same call.
    """
    get_segment(store, segment_id)

    updates: list[str] = []
    params: list[object] = []
    if name is not None:
        rules.require(name, "name")
        updates.append("name = ?")
        params.append(name)
    if description is not None:
        updates.append("description = ?")
        params.append(description or None)
    if filters is not None:
        _warn_about(filters)
        updates.append("filters = ?")
        params.append(_dump_filters(filters))
    if contact_ids is not None:
        updates.append("contact_ids = ?")
        params.append(dump_json(list(contact_ids)))
    if updates:
        updates.append("updated_at = ?")
        params.append(utc_now_iso())
        params.append(segment_id)
        store.execute(f"UPDATE segments SET {', '.join(updates)} WHERE segment_id = ?", params)

    if filters is not None and contact_ids is None:
        return refresh_segment_contacts(store, segment_id, now=now)
    return get_segment(store, segment_id)


def delete_segment(store: SqliteStore, segment_id: str) -> None:
    deleted = store.execute("DELETE FROM segments WHERE segment_id = ?", (segment_id,))
    if not deleted:
        raise SegmentError(f"Segment not found: {segment_id}")
    logger.info("Deleted segment %s", segment_id)


def refresh_segment_contacts(
    store: SqliteStore,
    segment_id: str,
    contacts: Sequence[Contact] | None = None,
    now: datetime | None = None,
) -> Segment:
    """Recompute and store the ids of the contacts matching the segment filters."""
    segment = get_segment(store, segment_id)
    if contacts is None:
        contacts = fetch_contacts(store)
    ids = matching_ids(contacts, segment.filters, now=now)
    store.execute(
        "UPDATE segments SET contact_ids = ?, updated_at = ? WHERE segment_id = ?",
        (dump_json(ids), utc_now_iso(), segment_id),
    )
    logger.info(
        "Refreshed segment %s: %d of %d contacts match", segment_id, len(ids), len(contacts)
    )
    return get_segment(store, segment_id)


def refresh_all_segments(store: SqliteStore, now: datetime | None = None) -> list[Segment]:
    contacts = fetch_contacts(store)
    return [
        refresh_segment_contacts(store, segment.segment_id, contacts=contacts, now=now)
        for segment in fetch_segments(store)
    ]


def preview_segment(
    contacts: Sequence[Contact], filters: Sequence[FilterRule], now: datetime | None = None
) -> SegmentPreview:
    problems = [problem for rule in filters for problem in rules.rule_problems(rule)]
    return SegmentPreview(
        contact_ids=matching_ids(contacts, filters, now=now),
        total_contacts=len(contacts),
        problems=problems,
    )


def segment_contacts(store: SqliteStore, segment: Segment) -> list[Contact]:
    wanted = set(segment.contact_ids)
    return [contact for contact in fetch_contacts(store) if contact.contact_id in wanted]


def row_to_segment(row: sqlite3.Row | dict) -> Segment:
    return Segment(
        segment_id=row["segment_id"],
        name=row["name"],
        description=row["description"],
        filters=tuple(rules.parse_filter_rules(load_json_list(row["filters"]))),
        contact_ids=tuple(load_json_list(row["contact_ids"])),
        created_at=rules.parse_datetime(row["created_at"], "created_at"),
        updated_at=rules.parse_datetime(row["updated_at"], "updated_at"),
    )


def _dump_filters(filters: Sequence[FilterRule]) -> str:
    return dump_json([rule.as_dict() for rule in filters])


def _warn_about(filters: Sequence[FilterRule]) -> None:
    if not filters:
        logger.warning("Segment has no filters and will match no contacts")
    for rule in filters:
        for problem in rules.rule_problems(rule):
            logger.warning("Filter rule will match no contact: %s", problem)
