from __future__ import annotations

import csv
from collections.abc import Iterable
from pathlib import Path

from openpyxl import Workbook

from audience.domain.models import Contact, Segment

COLUMNS = [
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
    "last_interaction_time",
]


def contact_row(contact: Contact) -> list[str]:
    values: list[str] = []
    for column in COLUMNS:
        value = getattr(contact, column)
        if column == "tags":
            values.append(", ".join(value))
        elif value is None:
            values.append("")
        elif hasattr(value, "isoformat"):
            values.append(value.isoformat())
        else:
            values.append(str(value))
    return values


def export_segment_csv(contacts: Iterable[Contact], out_path: Path) -> int:
    out_path.parent.mkdir(parents=True, exist_ok=True)
    count = 0
    with out_path.open("w", newline="", encoding="utf-8") as handle:
        writer = csv.writer(handle)
        writer.writerow(COLUMNS)
        for contact in contacts:
            writer.writerow(contact_row(contact))
            count += 1
    return count


def export_segment_excel(segment: Segment, contacts: Iterable[Contact], out_path: Path) -> int:
    out_path.parent.mkdir(parents=True, exist_ok=True)
    wb = Workbook()
    ws = wb.active
    ws.title = _sheet_title(segment.name)
    ws.append(COLUMNS)
    count = 0
    for contact in contacts:
        ws.append(contact_row(contact))
        count += 1

    rules_ws = wb.create_sheet(title="filters")
    rules_ws.append(["field", "operator", "value"])
    for rule in segment.filters:
        payload = rule.as_dict()
        rules_ws.append([payload["field"], payload["operator"], str(payload.get("value", ""))])

    wb.save(out_path)
    return count


def _sheet_title(name: str) -> str:
    # Excel sheet titles: max 31 chars, no []:*?/\
    cleaned = "".join(ch for ch in name if ch not in "[]:*?/\\").strip()
    return (cleaned or "segment")[:31]
