from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any


def utc_now() -> datetime:
    return datetime.now(UTC).replace(microsecond=0)


def utc_now_iso() -> str:
    return utc_now().isoformat()


def iso_or_none(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def normalize_tags(tags: Any) -> tuple[str, ...]:
    """Strip, drop blanks and duplicates; accepts a list or a comma separated string."""
    if not tags:
        return ()
    if isinstance(tags, str):
        tags = tags.split(",")
    seen: dict[str, None] = {}
    for tag in tags:
        if not isinstance(tag, str):
            continue
        cleaned = tag.strip()
        if cleaned:
            seen.setdefault(cleaned, None)
    return tuple(seen)


def dump_json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


def load_json_list(raw: str | None) -> list[Any]:
    if not raw:
        return []
    data = json.loads(raw)
    return data if isinstance(data, list) else []
