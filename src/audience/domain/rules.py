from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from datetime import UTC, date, datetime
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from audience.domain.fields import (
    SUPPORTED_OPERATORS,
    VALUELESS_OPERATORS,
    FilterField,
    FilterOperator,
)
from audience.domain.models import FilterRule


class ValidationError(ValueError):
    pass


def require(value: str | None, field: str) -> None:
    if value is None or str(value).strip() == "":
        raise ValidationError(f"{field} is required.")


def validate_enum(value: str | None, allowed: Iterable[str], field: str) -> None:
    if value is None:
        return
    if value not in allowed:
        raise ValidationError(f"{field} must be one of: {', '.join(sorted(allowed))}")


def parse_datetime(value: str | None, field: str) -> datetime | None:
    if value is None or value == "":
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError as exc:
        raise ValidationError(f"{field} must be ISO 8601.") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def parse_filter_rule(data: Mapping[str, Any]) -> FilterRule:
    if not isinstance(data, Mapping):
        raise ValidationError("Filter rule must be a mapping.")
    field = data.get("field")
    operator = data.get("operator")
    require(field, "field")
    require(operator, "operator")
    return FilterRule(
        field=_plain_name(field),
        operator=_plain_name(operator),
        value=_iso_dates(data.get("value")),
    )


def parse_filter_rules(items: Any) -> list[FilterRule]:
    if items is None:
        return []
    if not isinstance(items, list):
        raise ValidationError("Filter rules must be a list.")
    return [parse_filter_rule(item) for item in items]


def load_rules(path: Path) -> list[FilterRule]:
    text = path.read_text(encoding="utf-8")
    if path.suffix == ".json":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ValidationError(f"Invalid JSON in {path}: {exc}") from exc
    else:
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise ValidationError(f"Invalid YAML in {path}: {exc}") from exc
    if isinstance(data, Mapping):
        data = data.get("filters")
    return parse_filter_rules(data)


def rule_problems(rule: FilterRule) -> list[str]:
    """Describe why a rule can never match as written.

    Evaluation does not consult this; an unsupported rule simply matches no
    contact. The result is meant for warnings shown before a segment is saved.
    """
    field_name = _plain_name(rule.field)
    operator_name = _plain_name(rule.operator)
    known_fields = {f.value for f in FilterField}
    known_operators = {o.value for o in FilterOperator}

    problems: list[str] = []
    if not isinstance(field_name, str) or field_name not in known_fields:
        problems.append(f"Unknown field '{field_name}'.")
    if not isinstance(operator_name, str) or operator_name not in known_operators:
        problems.append(f"Unknown operator '{operator_name}'.")
    if problems:
        return problems

    field = FilterField(field_name)
    operator = FilterOperator(operator_name)
    if operator not in SUPPORTED_OPERATORS[field]:
        return [f"Operator '{operator_name}' is not supported for field '{field_name}'."]
    if operator not in VALUELESS_OPERATORS and rule.value is None:
        return [f"Operator '{operator_name}' on '{field_name}' needs a value."]
    return []


def _iso_dates(value: Any) -> Any:
    # YAML reads unquoted dates as date/datetime objects; rules carry ISO strings.
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, list):
        return [_iso_dates(item) for item in value]
    if isinstance(value, Mapping):
        return {key: _iso_dates(item) for key, item in value.items()}
    return value


def _plain_name(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return value
