from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

DEFAULT_SCHEMA_PATH = Path(__file__).with_name("schema.yaml")

TYPE_MAP = {
    "uuid": "TEXT",
    "text": "TEXT",
    "number": "REAL",
    "datetime": "TEXT",
    "date": "TEXT",
    "enum": "TEXT",
    "bool": "INTEGER",
    "json": "TEXT",
}


@dataclass(frozen=True)
class Schema:
    version: int
    enums: dict[str, list[str]]
    tables: dict[str, Any]

    def table_names(self) -> list[str]:
        return list(self.tables)


class SchemaError(RuntimeError):
    pass


def load_schema(schema_path: Path) -> Schema:
    if not schema_path.exists():
        raise SchemaError(f"Schema file not found: {schema_path}")
    try:
        data = yaml.safe_load(schema_path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise SchemaError(f"Invalid YAML in {schema_path}: {exc}") from exc
    enums = data.get("enums") or {}
    tables = data.get("tables") or {}
    if not isinstance(enums, dict):
        raise SchemaError("Schema enums must be a mapping.")
    if not isinstance(tables, dict):
        raise SchemaError("Schema tables must be a mapping.")
    return Schema(version=int(data.get("version", 1)), enums=enums, tables=tables)


def apply_schema(conn, schema_path: Path = DEFAULT_SCHEMA_PATH) -> Schema:
    """Create missing tables and indexes, then record the schema version.

    Existing tables are left as they are; the schema only ever grows.
    """
    schema = load_schema(schema_path)
    conn.execute(
        "CREATE TABLE IF NOT EXISTS __schema_meta (version INTEGER PRIMARY KEY, applied_at TEXT NOT NULL)"
    )
    for table_name, table_def in schema.tables.items():
        if not isinstance(table_def, dict):
            raise SchemaError(f"Table {table_name} must be a mapping.")
        conn.execute(_table_ddl(table_name, table_def, schema.enums))
        for ddl in _index_ddl(table_name, table_def):
            conn.execute(ddl)

    conn.execute(
        "INSERT OR REPLACE INTO __schema_meta (version, applied_at) VALUES (?, datetime('now'))",
        (schema.version,),
    )
    conn.commit()
    logger.info("Applied schema version %s (%s)", schema.version, ", ".join(schema.table_names()))
    return schema


def _table_ddl(table_name: str, table_def: dict[str, Any], enums: dict[str, list[str]]) -> str:
    fields = table_def.get("fields")
    if not isinstance(fields, dict):
        raise SchemaError(f"Table {table_name} fields must be a mapping.")
    primary_key = table_def.get("primary_key")
    columns = [_column_sql(name, spec, primary_key, enums) for name, spec in fields.items()]
    if isinstance(primary_key, list):
        columns.append(f"PRIMARY KEY ({', '.join(primary_key)})")
    return f"CREATE TABLE IF NOT EXISTS {table_name} ({', '.join(columns)});"


def _column_sql(
    field_name: str,
    spec: Any,
    primary_key: str | list[str] | None,
    enums: dict[str, list[str]],
) -> str:
    if not isinstance(spec, dict):
        raise SchemaError(f"Field {field_name} must be a mapping.")
    field_type = spec.get("type")
    if field_type not in TYPE_MAP:
        raise SchemaError(f"Unknown field type {field_type} for {field_name}.")

    parts = [field_name, TYPE_MAP[field_type]]
    if spec.get("required", False):
        parts.append("NOT NULL")
    if isinstance(primary_key, str) and field_name == primary_key:
        parts.append("PRIMARY KEY")
    if spec.get("default") is not None:
        parts.append(f"DEFAULT '{spec['default']}'")
    if field_type == "enum":
        parts.append(_enum_check(field_name, spec.get("enum"), enums))
    return " ".join(parts)


def _enum_check(field_name: str, enum_name: Any, enums: dict[str, list[str]]) -> str:
    values = enums.get(enum_name) if isinstance(enum_name, str) else None
    if not values:
        raise SchemaError(f"Enum field {field_name} must name one of: {', '.join(enums)}.")
    allowed = ", ".join(f"'{value}'" for value in values)
    # NULL passes a CHECK constraint, so optional enum columns stay optional.
    return f"CHECK ({field_name} IN ({allowed}))"


def _index_ddl(table_name: str, table_def: dict[str, Any]) -> list[str]:
    statements = []
    for index_fields in table_def.get("indexes") or []:
        if not isinstance(index_fields, list) or not index_fields:
            continue
        idx_name = f"idx_{table_name}_{'_'.join(index_fields)}"
        statements.append(
            f"CREATE INDEX IF NOT EXISTS {idx_name} ON {table_name} ({', '.join(index_fields)});"
        )
    return statements
