from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from audience.store.migrations import DEFAULT_SCHEMA_PATH, Schema, apply_schema

logger = logging.getLogger(__name__)


class SqliteSession:
    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def execute(self, query: str, params: Iterable[Any] | None = None) -> int:
        cur = self._conn.execute(query, params or [])
        return cur.rowcount

    def fetch_all(self, query: str, params: Iterable[Any] | None = None) -> list[sqlite3.Row]:
        cur = self._conn.execute(query, params or [])
        return cur.fetchall()

    def fetch_one(self, query: str, params: Iterable[Any] | None = None) -> sqlite3.Row | None:
        cur = self._conn.execute(query, params or [])
        return cur.fetchone()


class SqliteStore:
    def __init__(self, db_path: Path) -> None:
        self.db_path = Path(db_path)

    @contextmanager
    def connect(self):
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    @contextmanager
    def session(self) -> SqliteSession:
        with self.connect() as conn:
            yield SqliteSession(conn)

    def apply_schema(self, schema_path: Path = DEFAULT_SCHEMA_PATH) -> Schema:
        logger.debug("Applying %s to %s", schema_path, self.db_path)
        with self.connect() as conn:
            return apply_schema(conn, schema_path)

    def execute(self, query: str, params: Iterable[Any] | None = None) -> int:
        with self.session() as session:
            return session.execute(query, params)

    def fetch_all(self, query: str, params: Iterable[Any] | None = None) -> list[sqlite3.Row]:
        with self.session() as session:
            return session.fetch_all(query, params)

    def fetch_one(self, query: str, params: Iterable[Any] | None = None) -> sqlite3.Row | None:
        with self.session() as session:
            return session.fetch_one(query, params)
