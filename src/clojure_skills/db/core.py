"""SQLite connection management.

The connection runs in autocommit mode; multi-statement work goes through
``Database.transaction()``. Foreign keys are switched on for every
connection so ON DELETE CASCADE works.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Optional

from ..config import AppConfig, get_db_path, load_config
from ..errors import DatabaseError
from . import schema

logger = logging.getLogger("clojure_skills.db")


class Database:
    """A lazily-opened SQLite database.

    Args:
        path: Database file path. Parent directories are created on open.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._conn: Optional[sqlite3.Connection] = None

    @classmethod
    def from_config(cls, config: Optional[AppConfig] = None) -> "Database":
        """Open the database named by the configuration."""
        return cls(get_db_path(config or load_config()))

    @property
    def conn(self) -> sqlite3.Connection:
        """Get or create the database connection."""
        if self._conn is None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(self.path, isolation_level=None)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
        return self._conn

    def close(self) -> None:
        """Close the connection if open."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run a block atomically; nested use joins the outer transaction."""
        conn = self.conn
        if conn.in_transaction:
            yield conn
            return
        conn.execute("BEGIN")
        try:
            yield conn
        except BaseException:
            conn.execute("ROLLBACK")
            raise
        conn.execute("COMMIT")

    def execute(self, sql: str, params: tuple | list = ()) -> sqlite3.Cursor:
        """Execute one statement, wrapping SQLite errors in DatabaseError."""
        try:
            return self.conn.execute(sql, params)
        except sqlite3.IntegrityError:
            raise
        except sqlite3.Error as exc:
            raise DatabaseError(str(exc)) from exc

    def fetchone(self, sql: str, params: tuple | list = ()) -> Optional[dict[str, Any]]:
        row = self.execute(sql, params).fetchone()
        return dict(row) if row is not None else None

    def fetchall(self, sql: str, params: tuple | list = ()) -> list[dict[str, Any]]:
        return [dict(row) for row in self.execute(sql, params).fetchall()]

    def migrate(self) -> list[int]:
        """Bring the schema up to date. Safe to call repeatedly."""
        applied = schema.migrate(self.conn)
        if applied:
            logger.info("Migrated %s to version %d", self.path, schema.SCHEMA_VERSION)
        return applied

    def reset(self) -> None:
        """Drop all data and recreate the schema."""
        schema.reset_database(self.conn)

    def schema_version(self) -> int:
        return schema.get_current_version(self.conn)

    def table_exists(self, name: str) -> bool:
        row = self.fetchone(
            "SELECT name FROM sqlite_master WHERE type = 'table' AND name = ?", (name,)
        )
        return row is not None


def init_db(config: Optional[AppConfig] = None) -> Database:
    """Open the configured database and apply migrations."""
    db = Database.from_config(config)
    db.migrate()
    return db
