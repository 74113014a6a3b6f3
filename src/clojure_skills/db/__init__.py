"""SQLite storage: connection, schema migrations, and per-table stores."""

from .core import Database, init_db

__all__ = ["Database", "init_db"]
