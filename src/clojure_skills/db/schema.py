"""Database schema as an ordered list of migrations.

Each migration has a version, a name, and ``up``/``down`` statement lists.
Applied versions are recorded in ``schema_version``. Full-text search
tables are FTS5 external-content tables kept in sync by triggers.
"""

from __future__ import annotations

import logging
import sqlite3

from pydantic import BaseModel

logger = logging.getLogger("clojure_skills.db.schema")


class Migration(BaseModel):
    version: int
    name: str
    up: list[str]
    down: list[str]


def _fts_triggers(table: str, fts: str, columns: list[str]) -> list[str]:
    """Triggers keeping an external-content FTS5 table in step with ``table``."""
    cols = ", ".join(columns)
    new = ", ".join(f"new.{c}" for c in columns)
    old = ", ".join(f"old.{c}" for c in columns)
    return [
        f"""CREATE TRIGGER {table}_ai AFTER INSERT ON {table} BEGIN
              INSERT INTO {fts}(rowid, {cols}) VALUES (new.id, {new});
            END""",
        f"""CREATE TRIGGER {table}_ad AFTER DELETE ON {table} BEGIN
              INSERT INTO {fts}({fts}, rowid, {cols}) VALUES ('delete', old.id, {old});
            END""",
        f"""CREATE TRIGGER {table}_au AFTER UPDATE ON {table} BEGIN
              INSERT INTO {fts}({fts}, rowid, {cols}) VALUES ('delete', old.id, {old});
              INSERT INTO {fts}(rowid, {cols}) VALUES (new.id, {new});
            END""",
    ]


def _drop_triggers(table: str) -> list[str]:
    return [f"DROP TRIGGER IF EXISTS {table}_{suffix}" for suffix in ("ai", "ad", "au")]


SKILL_FTS_COLUMNS = ["name", "category", "title", "description", "content"]
PROMPT_FTS_COLUMNS = ["name", "title", "description", "content"]
PLAN_FTS_COLUMNS = ["name", "title", "description", "content"]
RESULT_FTS_COLUMNS = ["summary", "challenges", "solutions", "lessons_learned"]

MIGRATIONS: list[Migration] = [
    Migration(
        version=1,
        name="skills-and-prompts",
        up=[
            """CREATE TABLE skills (
                 id          INTEGER PRIMARY KEY AUTOINCREMENT,
                 path        TEXT NOT NULL UNIQUE,
                 category    TEXT NOT NULL,
                 name        TEXT NOT NULL,
                 title       TEXT,
                 description TEXT,
                 content     TEXT NOT NULL,
                 file_hash   TEXT NOT NULL,
                 size_bytes  INTEGER NOT NULL,
                 token_count INTEGER,
                 created_at  TEXT NOT NULL DEFAULT (datetime('now')),
                 updated_at  TEXT NOT NULL DEFAULT (datetime('now'))
               )""",
            "CREATE INDEX idx_skills_name ON skills(name)",
            "CREATE INDEX idx_skills_category ON skills(category)",
            """CREATE TABLE prompts (
                 id          INTEGER PRIMARY KEY AUTOINCREMENT,
                 path        TEXT NOT NULL,
                 name        TEXT NOT NULL UNIQUE,
                 title       TEXT,
                 author      TEXT,
                 description TEXT,
                 content     TEXT NOT NULL,
                 file_hash   TEXT NOT NULL,
                 size_bytes  INTEGER NOT NULL,
                 token_count INTEGER,
                 created_at  TEXT NOT NULL DEFAULT (datetime('now')),
                 updated_at  TEXT NOT NULL DEFAULT (datetime('now'))
               )""",
            f"""CREATE VIRTUAL TABLE skills_fts USING fts5(
                 {", ".join(SKILL_FTS_COLUMNS)}, content='skills', content_rowid='id')""",
            f"""CREATE VIRTUAL TABLE prompts_fts USING fts5(
                 {", ".join(PROMPT_FTS_COLUMNS)}, content='prompts', content_rowid='id')""",
            *_fts_triggers("skills", "skills_fts", SKILL_FTS_COLUMNS),
            *_fts_triggers("prompts", "prompts_fts", PROMPT_FTS_COLUMNS),
        ],
        down=[
            *_drop_triggers("prompts"),
            *_drop_triggers("skills"),
            "DROP TABLE IF EXISTS prompts_fts",
            "DROP TABLE IF EXISTS skills_fts",
            "DROP TABLE IF EXISTS prompts",
            "DROP TABLE IF EXISTS skills",
        ],
    ),
    Migration(
        version=2,
        name="prompt-fragments",
        up=[
            """CREATE TABLE prompt_fragments (
                 id          INTEGER PRIMARY KEY AUTOINCREMENT,
                 name        TEXT NOT NULL UNIQUE,
                 title       TEXT,
                 description TEXT,
                 created_at  TEXT NOT NULL DEFAULT (datetime('now')),
                 updated_at  TEXT NOT NULL DEFAULT (datetime('now'))
               )""",
            """CREATE TABLE prompt_fragment_skills (
                 id          INTEGER PRIMARY KEY AUTOINCREMENT,
                 fragment_id INTEGER NOT NULL REFERENCES prompt_fragments(id) ON DELETE CASCADE,
                 skill_id    INTEGER NOT NULL REFERENCES skills(id) ON DELETE CASCADE,
                 position    INTEGER NOT NULL DEFAULT 0,
                 created_at  TEXT NOT NULL DEFAULT (datetime('now'))
               )""",
            "CREATE INDEX idx_fragment_skills_fragment ON prompt_fragment_skills(fragment_id)",
            """CREATE TABLE prompt_references (
                 id                 INTEGER PRIMARY KEY AUTOINCREMENT,
                 source_prompt_id   INTEGER NOT NULL REFERENCES prompts(id) ON DELETE CASCADE,
                 target_prompt_id   INTEGER REFERENCES prompts(id) ON DELETE CASCADE,
                 target_fragment_id INTEGER REFERENCES prompt_fragments(id) ON DELETE CASCADE,
                 reference_type     TEXT NOT NULL CHECK (reference_type IN ('fragment', 'prompt')),
                 position           INTEGER NOT NULL DEFAULT 0,
                 created_at         TEXT NOT NULL DEFAULT (datetime('now'))
               )""",
            "CREATE INDEX idx_prompt_references_source ON prompt_references(source_prompt_id)",
        ],
        down=[
            "DROP TABLE IF EXISTS prompt_references",
            "DROP TABLE IF EXISTS prompt_fragment_skills",
            "DROP TABLE IF EXISTS prompt_fragments",
        ],
    ),
    Migration(
        version=3,
        name="implementation-plans",
        up=[
            """CREATE TABLE implementation_plans (
                 id           INTEGER PRIMARY KEY AUTOINCREMENT,
                 name         TEXT NOT NULL UNIQUE,
                 title        TEXT,
                 description  TEXT,
                 content      TEXT NOT NULL DEFAULT '',
                 status       TEXT NOT NULL DEFAULT 'draft'
                              CHECK (status IN ('draft', 'in-progress', 'completed',
                                                'archived', 'cancelled')),
                 created_by   TEXT,
                 assigned_to  TEXT,
                 created_at   TEXT NOT NULL DEFAULT (datetime('now')),
                 updated_at   TEXT NOT NULL DEFAULT (datetime('now')),
                 completed_at TEXT
               )""",
            "CREATE INDEX idx_plans_status ON implementation_plans(status)",
            f"""CREATE VIRTUAL TABLE implementation_plans_fts USING fts5(
                 {", ".join(PLAN_FTS_COLUMNS)},
                 content='implementation_plans', content_rowid='id')""",
            *_fts_triggers("implementation_plans", "implementation_plans_fts", PLAN_FTS_COLUMNS),
        ],
        down=[
            *_drop_triggers("implementation_plans"),
            "DROP TABLE IF EXISTS implementation_plans_fts",
            "DROP TABLE IF EXISTS implementation_plans",
        ],
    ),
    Migration(
        version=4,
        name="task-lists-and-tasks",
        up=[
            """CREATE TABLE task_lists (
                 id          INTEGER PRIMARY KEY AUTOINCREMENT,
                 plan_id     INTEGER NOT NULL REFERENCES implementation_plans(id) ON DELETE CASCADE,
                 name        TEXT NOT NULL,
                 description TEXT,
                 position    INTEGER NOT NULL DEFAULT 0,
                 created_at  TEXT NOT NULL DEFAULT (datetime('now')),
                 updated_at  TEXT NOT NULL DEFAULT (datetime('now'))
               )""",
            "CREATE INDEX idx_task_lists_plan ON task_lists(plan_id)",
            """CREATE TABLE tasks (
                 id           INTEGER PRIMARY KEY AUTOINCREMENT,
                 list_id      INTEGER NOT NULL REFERENCES task_lists(id) ON DELETE CASCADE,
                 name         TEXT NOT NULL,
                 description  TEXT,
                 completed    INTEGER NOT NULL DEFAULT 0,
                 position     INTEGER NOT NULL DEFAULT 0,
                 assigned_to  TEXT,
                 completed_at TEXT,
                 created_at   TEXT NOT NULL DEFAULT (datetime('now')),
                 updated_at   TEXT NOT NULL DEFAULT (datetime('now'))
               )""",
            "CREATE INDEX idx_tasks_list ON tasks(list_id)",
        ],
        down=[
            "DROP TABLE IF EXISTS tasks",
            "DROP TABLE IF EXISTS task_lists",
        ],
    ),
    Migration(
        version=5,
        name="plan-skills",
        up=[
            """CREATE TABLE plan_skills (
                 id         INTEGER PRIMARY KEY AUTOINCREMENT,
                 plan_id    INTEGER NOT NULL REFERENCES implementation_plans(id) ON DELETE CASCADE,
                 skill_id   INTEGER NOT NULL REFERENCES skills(id) ON DELETE CASCADE,
                 position   INTEGER NOT NULL DEFAULT 0,
                 created_at TEXT NOT NULL DEFAULT (datetime('now')),
                 UNIQUE (plan_id, skill_id)
               )""",
            "CREATE INDEX idx_plan_skills_plan ON plan_skills(plan_id)",
        ],
        down=["DROP TABLE IF EXISTS plan_skills"],
    ),
    Migration(
        version=6,
        name="plan-results",
        up=[
            """CREATE TABLE plan_results (
                 id              INTEGER PRIMARY KEY AUTOINCREMENT,
                 plan_id         INTEGER NOT NULL UNIQUE
                                 REFERENCES implementation_plans(id) ON DELETE CASCADE,
                 outcome         TEXT NOT NULL CHECK (outcome IN ('success', 'failure', 'partial')),
                 summary         TEXT NOT NULL,
                 challenges      TEXT,
                 solutions       TEXT,
                 lessons_learned TEXT,
                 metrics         TEXT,
                 created_at      TEXT NOT NULL DEFAULT (datetime('now')),
                 updated_at      TEXT NOT NULL DEFAULT (datetime('now'))
               )""",
            f"""CREATE VIRTUAL TABLE plan_results_fts USING fts5(
                 {", ".join(RESULT_FTS_COLUMNS)},
                 content='plan_results', content_rowid='id')""",
            *_fts_triggers("plan_results", "plan_results_fts", RESULT_FTS_COLUMNS),
        ],
        down=[
            *_drop_triggers("plan_results"),
            "DROP TABLE IF EXISTS plan_results_fts",
            "DROP TABLE IF EXISTS plan_results",
        ],
    ),
]

SCHEMA_VERSION = MIGRATIONS[-1].version


def _ensure_version_table(conn: sqlite3.Connection) -> None:
    conn.execute(
        """CREATE TABLE IF NOT EXISTS schema_version (
             version    INTEGER PRIMARY KEY,
             name       TEXT NOT NULL,
             applied_at TEXT NOT NULL DEFAULT (datetime('now'))
           )"""
    )


def get_current_version(conn: sqlite3.Connection) -> int:
    """Return the highest applied migration version (0 for a fresh database)."""
    row = conn.execute(
        "SELECT name FROM sqlite_master WHERE type = 'table' AND name = 'schema_version'"
    ).fetchone()
    if row is None:
        return 0
    (version,) = conn.execute("SELECT COALESCE(MAX(version), 0) FROM schema_version").fetchone()
    return int(version)


def migrate(conn: sqlite3.Connection) -> list[int]:
    """Apply every pending migration, each in its own transaction.

    The connection must be in autocommit mode (``isolation_level=None``).

    Returns:
        list[int]: Versions applied by this call (empty when up to date).
    """
    _ensure_version_table(conn)
    current = get_current_version(conn)
    applied: list[int] = []

    for migration in MIGRATIONS:
        if migration.version <= current:
            continue
        conn.execute("BEGIN")
        try:
            for statement in migration.up:
                conn.execute(statement)
            conn.execute(
                "INSERT INTO schema_version (version, name) VALUES (?, ?)",
                (migration.version, migration.name),
            )
        except sqlite3.Error:
            conn.execute("ROLLBACK")
            logger.error("Migration %d (%s) failed", migration.version, migration.name)
            raise
        conn.execute("COMMIT")
        logger.info("Applied migration %d: %s", migration.version, migration.name)
        applied.append(migration.version)

    return applied


def reset_database(conn: sqlite3.Connection) -> None:
    """Drop every table (running ``down`` migrations in reverse) and re-migrate."""
    conn.execute("PRAGMA foreign_keys = OFF")
    conn.execute("BEGIN")
    try:
        for migration in reversed(MIGRATIONS):
            for statement in migration.down:
                conn.execute(statement)
        conn.execute("DROP TABLE IF EXISTS schema_version")
    except sqlite3.Error:
        conn.execute("ROLLBACK")
        raise
    finally:
        if conn.in_transaction:
            conn.execute("COMMIT")
        conn.execute("PRAGMA foreign_keys = ON")
    logger.warning("Database reset: all tables dropped")
    migrate(conn)
