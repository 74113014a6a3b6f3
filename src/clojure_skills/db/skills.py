"""Skill and prompt catalogue: upserts, lookups, listing, FTS5 search, stats.

Search uses SQLite FTS5 query syntax:
    "word1 word2"       both words
    "word1 OR word2"    either word
    '"exact phrase"'    phrase match
    "word*"             prefix match

Results carry a ``snippet`` (matches wrapped in ``[`` ``]``) and a bm25
``rank`` where lower is better.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Optional

from ..errors import AmbiguousError, DatabaseError
from ..models import (
    CategoryCount,
    ParsedSkill,
    PromptRecord,
    SkillRecord,
    Stats,
    validate_limit,
    validate_text,
)
from .core import Database

logger = logging.getLogger("clojure_skills.db.skills")

SNIPPET_TOKENS = 30


def _category_clause(alias: str, category: Optional[str]) -> tuple[str, list[Any]]:
    """Match a category and any of its sub-categories."""
    if not category:
        return "", []
    category = category.strip("/")
    # exact, case-sensitive prefix; LIKE would treat "_" as a wildcard
    return (
        f" AND ({alias}.category = ?"
        f" OR substr({alias}.category, 1, length(?) + 1) = ? || '/')",
        [category, category, category],
    )


class SkillStore:
    """Read and write skills and prompts.

    Args:
        db: An open, migrated database.
    """

    def __init__(self, db: Database) -> None:
        self.db = db

    # ── Skills ────────────────────────────────────────────────────────

    def get_skill_by_path(self, path: str) -> Optional[SkillRecord]:
        row = self.db.fetchone("SELECT * FROM skills WHERE path = ?", (path,))
        return SkillRecord.model_validate(row) if row else None

    def find_skills(self, name: str, category: Optional[str] = None) -> list[SkillRecord]:
        """All skills called ``name``, optionally within one category tree."""
        clause, params = _category_clause("s", category)
        rows = self.db.fetchall(
            f"SELECT s.* FROM skills s WHERE s.name = ?{clause} ORDER BY s.category",
            (name, *params),
        )
        return [SkillRecord.model_validate(r) for r in rows]

    def get_skill(self, name: str, category: Optional[str] = None) -> Optional[SkillRecord]:
        """Look up one skill by name.

        Raises:
            AmbiguousError: If the name exists in several categories and no
                category was given to disambiguate.
        """
        matches = self.find_skills(name, category)
        if not matches:
            return None
        if len(matches) > 1:
            cats = ", ".join(m.category for m in matches)
            raise AmbiguousError(
                f"Skill '{name}' is ambiguous (categories: {cats}); use --category"
            )
        return matches[0]

    def upsert_skill(self, skill: ParsedSkill) -> SkillRecord:
        """Insert a skill, or update the row with the same path."""
        data = skill.model_dump()
        existing = self.get_skill_by_path(skill.path)
        if existing:
            cols = [k for k in data if k != "path"]
            assignments = ", ".join(f"{c} = ?" for c in cols)
            self.db.execute(
                f"UPDATE skills SET {assignments}, updated_at = datetime('now') WHERE path = ?",
                (*[data[c] for c in cols], skill.path),
            )
        else:
            cols = list(data)
            self.db.execute(
                f"INSERT INTO skills ({', '.join(cols)}) VALUES ({', '.join('?' for _ in cols)})",
                tuple(data[c] for c in cols),
            )
        record = self.get_skill_by_path(skill.path)
        if record is None:
            raise DatabaseError(f"Skill missing after upsert: {skill.path}")
        return record

    def delete_skill(self, path: str) -> bool:
        cursor = self.db.execute("DELETE FROM skills WHERE path = ?", (path,))
        return cursor.rowcount > 0

    def list_skills(self, category: Optional[str] = None) -> list[SkillRecord]:
        """List skills ordered by category then name."""
        clause, params = _category_clause("s", category)
        rows = self.db.fetchall(
            f"SELECT s.* FROM skills s WHERE 1 = 1{clause} ORDER BY s.category, s.name",
            params,
        )
        return [SkillRecord.model_validate(r) for r in rows]

    def list_categories(self) -> list[CategoryCount]:
        rows = self.db.fetchall(
            "SELECT category, COUNT(*) AS count FROM skills GROUP BY category ORDER BY category"
        )
        return [CategoryCount.model_validate(r) for r in rows]

    def list_skill_names(self) -> list[str]:
        return [r["name"] for r in self.db.fetchall("SELECT name FROM skills ORDER BY name")]

    def search_skills(
        self,
        query: str,
        category: Optional[str] = None,
        max_results: int = 50,
    ) -> list[SkillRecord]:
        """Full-text search over skill name, category, title, description and content.

        Raises:
            ValidationFailed: On an empty query or out-of-range max_results.
            DatabaseError: If SQLite rejects the FTS5 query.
        """
        validate_text(query, "query")
        validate_limit(max_results)
        clause, params = _category_clause("s", category)
        rows = self.db.fetchall(
            f"""SELECT s.*,
                       snippet(skills_fts, -1, '[', ']', '...', {SNIPPET_TOKENS}) AS snippet,
                       skills_fts.rank AS rank
                FROM skills_fts
                JOIN skills s ON s.id = skills_fts.rowid
                WHERE skills_fts MATCH ?{clause}
                ORDER BY rank
                LIMIT ?""",
            (query, *params, max_results),
        )
        logger.info("Skill search '%s' returned %d results", query, len(rows))
        return [SkillRecord.model_validate(r) for r in rows]

    # ── Prompts ───────────────────────────────────────────────────────

    def get_prompt_by_name(self, name: str) -> Optional[PromptRecord]:
        row = self.db.fetchone("SELECT * FROM prompts WHERE name = ?", (name,))
        return PromptRecord.model_validate(row) if row else None

    def upsert_prompt(self, prompt: dict[str, Any]) -> PromptRecord:
        """Insert a prompt, or update the row with the same name."""
        name = prompt["name"]
        if self.get_prompt_by_name(name):
            cols = [k for k in prompt if k != "name"]
            assignments = ", ".join(f"{c} = ?" for c in cols)
            self.db.execute(
                f"UPDATE prompts SET {assignments}, updated_at = datetime('now') WHERE name = ?",
                (*[prompt[c] for c in cols], name),
            )
        else:
            cols = list(prompt)
            self.db.execute(
                f"INSERT INTO prompts ({', '.join(cols)}) VALUES ({', '.join('?' for _ in cols)})",
                tuple(prompt[c] for c in cols),
            )
        record = self.get_prompt_by_name(name)
        if record is None:
            raise DatabaseError(f"Prompt missing after upsert: {name}")
        return record

    def list_prompts(self) -> list[PromptRecord]:
        rows = self.db.fetchall("SELECT * FROM prompts ORDER BY name")
        return [PromptRecord.model_validate(r) for r in rows]

    def search_prompts(self, query: str, max_results: int = 50) -> list[PromptRecord]:
        """Full-text search over prompt name, title, description and content."""
        validate_text(query, "query")
        validate_limit(max_results)
        rows = self.db.fetchall(
            f"""SELECT p.*,
                       snippet(prompts_fts, -1, '[', ']', '...', {SNIPPET_TOKENS}) AS snippet,
                       prompts_fts.rank AS rank
                FROM prompts_fts
                JOIN prompts p ON p.id = prompts_fts.rowid
                WHERE prompts_fts MATCH ?
                ORDER BY rank
                LIMIT ?""",
            (query, max_results),
        )
        logger.info("Prompt search '%s' returned %d results", query, len(rows))
        return [PromptRecord.model_validate(r) for r in rows]

    # ── Stats ─────────────────────────────────────────────────────────

    def stats(self) -> Stats:
        """Collect database-wide counters."""
        skills = self.db.fetchone(
            """SELECT COUNT(*) AS skills,
                      COUNT(DISTINCT category) AS categories,
                      COALESCE(SUM(size_bytes), 0) AS size,
                      COALESCE(SUM(token_count), 0) AS tokens
               FROM skills"""
        ) or {}
        prompts = self.db.fetchone(
            """SELECT COUNT(*) AS prompts,
                      COALESCE(SUM(size_bytes), 0) AS size,
                      COALESCE(SUM(token_count), 0) AS tokens
               FROM prompts"""
        ) or {}
        plans = self.db.fetchone("SELECT COUNT(*) AS n FROM implementation_plans") or {}
        tasks = self.db.fetchone("SELECT COUNT(*) AS n FROM tasks") or {}
        path = str(self.db.path)
        return Stats(
            database_path=path,
            database_size_bytes=os.path.getsize(path) if os.path.exists(path) else 0,
            schema_version=self.db.schema_version(),
            skills=skills.get("skills", 0),
            prompts=prompts.get("prompts", 0),
            categories=skills.get("categories", 0),
            total_size_bytes=skills.get("size", 0) + prompts.get("size", 0),
            total_tokens=skills.get("tokens", 0) + prompts.get("tokens", 0),
            plans=plans.get("n", 0),
            tasks=tasks.get("n", 0),
        )
