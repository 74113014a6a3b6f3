"""Plan results — the recorded outcome of a finished plan.

Each plan has at most one result. Summary, challenges, solutions and
lessons learned are full-text searchable; ``metrics`` is free-form JSON
text.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, Optional

from ..errors import DuplicateError, NotFoundError, ValidationFailed
from ..models import (
    PlanResult,
    PlanResultCreate,
    PlanResultUpdate,
    changed_fields,
    validate,
    validate_id,
    validate_limit,
    validate_text,
)
from .core import Database

logger = logging.getLogger("clojure_skills.db.plan_results")


class PlanResultStore:
    """Manage rows of ``plan_results``."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def create_result(self, data: dict[str, Any] | PlanResultCreate) -> PlanResult:
        """Record the outcome of a plan.

        Raises:
            ValidationFailed: On invalid data (e.g. unknown outcome).
            DuplicateError: If the plan already has a result.
            NotFoundError: If the plan does not exist.
        """
        result = validate(PlanResultCreate, data)
        values = result.model_dump(mode="json")
        cols = list(values)
        try:
            self.db.execute(
                f"INSERT INTO plan_results ({', '.join(cols)}) "
                f"VALUES ({', '.join('?' for _ in cols)})",
                tuple(values[c] for c in cols),
            )
        except sqlite3.IntegrityError as exc:
            if "UNIQUE" in str(exc):
                raise DuplicateError("Result already exists for this plan") from exc
            raise NotFoundError(f"Plan not found: {result.plan_id}") from exc
        logger.info("Recorded %s result for plan %d", result.outcome.value, result.plan_id)
        return self._require(result.plan_id)

    def get_result_by_plan_id(self, plan_id: int) -> Optional[PlanResult]:
        validate_id(plan_id, "plan_id")
        row = self.db.fetchone("SELECT * FROM plan_results WHERE plan_id = ?", (plan_id,))
        return PlanResult.model_validate(row) if row else None

    def update_result(self, plan_id: int, data: dict[str, Any] | PlanResultUpdate) -> PlanResult:
        """Update the given fields of a plan's result and stamp ``updated_at``."""
        validate_id(plan_id, "plan_id")
        fields = changed_fields(validate(PlanResultUpdate, data))
        if not fields:
            raise ValidationFailed([{"loc": (), "msg": "No fields to update"}], data)
        self._require(plan_id)
        assignments = ", ".join(f"{c} = ?" for c in fields)
        self.db.execute(
            f"UPDATE plan_results SET {assignments}, updated_at = datetime('now') "
            "WHERE plan_id = ?",
            (*fields.values(), plan_id),
        )
        return self._require(plan_id)

    def delete_result(self, plan_id: int) -> bool:
        self._require(validate_id(plan_id, "plan_id"))
        self.db.execute("DELETE FROM plan_results WHERE plan_id = ?", (plan_id,))
        return True

    def search_results(self, query: str, max_results: int = 50) -> list[PlanResult]:
        """Full-text search across summary, challenges, solutions and lessons learned."""
        validate_text(query, "query")
        validate_limit(max_results)
        rows = self.db.fetchall(
            """SELECT r.*,
                      snippet(plan_results_fts, -1, '[', ']', '...', 30) AS snippet,
                      plan_results_fts.rank AS rank
               FROM plan_results_fts
               JOIN plan_results r ON r.id = plan_results_fts.rowid
               WHERE plan_results_fts MATCH ?
               ORDER BY rank
               LIMIT ?""",
            (query, max_results),
        )
        return [PlanResult.model_validate(r) for r in rows]

    def _require(self, plan_id: int) -> PlanResult:
        result = self.get_result_by_plan_id(plan_id)
        if result is None:
            raise NotFoundError(f"Plan result not found for plan {plan_id}")
        return result
