"""Implementation plans — CRUD, lifecycle transitions and full-text search.

Status values: draft, in-progress, completed, archived, cancelled.
Deleting a plan cascades to its task lists, tasks, skill links and result.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, Optional

from ..errors import DuplicateError, NotFoundError, ValidationFailed
from ..models import (
    Plan,
    PlanCreate,
    PlanStatus,
    PlanUpdate,
    changed_fields,
    validate,
    validate_id,
    validate_limit,
    validate_text,
)
from .core import Database

logger = logging.getLogger("clojure_skills.db.plans")


class PlanStore:
    """Manage rows of ``implementation_plans``.

    Args:
        db: An open, migrated database.
    """

    def __init__(self, db: Database) -> None:
        self.db = db

    def create_plan(self, data: dict[str, Any] | PlanCreate) -> Plan:
        """Create a plan.

        Args:
            data: Plan fields; ``name`` is required (1-255 chars). Status
                defaults to draft and content to an empty string.

        Returns:
            Plan: The stored plan.

        Raises:
            ValidationFailed: If the data does not match PlanCreate.
            DuplicateError: If a plan with the same name exists.
        """
        plan = validate(PlanCreate, data)
        values = plan.model_dump(mode="json")
        cols = list(values)
        try:
            cursor = self.db.execute(
                f"INSERT INTO implementation_plans ({', '.join(cols)}) "
                f"VALUES ({', '.join('?' for _ in cols)})",
                tuple(values[c] for c in cols),
            )
        except sqlite3.IntegrityError as exc:
            raise DuplicateError(f"Plan '{plan.name}' already exists") from exc
        logger.info("Created plan %d: %s", cursor.lastrowid, plan.name)
        return self._require(cursor.lastrowid)

    def get_plan_by_id(self, plan_id: int) -> Optional[Plan]:
        validate_id(plan_id, "plan_id")
        row = self.db.fetchone("SELECT * FROM implementation_plans WHERE id = ?", (plan_id,))
        return Plan.model_validate(row) if row else None

    def get_plan_by_name(self, name: str) -> Optional[Plan]:
        validate_text(name, "name")
        row = self.db.fetchone("SELECT * FROM implementation_plans WHERE name = ?", (name,))
        return Plan.model_validate(row) if row else None

    def resolve(self, ref: str | int) -> Optional[Plan]:
        """Find a plan by id (an int or digit string) or by name."""
        if isinstance(ref, int):
            return self.get_plan_by_id(ref)
        if ref.isdigit() and int(ref) > 0:
            plan = self.get_plan_by_id(int(ref))
            if plan:
                return plan
        return self.get_plan_by_name(ref)

    def list_plans(
        self,
        status: Optional[str] = None,
        assigned_to: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[Plan]:
        """List plans, newest first.

        Raises:
            ValidationFailed: On an unknown status, limit outside 1..1000
                or a negative offset.
        """
        clauses: list[str] = []
        params: list[Any] = []
        if status is not None:
            try:
                status = PlanStatus(status).value
            except ValueError as exc:
                raise ValidationFailed([{"loc": ("status",), "msg": f"unknown status '{status}'"}], status) from exc
            clauses.append("status = ?")
            params.append(status)
        if assigned_to is not None:
            clauses.append("assigned_to = ?")
            params.append(assigned_to)
        validate_limit(limit, "limit")
        if not isinstance(offset, int) or offset < 0:
            raise ValidationFailed([{"loc": ("offset",), "msg": "must be >= 0"}], offset)

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self.db.fetchall(
            f"SELECT * FROM implementation_plans {where} "
            "ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?",
            (*params, limit, offset),
        )
        return [Plan.model_validate(r) for r in rows]

    def update_plan(self, plan_id: int, data: dict[str, Any] | PlanUpdate) -> Plan:
        """Update the given fields of a plan; unknown keys are ignored.

        Raises:
            ValidationFailed: On invalid values or when nothing would change.
            NotFoundError: If the plan does not exist.
        """
        validate_id(plan_id, "plan_id")
        fields = changed_fields(validate(PlanUpdate, data))
        if not fields:
            raise ValidationFailed([{"loc": (), "msg": "No fields to update"}], data)
        self._require(plan_id)

        assignments = ", ".join(f"{c} = ?" for c in fields)
        try:
            self.db.execute(
                f"UPDATE implementation_plans SET {assignments}, updated_at = datetime('now') "
                "WHERE id = ?",
                (*fields.values(), plan_id),
            )
        except sqlite3.IntegrityError as exc:
            raise DuplicateError(f"Plan '{fields.get('name')}' already exists") from exc
        logger.info("Updated plan %d: %s", plan_id, ", ".join(fields))
        return self._require(plan_id)

    def delete_plan(self, plan_id: int) -> Plan:
        """Delete a plan and everything that hangs off it.

        Returns:
            Plan: The plan as it was before deletion.
        """
        plan = self._require(validate_id(plan_id, "plan_id"))
        self.db.execute("DELETE FROM implementation_plans WHERE id = ?", (plan_id,))
        logger.info("Deleted plan %d: %s", plan_id, plan.name)
        return plan

    def complete_plan(self, plan_id: int) -> Plan:
        """Mark a plan completed and stamp ``completed_at``."""
        self._require(validate_id(plan_id, "plan_id"))
        self.db.execute(
            """UPDATE implementation_plans
               SET status = 'completed', completed_at = datetime('now'),
                   updated_at = datetime('now')
               WHERE id = ?""",
            (plan_id,),
        )
        return self._require(plan_id)

    def archive_plan(self, plan_id: int) -> Plan:
        """Mark a plan archived (``completed_at`` is kept)."""
        self._require(validate_id(plan_id, "plan_id"))
        self.db.execute(
            "UPDATE implementation_plans SET status = 'archived', updated_at = datetime('now') "
            "WHERE id = ?",
            (plan_id,),
        )
        return self._require(plan_id)

    def search_plans(self, query: str, max_results: int = 50) -> list[Plan]:
        """Full-text search over plan name, title, description and content."""
        validate_text(query, "query")
        validate_limit(max_results)
        rows = self.db.fetchall(
            """SELECT p.*,
                      snippet(implementation_plans_fts, -1, '[', ']', '...', 30) AS snippet,
                      implementation_plans_fts.rank AS rank
               FROM implementation_plans_fts
               JOIN implementation_plans p ON p.id = implementation_plans_fts.rowid
               WHERE implementation_plans_fts MATCH ?
               ORDER BY rank
               LIMIT ?""",
            (query, max_results),
        )
        return [Plan.model_validate(r) for r in rows]

    def _require(self, plan_id: Optional[int]) -> Plan:
        plan = self.get_plan_by_id(plan_id) if plan_id else None
        if plan is None:
            raise NotFoundError(f"Plan not found: {plan_id}")
        return plan
