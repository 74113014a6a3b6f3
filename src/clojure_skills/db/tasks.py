"""Task lists and tasks belonging to implementation plans."""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, Optional

from ..errors import NotFoundError, ValidationFailed
from ..models import (
    PlanSummary,
    Task,
    TaskCreate,
    TaskList,
    TaskListCreate,
    TaskListUpdate,
    TaskUpdate,
    changed_fields,
    validate,
    validate_id,
)
from .core import Database

logger = logging.getLogger("clojure_skills.db.tasks")


class TaskStore:
    """Manage ``task_lists`` and ``tasks``.

    Args:
        db: An open, migrated database.
    """

    def __init__(self, db: Database) -> None:
        self.db = db

    # ── Task lists ────────────────────────────────────────────────────

    def create_task_list(self, data: dict[str, Any] | TaskListCreate) -> TaskList:
        """Create a task list under a plan.

        Raises:
            ValidationFailed: On invalid data.
            NotFoundError: If the plan does not exist.
        """
        item = validate(TaskListCreate, data)
        try:
            cursor = self.db.execute(
                "INSERT INTO task_lists (plan_id, name, description, position) VALUES (?, ?, ?, ?)",
                (item.plan_id, item.name, item.description, item.position),
            )
        except sqlite3.IntegrityError as exc:
            raise NotFoundError(f"Plan not found: {item.plan_id}") from exc
        return self._require_list(cursor.lastrowid)

    def get_task_list_by_id(self, list_id: int) -> Optional[TaskList]:
        validate_id(list_id, "list_id")
        row = self.db.fetchone("SELECT * FROM task_lists WHERE id = ?", (list_id,))
        return TaskList.model_validate(row) if row else None

    def list_task_lists(self, plan_id: int) -> list[TaskList]:
        validate_id(plan_id, "plan_id")
        rows = self.db.fetchall(
            "SELECT * FROM task_lists WHERE plan_id = ? ORDER BY position, id", (plan_id,)
        )
        return [TaskList.model_validate(r) for r in rows]

    def update_task_list(self, list_id: int, data: dict[str, Any] | TaskListUpdate) -> TaskList:
        validate_id(list_id, "list_id")
        fields = changed_fields(validate(TaskListUpdate, data))
        if not fields:
            raise ValidationFailed([{"loc": (), "msg": "No fields to update"}], data)
        self._require_list(list_id)
        assignments = ", ".join(f"{c} = ?" for c in fields)
        self.db.execute(
            f"UPDATE task_lists SET {assignments}, updated_at = datetime('now') WHERE id = ?",
            (*fields.values(), list_id),
        )
        return self._require_list(list_id)

    def delete_task_list(self, list_id: int) -> TaskList:
        """Delete a task list and its tasks."""
        task_list = self._require_list(validate_id(list_id, "list_id"))
        self.db.execute("DELETE FROM task_lists WHERE id = ?", (list_id,))
        logger.info("Deleted task list %d: %s", list_id, task_list.name)
        return task_list

    # ── Tasks ─────────────────────────────────────────────────────────

    def create_task(self, data: dict[str, Any] | TaskCreate) -> Task:
        """Create a task in a task list.

        Raises:
            ValidationFailed: On invalid data.
            NotFoundError: If the task list does not exist.
        """
        item = validate(TaskCreate, data)
        try:
            cursor = self.db.execute(
                """INSERT INTO tasks (list_id, name, description, position, assigned_to)
                   VALUES (?, ?, ?, ?, ?)""",
                (item.list_id, item.name, item.description, item.position, item.assigned_to),
            )
        except sqlite3.IntegrityError as exc:
            raise NotFoundError(f"Task list not found: {item.list_id}") from exc
        return self._require_task(cursor.lastrowid)

    def get_task_by_id(self, task_id: int) -> Optional[Task]:
        validate_id(task_id, "task_id")
        row = self.db.fetchone("SELECT * FROM tasks WHERE id = ?", (task_id,))
        return Task.model_validate(row) if row else None

    def list_tasks(self, list_id: int) -> list[Task]:
        validate_id(list_id, "list_id")
        rows = self.db.fetchall(
            "SELECT * FROM tasks WHERE list_id = ? ORDER BY position, id", (list_id,)
        )
        return [Task.model_validate(r) for r in rows]

    def update_task(self, task_id: int, data: dict[str, Any] | TaskUpdate) -> Task:
        validate_id(task_id, "task_id")
        fields = changed_fields(validate(TaskUpdate, data))
        if not fields:
            raise ValidationFailed([{"loc": (), "msg": "No fields to update"}], data)
        self._require_task(task_id)
        assignments = ", ".join(f"{c} = ?" for c in fields)
        self.db.execute(
            f"UPDATE tasks SET {assignments}, updated_at = datetime('now') WHERE id = ?",
            (*fields.values(), task_id),
        )
        return self._require_task(task_id)

    def complete_task(self, task_id: int) -> Task:
        self._require_task(validate_id(task_id, "task_id"))
        self.db.execute(
            """UPDATE tasks SET completed = 1, completed_at = datetime('now'),
                                updated_at = datetime('now')
               WHERE id = ?""",
            (task_id,),
        )
        return self._require_task(task_id)

    def uncomplete_task(self, task_id: int) -> Task:
        self._require_task(validate_id(task_id, "task_id"))
        self.db.execute(
            """UPDATE tasks SET completed = 0, completed_at = NULL,
                                updated_at = datetime('now')
               WHERE id = ?""",
            (task_id,),
        )
        return self._require_task(task_id)

    def delete_task(self, task_id: int) -> Task:
        task = self._require_task(validate_id(task_id, "task_id"))
        self.db.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
        logger.info("Deleted task %d: %s", task_id, task.name)
        return task

    # ── Summaries ─────────────────────────────────────────────────────

    def plan_summary(self, plan_id: int) -> PlanSummary:
        """Count a plan's task lists and tasks."""
        validate_id(plan_id, "plan_id")
        row = self.db.fetchone(
            """SELECT
                 (SELECT COUNT(*) FROM task_lists WHERE plan_id = ?) AS task_lists,
                 COUNT(t.id) AS tasks,
                 COALESCE(SUM(t.completed), 0) AS completed_tasks
               FROM task_lists tl
               LEFT JOIN tasks t ON t.list_id = tl.id
               WHERE tl.plan_id = ?""",
            (plan_id, plan_id),
        )
        return PlanSummary.model_validate(row or {})

    def list_summary(self, list_id: int) -> PlanSummary:
        """Count the tasks in one task list."""
        validate_id(list_id, "list_id")
        row = self.db.fetchone(
            """SELECT 1 AS task_lists, COUNT(*) AS tasks,
                      COALESCE(SUM(completed), 0) AS completed_tasks
               FROM tasks WHERE list_id = ?""",
            (list_id,),
        )
        return PlanSummary.model_validate(row or {})

    def _require_list(self, list_id: Optional[int]) -> TaskList:
        task_list = self.get_task_list_by_id(list_id) if list_id else None
        if task_list is None:
            raise NotFoundError(f"Task list not found: {list_id}")
        return task_list

    def _require_task(self, task_id: Optional[int]) -> Task:
        task = self.get_task_by_id(task_id) if task_id else None
        if task is None:
            raise NotFoundError(f"Task not found: {task_id}")
        return task
