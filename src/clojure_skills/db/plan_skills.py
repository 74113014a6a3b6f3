"""Associations between implementation plans and the skills they rely on."""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, Optional

from ..errors import DuplicateError, NotFoundError
from ..models import (
    PlanSkill,
    PlanSkillCreate,
    PlanSkillLink,
    SkillRecord,
    validate,
    validate_id,
    validate_text,
)
from .core import Database

logger = logging.getLogger("clojure_skills.db.plan_skills")


class PlanSkillStore:
    """Manage rows of ``plan_skills``."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def associate_skill(self, data: dict[str, Any] | PlanSkillCreate) -> PlanSkillLink:
        """Attach a skill to a plan.

        Args:
            data: ``plan_id``, ``skill_id`` and optional ``position``
                (default 0).

        Raises:
            ValidationFailed: On invalid ids or a negative position.
            DuplicateError: If the skill is already attached to the plan.
            NotFoundError: If the plan or the skill does not exist.
        """
        link = validate(PlanSkillCreate, data)
        position = link.position or 0
        try:
            cursor = self.db.execute(
                "INSERT INTO plan_skills (plan_id, skill_id, position) VALUES (?, ?, ?)",
                (link.plan_id, link.skill_id, position),
            )
        except sqlite3.IntegrityError as exc:
            if "UNIQUE" in str(exc):
                raise DuplicateError(
                    f"Skill {link.skill_id} is already associated with plan {link.plan_id}"
                ) from exc
            raise NotFoundError(
                f"Plan {link.plan_id} or skill {link.skill_id} not found"
            ) from exc
        row = self.db.fetchone("SELECT * FROM plan_skills WHERE id = ?", (cursor.lastrowid,))
        logger.info("Associated skill %d with plan %d", link.skill_id, link.plan_id)
        return PlanSkillLink.model_validate(row)

    def dissociate_skill(self, plan_id: int, skill_id: int) -> int:
        """Detach a skill from a plan.

        Returns:
            int: Rows deleted (0 when there was no such association).
        """
        validate_id(plan_id, "plan_id")
        validate_id(skill_id, "skill_id")
        cursor = self.db.execute(
            "DELETE FROM plan_skills WHERE plan_id = ? AND skill_id = ?", (plan_id, skill_id)
        )
        return cursor.rowcount

    def list_plan_skills(self, plan_id: int) -> list[PlanSkill]:
        """Skills attached to a plan, ordered by position."""
        validate_id(plan_id, "plan_id")
        rows = self.db.fetchall(
            """SELECT s.id, s.path, s.category, s.name, s.title, s.description,
                      ps.position, ps.created_at
               FROM plan_skills ps
               JOIN skills s ON ps.skill_id = s.id
               WHERE ps.plan_id = ?
               ORDER BY ps.position ASC, ps.id ASC""",
            (plan_id,),
        )
        return [PlanSkill.model_validate(r) for r in rows]

    def get_skill_by_name(self, name: str) -> Optional[SkillRecord]:
        validate_text(name, "name")
        row = self.db.fetchone("SELECT * FROM skills WHERE name = ? ORDER BY category", (name,))
        return SkillRecord.model_validate(row) if row else None

    def get_skill_by_path(self, path: str) -> Optional[SkillRecord]:
        validate_text(path, "path")
        row = self.db.fetchone("SELECT * FROM skills WHERE path = ?", (path,))
        return SkillRecord.model_validate(row) if row else None
