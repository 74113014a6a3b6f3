"""Compose a prompt with the skills embedded through its fragments."""

from __future__ import annotations

from typing import Optional

from ..models import FragmentReference, FragmentSkill, PromptRecord, SkillRecord
from .core import Database
from .skills import SkillStore


class PromptRenderer:
    """Read-side queries for rendering prompts."""

    def __init__(self, db: Database) -> None:
        self.db = db
        self.skills = SkillStore(db)

    def get_prompt_with_fragments(
        self, name: str
    ) -> Optional[tuple[PromptRecord, list[FragmentReference]]]:
        """Return a prompt and its fragment references ordered by position.

        Returns:
            (prompt, references), or None if no prompt has that name.
        """
        prompt = self.skills.get_prompt_by_name(name)
        if prompt is None:
            return None
        rows = self.db.fetchall(
            """SELECT pr.*, pf.name AS fragment_name, pf.title AS fragment_title
               FROM prompt_references pr
               JOIN prompt_fragments pf ON pr.target_fragment_id = pf.id
               WHERE pr.source_prompt_id = ? AND pr.reference_type = 'fragment'
               ORDER BY pr.position""",
            (prompt.id,),
        )
        return prompt, [FragmentReference.model_validate(r) for r in rows]

    def get_skill_details(self, name: str) -> Optional[SkillRecord]:
        row = self.db.fetchone("SELECT * FROM skills WHERE name = ? ORDER BY category", (name,))
        return SkillRecord.model_validate(row) if row else None

    def list_all_skill_names(self) -> list[str]:
        return self.skills.list_skill_names()

    def get_prompt_fragment_skills(self, prompt_id: int) -> list[FragmentSkill]:
        """Skills embedded in a prompt, in fragment order then skill position."""
        rows = self.db.fetchall(
            """SELECT s.*, pfs.position AS position
               FROM prompt_references pr
               JOIN prompt_fragments pf ON pr.target_fragment_id = pf.id
               JOIN prompt_fragment_skills pfs ON pf.id = pfs.fragment_id
               JOIN skills s ON pfs.skill_id = s.id
               WHERE pr.source_prompt_id = ? AND pr.reference_type = 'fragment'
               ORDER BY pr.position, pfs.position""",
            (prompt_id,),
        )
        return [FragmentSkill.model_validate(r) for r in rows]

    def render_plain_markdown(self, prompt: PromptRecord) -> str:
        """The prompt body followed by every embedded skill, blank-line separated."""
        parts = [prompt.content]
        skills = self.get_prompt_fragment_skills(prompt.id)
        if skills:
            parts.append("\n\n".join(s.content for s in skills))
        return "\n\n".join(parts)
