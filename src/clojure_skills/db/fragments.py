"""Prompt fragments — named, ordered skill groups that prompts embed.

A prompt references fragments through ``prompt_references``; each fragment
lists its skills with a position in ``prompt_fragment_skills``.
"""

from __future__ import annotations

import logging
from typing import Optional

from ..errors import DatabaseError
from ..models import PromptFragment
from .core import Database

logger = logging.getLogger("clojure_skills.db.fragments")


class FragmentStore:
    """Create fragments and wire them to skills and prompts."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def get_fragment_by_name(self, name: str) -> Optional[PromptFragment]:
        row = self.db.fetchone("SELECT * FROM prompt_fragments WHERE name = ?", (name,))
        return PromptFragment.model_validate(row) if row else None

    def create_fragment(
        self,
        name: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> PromptFragment:
        self.db.execute(
            "INSERT INTO prompt_fragments (name, title, description) VALUES (?, ?, ?)",
            (name, title, description),
        )
        fragment = self.get_fragment_by_name(name)
        if fragment is None:
            raise DatabaseError(f"Fragment missing after insert: {name}")
        logger.info("Created prompt fragment: %s", name)
        return fragment

    def get_or_create_fragment(
        self,
        name: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
    ) -> PromptFragment:
        return self.get_fragment_by_name(name) or self.create_fragment(name, title, description)

    def clear_skills(self, fragment_id: int) -> int:
        cursor = self.db.execute(
            "DELETE FROM prompt_fragment_skills WHERE fragment_id = ?", (fragment_id,)
        )
        return cursor.rowcount

    def associate_skill(self, fragment_id: int, skill_id: int, position: int = 0) -> None:
        self.db.execute(
            "INSERT INTO prompt_fragment_skills (fragment_id, skill_id, position) VALUES (?, ?, ?)",
            (fragment_id, skill_id, position),
        )

    def clear_prompt_references(self, prompt_id: int, reference_type: str = "fragment") -> int:
        cursor = self.db.execute(
            "DELETE FROM prompt_references WHERE source_prompt_id = ? AND reference_type = ?",
            (prompt_id, reference_type),
        )
        return cursor.rowcount

    def add_prompt_reference(self, prompt_id: int, fragment_id: int, position: int = 1) -> None:
        self.db.execute(
            """INSERT INTO prompt_references
                 (source_prompt_id, target_fragment_id, reference_type, position)
               VALUES (?, ?, 'fragment', ?)""",
            (prompt_id, fragment_id, position),
        )
