"""Tests for plan-skill associations."""

from __future__ import annotations

import pytest

from clojure_skills.db.plan_skills import PlanSkillStore
from clojure_skills.errors import DuplicateError, NotFoundError, ValidationFailed


@pytest.fixture
def links(db) -> PlanSkillStore:
    return PlanSkillStore(db)


@pytest.fixture
def seeded(plans, skills, make_skill):
    plan = plans.create_plan({"name": "uses-skills"})
    malli = skills.upsert_skill(make_skill("malli", "libraries"))
    jdbc = skills.upsert_skill(make_skill("next-jdbc", "libraries"))
    return plan, malli, jdbc


class TestAssociate:
    """Test attaching skills to a plan."""

    def test_default_position_and_ordering(self, links: PlanSkillStore, seeded):
        """Position defaults to 0 and ties sort by insertion."""
        plan, malli, jdbc = seeded
        link = links.associate_skill({"plan_id": plan.id, "skill_id": malli.id})
        assert link.position == 0
        links.associate_skill({"plan_id": plan.id, "skill_id": jdbc.id, "position": 0})
        listed = links.list_plan_skills(plan.id)
        assert [s.name for s in listed] == ["malli", "next-jdbc"]
        assert listed[0].category == "libraries"

    def test_position_orders_list(self, links: PlanSkillStore, seeded):
        """Skills are listed by ascending position."""
        plan, malli, jdbc = seeded
        links.associate_skill({"plan_id": plan.id, "skill_id": malli.id, "position": 5})
        links.associate_skill({"plan_id": plan.id, "skill_id": jdbc.id, "position": 1})
        assert [s.name for s in links.list_plan_skills(plan.id)] == ["next-jdbc", "malli"]

    def test_duplicate(self, links: PlanSkillStore, seeded):
        """The same skill cannot be attached twice."""
        plan, malli, _ = seeded
        links.associate_skill({"plan_id": plan.id, "skill_id": malli.id})
        with pytest.raises(DuplicateError, match="already associated"):
            links.associate_skill({"plan_id": plan.id, "skill_id": malli.id})

    def test_missing_plan_or_skill(self, links: PlanSkillStore, seeded):
        """Both the plan and the skill must exist."""
        plan, malli, _ = seeded
        with pytest.raises(NotFoundError):
            links.associate_skill({"plan_id": 999, "skill_id": malli.id})
        with pytest.raises(NotFoundError):
            links.associate_skill({"plan_id": plan.id, "skill_id": 999})

    def test_invalid(self, links: PlanSkillStore, seeded):
        """Negative positions and non-integer ids are rejected."""
        plan, malli, _ = seeded
        with pytest.raises(ValidationFailed):
            links.associate_skill({"plan_id": plan.id, "skill_id": malli.id, "position": -1})
        with pytest.raises(ValidationFailed):
            links.associate_skill({"plan_id": "x", "skill_id": malli.id})


class TestDissociate:
    """Test detaching skills from a plan."""

    def test_returns_rows_deleted(self, links: PlanSkillStore, seeded):
        """Detaching reports how many links were removed."""
        plan, malli, _ = seeded
        links.associate_skill({"plan_id": plan.id, "skill_id": malli.id})
        assert links.dissociate_skill(plan.id, malli.id) == 1
        assert links.dissociate_skill(plan.id, malli.id) == 0
        assert links.list_plan_skills(plan.id) == []

    def test_deleting_plan_removes_links(self, db, plans, links: PlanSkillStore, seeded):
        """Deleting the plan cascades to its skill links."""
        plan, malli, _ = seeded
        links.associate_skill({"plan_id": plan.id, "skill_id": malli.id})
        plans.delete_plan(plan.id)
        assert db.fetchall("SELECT * FROM plan_skills") == []


class TestSkillLookup:
    """Test resolving skills to attach."""

    def test_by_name_and_path(self, links: PlanSkillStore, seeded):
        """Skills are found by name or by path."""
        _, malli, _ = seeded
        assert links.get_skill_by_name("malli").id == malli.id
        assert links.get_skill_by_path(malli.path).id == malli.id
        assert links.get_skill_by_name("ghost") is None

    def test_empty_path_rejected(self, links: PlanSkillStore):
        """An empty path is a validation error."""
        with pytest.raises(ValidationFailed):
            links.get_skill_by_path("")
