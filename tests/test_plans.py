"""Tests for implementation plans."""

from __future__ import annotations

import pytest

from clojure_skills.db.plans import PlanStore
from clojure_skills.db.tasks import TaskStore
from clojure_skills.errors import DuplicateError, NotFoundError, ValidationFailed
from clojure_skills.models import PlanStatus


class TestCreate:
    """Test plan creation."""

    def test_defaults(self, plans: PlanStore):
        """A new plan starts as a draft with empty content."""
        plan = plans.create_plan({"name": "auth-rework"})
        assert plan.id >= 1
        assert plan.status == PlanStatus.DRAFT
        assert plan.content == ""
        assert plan.created_at is not None
        assert plan.completed_at is None

    def test_all_fields(self, plans: PlanStore):
        """Every optional field is stored."""
        plan = plans.create_plan(
            {
                "name": "api",
                "title": "API Plan",
                "description": "REST endpoints",
                "content": "# Steps",
                "status": "in-progress",
                "created_by": "alice",
                "assigned_to": "bob",
            }
        )
        assert plan.status == PlanStatus.IN_PROGRESS
        assert plan.assigned_to == "bob"

    def test_duplicate_name(self, plans: PlanStore):
        """Plan names are unique."""
        plans.create_plan({"name": "dup"})
        with pytest.raises(DuplicateError):
            plans.create_plan({"name": "dup"})

    @pytest.mark.parametrize(
        "data",
        [{}, {"name": ""}, {"name": "x" * 256}, {"name": "ok", "status": "bogus"}],
    )
    def test_invalid(self, plans: PlanStore, data):
        """Missing, empty or oversized names and unknown statuses are rejected."""
        with pytest.raises(ValidationFailed, match="Validation failed"):
            plans.create_plan(data)


class TestLookup:
    """Test finding plans."""

    def test_by_id_and_name(self, plans: PlanStore):
        """Plans are found by id or name; unknown ids give None."""
        plan = plans.create_plan({"name": "lookup"})
        assert plans.get_plan_by_id(plan.id).name == "lookup"
        assert plans.get_plan_by_name("lookup").id == plan.id
        assert plans.get_plan_by_id(9999) is None

    def test_invalid_id(self, plans: PlanStore):
        """Non-positive and string ids are rejected."""
        with pytest.raises(ValidationFailed):
            plans.get_plan_by_id(0)
        with pytest.raises(ValidationFailed):
            plans.get_plan_by_id("1")

    def test_resolve(self, plans: PlanStore):
        """resolve accepts an id, a numeric string or a name."""
        plan = plans.create_plan({"name": "resolve-me"})
        assert plans.resolve(str(plan.id)).id == plan.id
        assert plans.resolve(plan.id).id == plan.id
        assert plans.resolve("resolve-me").id == plan.id
        assert plans.resolve("ghost") is None


class TestList:
    """Test listing plans."""

    def test_newest_first_and_filters(self, plans: PlanStore):
        """Plans list newest first and filter by status and assignee."""
        plans.create_plan({"name": "one", "assigned_to": "alice"})
        plans.create_plan({"name": "two", "status": "in-progress"})
        plans.create_plan({"name": "three", "assigned_to": "alice"})

        assert [p.name for p in plans.list_plans()] == ["three", "two", "one"]
        assert [p.name for p in plans.list_plans(status="in-progress")] == ["two"]
        assert [p.name for p in plans.list_plans(assigned_to="alice")] == ["three", "one"]
        assert [p.name for p in plans.list_plans(limit=1, offset=1)] == ["two"]

    def test_bad_arguments(self, plans: PlanStore):
        """Unknown statuses and bad paging values are rejected."""
        with pytest.raises(ValidationFailed):
            plans.list_plans(status="nope")
        with pytest.raises(ValidationFailed):
            plans.list_plans(limit=0)
        with pytest.raises(ValidationFailed):
            plans.list_plans(offset=-1)


class TestUpdate:
    """Test partial plan updates."""

    def test_partial_update(self, plans: PlanStore):
        """Only the given fields change; unknown keys are ignored."""
        plan = plans.create_plan({"name": "upd", "title": "Old"})
        updated = plans.update_plan(plan.id, {"title": "New", "status": "in-progress", "bogus": 1})
        assert updated.title == "New"
        assert updated.status == PlanStatus.IN_PROGRESS
        assert updated.name == "upd"

    def test_nothing_to_update(self, plans: PlanStore):
        """An empty update is rejected."""
        plan = plans.create_plan({"name": "empty"})
        with pytest.raises(ValidationFailed, match="No fields to update"):
            plans.update_plan(plan.id, {})

    def test_missing_plan(self, plans: PlanStore):
        """Updating a missing plan should fail."""
        with pytest.raises(NotFoundError, match="Plan not found"):
            plans.update_plan(4242, {"title": "x"})

    def test_rename_to_existing(self, plans: PlanStore):
        """Renaming onto another plan's name is a duplicate."""
        plans.create_plan({"name": "a"})
        b = plans.create_plan({"name": "b"})
        with pytest.raises(DuplicateError):
            plans.update_plan(b.id, {"name": "a"})

    @pytest.mark.parametrize("column", ["name", "content", "status"])
    def test_null_for_required_column(self, plans: PlanStore, column):
        """Clearing a NOT NULL column is a validation error, not a duplicate."""
        plan = plans.create_plan({"name": "keep"})
        with pytest.raises(ValidationFailed, match="may not be null"):
            plans.update_plan(plan.id, {column: None})
        assert plans.get_plan_by_name("keep") is not None

    def test_null_for_optional_column(self, plans: PlanStore):
        """Nullable columns can be cleared."""
        plan = plans.create_plan({"name": "clear", "title": "T"})
        assert plans.update_plan(plan.id, {"title": None}).title is None


class TestLifecycle:
    """Test completing, archiving and deleting plans."""

    def test_complete_sets_timestamp(self, plans: PlanStore):
        """Completing sets the status and completed_at."""
        plan = plans.create_plan({"name": "finish"})
        done = plans.complete_plan(plan.id)
        assert done.status == PlanStatus.COMPLETED
        assert done.completed_at is not None

    def test_archive(self, plans: PlanStore):
        """Archiving sets the archived status."""
        plan = plans.create_plan({"name": "old"})
        assert plans.archive_plan(plan.id).status == PlanStatus.ARCHIVED

    def test_delete_cascades(self, db, plans: PlanStore):
        """Deleting a plan removes its task lists and tasks."""
        plan = plans.create_plan({"name": "cascade"})
        tasks = TaskStore(db)
        tl = tasks.create_task_list({"plan_id": plan.id, "name": "list"})
        tasks.create_task({"list_id": tl.id, "name": "task"})

        deleted = plans.delete_plan(plan.id)
        assert deleted.name == "cascade"
        assert plans.get_plan_by_id(plan.id) is None
        assert tasks.get_task_list_by_id(tl.id) is None
        assert db.fetchall("SELECT * FROM tasks") == []

    def test_delete_missing(self, plans: PlanStore):
        """Deleting a missing plan should fail."""
        with pytest.raises(NotFoundError):
            plans.delete_plan(999)


class TestSearch:
    """Test full-text search over plans."""

    def test_search_plans(self, plans: PlanStore):
        """Search matches plan content and marks the hit."""
        plans.create_plan({"name": "auth", "content": "Implement OAuth login"})
        plans.create_plan({"name": "db", "content": "Migrate to PostgreSQL"})
        results = plans.search_plans("oauth")
        assert [p.name for p in results] == ["auth"]
        assert "[OAuth]" in results[0].snippet

    def test_search_sees_updates(self, plans: PlanStore):
        """The search index follows content updates."""
        plan = plans.create_plan({"name": "evolving", "content": "alpha"})
        plans.update_plan(plan.id, {"content": "omega"})
        assert plans.search_plans("alpha") == []
        assert [p.name for p in plans.search_plans("omega")] == ["evolving"]
