"""Tests for the clojure-skills CLI."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from clojure_skills import __version__
from clojure_skills.cli import main


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def invoke(runner, cli_env):
    """Run the CLI against the temp project and database."""

    def _invoke(*args: str):
        return runner.invoke(main, list(args), env=cli_env)

    return _invoke


@pytest.fixture
def synced(invoke):
    result = invoke("sync")
    assert result.exit_code == 0, result.output
    return invoke


@pytest.fixture
def plan_with_tasks(invoke):
    """A plan with one task list holding two tasks."""
    assert invoke("plan", "create", "auth-rework", "--title", "Auth").exit_code == 0
    assert invoke("task-list", "create", "auth-rework", "Backend").exit_code == 0
    assert invoke("task", "create", "1", "Add tokens").exit_code == 0
    assert invoke("task", "create", "1", "Add sessions").exit_code == 0
    return invoke


class TestBasics:
    def test_version(self, invoke):
        result = invoke("--version")
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_init_writes_config_and_db(self, invoke, cli_env):
        result = invoke("init")
        assert result.exit_code == 0, result.output
        assert "Initialized" in result.output
        assert (Path(cli_env["XDG_CONFIG_HOME"]) / "clojure-skills" / "config.yaml").exists()
        assert Path(cli_env["CLOJURE_SKILLS_DB_PATH"]).exists()

    def test_bad_config_file_exits_1(self, invoke, cli_env):
        config = Path(cli_env["XDG_CONFIG_HOME"]) / "clojure-skills" / "config.yaml"
        config.parent.mkdir(parents=True)
        config.write_text("search: [broken")
        result = invoke("stats")
        assert result.exit_code == 1
        assert "Config error" in result.output


    def test_config_path(self, invoke, cli_env):
        result = invoke("config-path")
        assert result.output.strip().endswith("clojure-skills/config.yaml")
        assert result.output.startswith(cli_env["XDG_CONFIG_HOME"])


class TestSyncAndCatalogue:
    def test_sync_reports(self, invoke):
        result = invoke("sync")
        assert result.exit_code == 0
        assert "Sync complete" in result.output
        assert "0 errors" in result.output

    def test_second_sync_skips(self, synced):
        result = synced("sync")
        assert "4 unchanged" in result.output

    def test_list_skills(self, synced):
        result = synced("list-skills")
        assert result.exit_code == 0
        assert "malli" in result.output
        assert "next_jdbc" in result.output

    def test_list_skills_category_json(self, synced):
        result = synced("list-skills", "--category", "libraries", "--json")
        names = [s["name"] for s in json.loads(result.stdout)]
        assert names == ["malli", "next_jdbc"]

    def test_list_prompts_and_categories(self, synced):
        assert "clojure_agent" in synced("list-prompts").output
        result = synced("list-categories")
        assert "language" in result.output
        assert "libraries/database" in result.output

    def test_show_skill(self, synced):
        result = synced("show-skill", "malli")
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["category"] == "libraries/data_validation"
        assert "[:map [:name string?]]" in data["content"]

    def test_show_skill_missing(self, synced):
        result = synced("show-skill", "ghost")
        assert result.exit_code == 1
        assert "Skill not found" in result.output

    def test_show_prompt(self, synced):
        data = json.loads(synced("show-prompt", "clojure_agent").stdout)
        assert data["title"] == "Clojure Agent"
        assert data["skills"] == ["clojure_intro", "malli"]
        assert data["fragments"][0]["fragment_name"] == "clojure_agent-embedded"

    def test_render_prompt(self, synced):
        result = synced("render-prompt", "clojure_agent")
        assert result.exit_code == 0
        assert result.output.startswith("# Clojure Agent")
        assert result.output.index("# Clojure Intro") < result.output.index("# Malli")

    def test_render_prompt_to_file(self, synced, tmp_path: Path):
        out = tmp_path / "rendered.md"
        assert synced("render-prompt", "clojure_agent", "-o", str(out)).exit_code == 0
        assert "You are a Clojure expert." in out.read_text()

    def test_stats_json(self, synced):
        data = json.loads(synced("stats", "--json").stdout)
        assert data["skills"] == 3
        assert data["prompts"] == 1
        assert data["schema_version"] == 6


class TestSearch:
    def test_search_skills(self, synced):
        result = synced("search", "schemas", "--type", "skills")
        assert result.exit_code == 0
        assert "malli" in result.output

    def test_search_json_all(self, synced):
        data = json.loads(synced("search", "clojure", "--json").stdout)
        assert set(data) == {"skills", "prompts"}
        assert data["prompts"][0]["name"] == "clojure_agent"
        assert "content" not in data["prompts"][0]

    def test_search_category(self, synced):
        data = json.loads(synced("search", "clojure", "--category", "libraries", "--json").stdout)
        assert {s["category"] for s in data["skills"]} <= {
            "libraries/data_validation",
            "libraries/database",
        }

    def test_no_results(self, synced):
        result = synced("search", "zzzznothing")
        assert result.exit_code == 0
        assert "No results found" in result.output

    def test_bad_max_results(self, synced):
        result = synced("search", "clojure", "--max-results", "0")
        assert result.exit_code == 1
        assert "Validation failed" in result.output


class TestResetDb:
    def test_requires_force(self, synced):
        result = synced("reset-db")
        assert result.exit_code == 1
        assert "Use --force to confirm" in result.output
        assert "malli" in synced("list-skills").output

    def test_force(self, synced):
        result = synced("reset-db", "--force")
        assert result.exit_code == 0
        assert "Database reset" in result.output
        assert "No skills indexed" in synced("list-skills").output


class TestValidate:
    def test_project_skills_only_warn(self, invoke):
        result = invoke("validate")
        assert result.exit_code == 0
        assert "0 errors" in result.output

    def test_strict_fails_on_warnings(self, invoke):
        assert invoke("validate", "--strict").exit_code == 1

    def test_bad_file(self, invoke, tmp_path: Path):
        bad = tmp_path / "bad.md"
        bad.write_text("# no frontmatter\n")
        result = invoke("validate", str(bad))
        assert result.exit_code == 1
        assert "missing YAML frontmatter" in result.output


class TestPlans:
    def test_create_and_list(self, invoke):
        result = invoke("plan", "create", "api", "--title", "API work", "--assigned-to", "bob")
        assert result.exit_code == 0
        assert "Created plan 1" in result.output

        listed = json.loads(invoke("plan", "list", "--json").stdout)
        assert [(p["name"], p["assigned_to"]) for p in listed] == [("api", "bob")]

    def test_duplicate_name_fails(self, invoke):
        invoke("plan", "create", "api")
        result = invoke("plan", "create", "api")
        assert result.exit_code == 1
        assert "already exists" in result.output

    def test_show_by_name_and_id(self, plan_with_tasks):
        by_name = json.loads(plan_with_tasks("plan", "show", "auth-rework", "--json").stdout)
        by_id = json.loads(plan_with_tasks("plan", "show", "1", "--json").stdout)
        assert by_name["id"] == by_id["id"] == 1
        assert [t["name"] for t in by_name["task_lists"][0]["tasks"]] == ["Add tokens", "Add sessions"]

    def test_show_text(self, plan_with_tasks):
        plan_with_tasks("task", "complete", "1")
        result = plan_with_tasks("plan", "show", "auth-rework")
        assert result.exit_code == 0
        assert "[x] 1: Add tokens" in result.output
        assert "[ ] 2: Add sessions" in result.output

    def test_update_complete_archive(self, invoke):
        invoke("plan", "create", "api")
        assert invoke("plan", "update", "api", "--status", "in-progress").exit_code == 0
        assert invoke("plan", "complete", "api").exit_code == 0
        data = json.loads(invoke("plan", "show", "api", "--json").stdout)
        assert data["status"] == "completed"
        assert data["completed_at"] is not None
        assert invoke("plan", "archive", "api").exit_code == 0
        assert json.loads(invoke("plan", "list", "--status", "archived", "--json").stdout)[0]["name"] == "api"

    def test_update_nothing(self, invoke):
        invoke("plan", "create", "api")
        result = invoke("plan", "update", "api")
        assert result.exit_code == 1
        assert "No fields to update" in result.output

    def test_not_found(self, invoke):
        result = invoke("plan", "show", "ghost")
        assert result.exit_code == 1
        assert "Plan not found" in result.output

    def test_search(self, invoke):
        invoke("plan", "create", "auth", "--content", "Implement OAuth login")
        result = invoke("plan", "search", "oauth")
        assert result.exit_code == 0
        assert "auth" in result.output


class TestPlanDelete:
    def test_without_force_shows_impact(self, plan_with_tasks):
        result = plan_with_tasks("plan", "delete", "auth-rework")
        assert result.exit_code == 1
        assert "This will DELETE" in result.output
        assert "Task Lists: 1" in result.output
        assert "Total Tasks: 2" in result.output
        assert "Use --force to confirm" in result.output
        assert plan_with_tasks("plan", "show", "auth-rework").exit_code == 0

    def test_with_force(self, plan_with_tasks):
        result = plan_with_tasks("plan", "delete", "auth-rework", "--force")
        assert result.exit_code == 0
        assert "Deleted plan:" in result.output
        assert plan_with_tasks("plan", "show", "auth-rework").exit_code == 1
        assert "Task list not found" in plan_with_tasks("task-list", "show", "1").output

    def test_missing(self, invoke):
        result = invoke("plan", "delete", "ghost", "--force")
        assert result.exit_code == 1
        assert "Plan not found" in result.output


class TestTaskCommands:
    def test_task_list_show(self, plan_with_tasks):
        result = plan_with_tasks("task-list", "show", "1")
        assert result.exit_code == 0
        assert "Backend" in result.output
        assert "Add sessions" in result.output

    def test_task_list_show_json(self, plan_with_tasks):
        """The JSON form nests the tasks under their list."""
        result = plan_with_tasks("task-list", "show", "1", "--json")
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["name"] == "Backend"
        assert [t["name"] for t in data["tasks"]] == ["Add tokens", "Add sessions"]
        assert data["tasks"][0]["completed"] is False

    def test_task_list_for_missing_plan(self, invoke):
        result = invoke("task-list", "create", "ghost", "Backend")
        assert result.exit_code == 1
        assert "Plan not found" in result.output

    def test_task_in_missing_list(self, invoke):
        result = invoke("task", "create", "99", "Orphan")
        assert result.exit_code == 1
        assert "Task list not found" in result.output

    def test_complete_uncomplete(self, plan_with_tasks):
        assert "Completed task 1" in plan_with_tasks("task", "complete", "1").output
        assert "Reopened task 1" in plan_with_tasks("task", "uncomplete", "1").output

    def test_task_list_delete_requires_force(self, plan_with_tasks):
        result = plan_with_tasks("task-list", "delete", "1")
        assert result.exit_code == 1
        assert "Total Tasks: 2" in result.output
        result = plan_with_tasks("task-list", "delete", "1", "--force")
        assert result.exit_code == 0
        assert "Deleted task list:" in result.output

    def test_task_delete(self, plan_with_tasks):
        result = plan_with_tasks("task", "delete", "2")
        assert result.exit_code == 1
        assert "Use --force to confirm" in result.output
        result = plan_with_tasks("task", "delete", "2", "--force")
        assert result.exit_code == 0
        assert "Deleted task:" in result.output
        assert "Task not found" in plan_with_tasks("task", "delete", "2", "--force").output

    def test_missing_task(self, invoke):
        result = invoke("task", "complete", "42")
        assert result.exit_code == 1
        assert "Task not found" in result.output


class TestPlanSkillCommands:
    def test_add_list_remove(self, synced):
        synced("plan", "create", "api")
        result = synced("plan", "skill", "add", "api", "malli")
        assert result.exit_code == 0, result.output
        assert "Added skill" in result.output
        assert "malli" in synced("plan", "skill", "list", "api").output

        again = synced("plan", "skill", "add", "api", "malli")
        assert again.exit_code == 1
        assert "already associated" in again.output

        assert synced("plan", "skill", "remove", "api", "malli").exit_code == 0
        assert "No skills attached" in synced("plan", "skill", "list", "api").output

    def test_unknown_skill(self, synced):
        synced("plan", "create", "api")
        result = synced("plan", "skill", "add", "api", "ghost")
        assert result.exit_code == 1
        assert "Skill not found" in result.output


class TestPlanResultCommands:
    def test_create_show_search(self, invoke):
        invoke("plan", "create", "api")
        result = invoke(
            "plan", "result", "create", "api",
            "--outcome", "success",
            "--summary", "Shipped on time",
            "--lessons-learned", "Pair on migrations",
            "--metrics", '{"days": 4}',
        )
        assert result.exit_code == 0, result.output

        data = json.loads(invoke("plan", "result", "show", "api").stdout)
        assert data["outcome"] == "success"
        assert json.loads(data["metrics"]) == {"days": 4}

        assert "success" in invoke("plan", "result", "search", "migrations").output

    def test_bad_metrics(self, invoke):
        invoke("plan", "create", "api")
        result = invoke(
            "plan", "result", "create", "api", "--outcome", "success", "--summary", "s",
            "--metrics", "{not json",
        )
        assert result.exit_code == 1
        assert "valid JSON" in result.output

    def test_second_result_rejected(self, invoke):
        invoke("plan", "create", "api")
        invoke("plan", "result", "create", "api", "--outcome", "partial", "--summary", "half")
        result = invoke("plan", "result", "create", "api", "--outcome", "success", "--summary", "all")
        assert result.exit_code == 1
        assert "Result already exists" in result.output

    def test_update_and_delete(self, invoke):
        invoke("plan", "create", "api")
        invoke("plan", "result", "create", "api", "--outcome", "partial", "--summary", "half")
        assert invoke("plan", "result", "update", "api", "--outcome", "success").exit_code == 0
        assert json.loads(invoke("plan", "result", "show", "api").stdout)["outcome"] == "success"
        assert invoke("plan", "result", "delete", "api").exit_code == 1
        assert invoke("plan", "result", "delete", "api", "--force").exit_code == 0
        assert invoke("plan", "result", "show", "api").exit_code == 1
