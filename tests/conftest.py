"""Shared fixtures: a temp database, a temp skills project, CLI environment."""

from __future__ import annotations

from pathlib import Path
from textwrap import dedent

import pytest

from clojure_skills.config import AppConfig
from clojure_skills.db.core import Database
from clojure_skills.db.plans import PlanStore
from clojure_skills.db.skills import SkillStore
from clojure_skills.models import ParsedSkill
from clojure_skills.sync import compute_hash

CLOJURE_INTRO = dedent("""\
    ---
    name: clojure-intro
    description: Introduction to Clojure data structures and the REPL
    title: Clojure Intro
    ---

    # Clojure Intro

    ## Quick Start

    Start a REPL and evaluate `(+ 1 2)`.

    ## Core Concepts

    Immutable persistent collections: vectors, maps, sets.
    """)

MALLI = dedent("""\
    ---
    name: malli
    description: Data validation with malli schemas
    ---

    # Malli

    Validate data with schemas like `[:map [:name string?]]`.
    """)

NEXT_JDBC = dedent("""\
    ---
    name: next-jdbc
    description: Database access with next.jdbc
    ---

    # next.jdbc

    Run SQL queries from Clojure.
    """)

PROMPT_CONFIG = dedent("""\
    title: Clojure Agent
    description: A coding agent for Clojure
    author: Test Author
    date: 2025-01-15
    skills:
      - skills/language/clojure_intro.md
      - skills/libraries/data_validation/malli.md
    """)

PROMPT_BODY = "# Clojure Agent\n\nYou are a Clojure expert.\n"


@pytest.fixture
def db(tmp_path: Path) -> Database:
    """A migrated database in a temp directory."""
    database = Database(tmp_path / "test.db")
    database.migrate()
    yield database
    database.close()


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """A skills project with three skills and one prompt."""
    root = tmp_path / "project"
    (root / "skills" / "language").mkdir(parents=True)
    (root / "skills" / "libraries" / "data_validation").mkdir(parents=True)
    (root / "skills" / "libraries" / "database").mkdir(parents=True)
    (root / "prompts").mkdir()
    (root / "prompt_configs").mkdir()

    (root / "skills" / "language" / "clojure_intro.md").write_text(CLOJURE_INTRO)
    (root / "skills" / "libraries" / "data_validation" / "malli.md").write_text(MALLI)
    (root / "skills" / "libraries" / "database" / "next_jdbc.md").write_text(NEXT_JDBC)
    (root / "prompt_configs" / "clojure_agent.yaml").write_text(PROMPT_CONFIG)
    (root / "prompts" / "clojure_agent.md").write_text(PROMPT_BODY)
    return root


@pytest.fixture
def config(tmp_path: Path, project: Path) -> AppConfig:
    return AppConfig.model_validate(
        {
            "database": {"path": str(tmp_path / "test.db")},
            "project": {"root": str(project)},
        }
    )


@pytest.fixture
def cli_env(tmp_path: Path, project: Path) -> dict[str, str]:
    """Environment pointing the CLI at temp config, database and project."""
    return {
        "XDG_CONFIG_HOME": str(tmp_path / "xdg"),
        "CLOJURE_SKILLS_DB_PATH": str(tmp_path / "cli.db"),
        "CLOJURE_SKILLS_PROJECT_ROOT": str(project),
        "COLUMNS": "200",
    }


def _make_skill(
    name: str,
    category: str = "language",
    content: str = "# Skill\n",
    description: str | None = None,
) -> ParsedSkill:
    return ParsedSkill(
        path=f"/skills/{category}/{name}.md",
        category=category,
        name=name,
        title=name.title(),
        description=description,
        content=content,
        file_hash=compute_hash(content),
        size_bytes=len(content),
        token_count=len(content) // 4,
    )


@pytest.fixture
def make_skill():
    """Factory for ParsedSkill records that never touch the filesystem."""
    return _make_skill


@pytest.fixture
def skills(db: Database) -> SkillStore:
    return SkillStore(db)


@pytest.fixture
def plans(db: Database) -> PlanStore:
    return PlanStore(db)
