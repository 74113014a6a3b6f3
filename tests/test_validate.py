"""Tests for the skill file checker."""

from __future__ import annotations

from pathlib import Path
from textwrap import dedent

from clojure_skills.validate import Severity, check_paths, check_skill_file, headings

COMPLETE = dedent("""\
    ---
    name: complete-skill
    description: Has every recommended section
    ---

    # Complete

    ## Quick Start
    ## Core Concepts
    ## Workflows
    ## Best Practices
    ## Common Issues
    """)


def _write(tmp_path: Path, name: str, content: str) -> Path:
    path = tmp_path / name
    path.write_text(content)
    return path


class TestHeadings:
    """Test markdown heading extraction."""

    def test_atx_headings(self):
        """ATX headings are found with closing hashes stripped."""
        assert headings("# One\n\ntext\n### Three ###\n") == ["One", "Three"]


class TestCheckSkillFile:
    """Test checking a single skill file."""

    def test_clean_file(self, tmp_path: Path):
        """A complete skill file has no issues."""
        assert check_skill_file(_write(tmp_path, "ok.md", COMPLETE)) == []

    def test_missing_frontmatter(self, tmp_path: Path):
        """A file without frontmatter is an error."""
        issues = check_skill_file(_write(tmp_path, "bare.md", "# Bare\n"))
        errors = [i for i in issues if i.severity == Severity.ERROR]
        assert [i.message for i in errors] == ["missing YAML frontmatter"]

    def test_bad_name_and_missing_description(self, tmp_path: Path):
        """Bad names and missing descriptions are errors."""
        content = COMPLETE.replace("name: complete-skill", "name: Not Kebab").replace(
            "description: Has every recommended section\n", ""
        )
        issues = check_skill_file(_write(tmp_path, "bad.md", content))
        messages = [i.message for i in issues if i.severity == Severity.ERROR]
        assert any(m.startswith("name:") for m in messages)
        assert any(m.startswith("description:") for m in messages)

    def test_missing_sections_are_warnings(self, tmp_path: Path):
        """Missing recommended sections are warnings."""
        content = COMPLETE.replace("## Workflows\n", "")
        issues = check_skill_file(_write(tmp_path, "partial.md", content))
        assert [(i.severity, i.message) for i in issues] == [
            (Severity.WARNING, "missing section: Workflows")
        ]


class TestCheckPaths:
    """Test checking whole directories."""

    def test_directory_scan(self, project: Path):
        """Every markdown file under a directory is checked."""
        issues = check_paths([project / "skills"])
        files = {Path(i.path).name for i in issues}
        assert files == {"clojure_intro.md", "malli.md", "next_jdbc.md"}
        assert all(i.severity == Severity.WARNING for i in issues)
