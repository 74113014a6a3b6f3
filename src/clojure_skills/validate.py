"""Check skill files against the authoring conventions.

Errors (the file is not a usable skill):
  - no YAML frontmatter
  - ``name`` missing, longer than 64 chars, or not lowercase kebab-case
  - ``description`` missing or longer than 1024 chars

Warnings (recommended sections absent):
  Quick Start, Core Concepts, Workflows, Best Practices, Common Issues
"""

from __future__ import annotations

import enum
import re
from pathlib import Path

from pydantic import BaseModel, ValidationError

from .models import SkillFrontmatter
from .sync import extract_frontmatter, scan_markdown_files

RECOMMENDED_SECTIONS = (
    "Quick Start",
    "Core Concepts",
    "Workflows",
    "Best Practices",
    "Common Issues",
)

_HEADING = re.compile(r"^#{1,6}\s+(.+?)\s*#*\s*$", re.MULTILINE)


class Severity(str, enum.Enum):
    ERROR = "error"
    WARNING = "warning"


class Issue(BaseModel):
    """One problem found in a skill file."""

    path: str
    severity: Severity
    message: str


def headings(markdown: str) -> list[str]:
    """Text of every ATX heading in a markdown document."""
    return [m.group(1) for m in _HEADING.finditer(markdown)]


def check_skill_file(path: Path | str) -> list[Issue]:
    """Check one skill file.

    Args:
        path: A skill markdown file.

    Returns:
        list[Issue]: Problems found, errors first. Empty means clean.
    """
    path = str(path)
    content = Path(path).read_text(encoding="utf-8")
    frontmatter, body = extract_frontmatter(content)
    issues: list[Issue] = []

    if frontmatter is None:
        issues.append(Issue(path=path, severity=Severity.ERROR, message="missing YAML frontmatter"))
    else:
        try:
            SkillFrontmatter.model_validate(frontmatter)
        except ValidationError as exc:
            for err in exc.errors(include_url=False):
                field = ".".join(str(p) for p in err["loc"]) or "frontmatter"
                issues.append(
                    Issue(path=path, severity=Severity.ERROR, message=f"{field}: {err['msg']}")
                )

    found = {h.strip().lower() for h in headings(body)}
    for section in RECOMMENDED_SECTIONS:
        if section.lower() not in found:
            issues.append(
                Issue(path=path, severity=Severity.WARNING, message=f"missing section: {section}")
            )
    return issues


def check_paths(paths: list[Path | str]) -> list[Issue]:
    """Check files and every ``.md`` file under directories."""
    issues: list[Issue] = []
    for p in paths:
        files = scan_markdown_files(p) if Path(p).is_dir() else [str(p)]
        for file in files:
            issues.extend(check_skill_file(file))
    return issues
