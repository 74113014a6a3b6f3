"""Sync skill and prompt files into the database.

Layout under the project root:
    skills/<category...>/<name>.md      # skill files with YAML frontmatter
    prompts/<name>.md                   # prompt bodies
    prompt_configs/<name>.yaml          # prompt metadata + embedded skill list

Files are re-indexed only when their SHA-256 content hash changes. A file
that fails to parse is reported and skipped; it never aborts the run.
"""

from __future__ import annotations

import hashlib
import logging
import sqlite3
from pathlib import Path
from typing import Any, Optional

import yaml

from .config import AppConfig
from .db.core import Database
from .db.fragments import FragmentStore
from .db.skills import SkillStore
from .errors import DatabaseError
from .models import ParsedSkill, PromptConfig, SyncReport

logger = logging.getLogger("clojure_skills.sync")

FRONTMATTER_MARKER = "---"


def compute_hash(content: str) -> str:
    """SHA-256 hex digest of UTF-8 encoded content."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def estimate_tokens(text: str) -> int:
    """Rough token count: four characters per token."""
    return len(text) // 4


def extract_frontmatter(content: str) -> tuple[Optional[dict[str, Any]], str]:
    """Split YAML frontmatter from markdown.

    The first line must be exactly ``---`` and the block ends at the next
    line that is exactly ``---``.

    Args:
        content: Full markdown text.

    Returns:
        (frontmatter, body). frontmatter is None when absent or
        unparseable, in which case body is the unmodified content.
    """
    lines = content.splitlines()
    if not lines or lines[0] != FRONTMATTER_MARKER:
        return None, content

    try:
        end = lines.index(FRONTMATTER_MARKER, 1)
    except ValueError:
        return None, content

    body = "\n".join(lines[end + 1:])
    try:
        data = yaml.safe_load("\n".join(lines[1:end]))
    except yaml.YAMLError as exc:
        logger.warning("Failed to parse frontmatter: %s", exc)
        return None, content

    if data is None:
        return None, body
    if not isinstance(data, dict):
        logger.warning("Frontmatter is not a mapping (got %s)", type(data).__name__)
        return None, content
    return data, body


def parse_skill_path(path: str | Path) -> dict[str, str]:
    """Derive category and name from a skill path.

    ``skills/libraries/data_validation/malli.md`` gives category
    ``libraries/data_validation`` and name ``malli``. Paths with no
    ``skills`` directory get category ``uncategorized``.
    """
    parts = Path(path).parts
    name = Path(path).stem
    if "skills" in parts:
        idx = parts.index("skills")
        category_parts = parts[idx + 1:-1]
    else:
        category_parts = ()
    category = "/".join(category_parts) if category_parts else "uncategorized"
    return {"category": category, "name": name}


def _scan(directory: Path, suffix: str) -> list[str]:
    if not directory.is_dir():
        return []
    return sorted(str(p) for p in directory.rglob(f"*{suffix}") if p.is_file())


def scan_markdown_files(directory: Path | str) -> list[str]:
    """All ``.md`` files under a directory, sorted. Missing directory gives []."""
    return _scan(Path(directory), ".md")


def scan_prompt_config_files(directory: Path | str) -> list[str]:
    """All ``.yaml`` files under a directory, sorted."""
    return _scan(Path(directory), ".yaml")


def parse_skill_file(path: str | Path, skills_root: Optional[Path] = None) -> ParsedSkill:
    """Read a skill file into a record ready for upsert.

    Args:
        path: The skill markdown file.
        skills_root: The configured skills directory. When the file lies
            under it, the category is the relative directory path;
            otherwise it is derived by parse_skill_path().
    """
    file = Path(path)
    content = file.read_text(encoding="utf-8")
    frontmatter, _body = extract_frontmatter(content)
    frontmatter = frontmatter or {}
    location = parse_skill_path(file)
    if skills_root is not None and file.is_relative_to(skills_root):
        parents = file.relative_to(skills_root).parent.parts
        location["category"] = "/".join(parents) if parents else "uncategorized"
    return ParsedSkill(
        path=str(file),
        category=location["category"],
        name=location["name"],
        title=_as_text(frontmatter.get("title")),
        description=_as_text(frontmatter.get("description")),
        content=content,
        file_hash=compute_hash(content),
        size_bytes=file.stat().st_size,
        token_count=estimate_tokens(content),
    )


def parse_prompt_config_file(path: str | Path) -> PromptConfig:
    """Read a prompt_configs/*.yaml file.

    Raises:
        ValueError: If the file is not a YAML mapping.
    """
    file = Path(path)
    content = file.read_text(encoding="utf-8")
    raw = yaml.safe_load(content) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"{file} must be a YAML mapping, got {type(raw).__name__}")
    return PromptConfig.model_validate(
        {
            **raw,
            "path": str(file),
            "file_name": file.stem,
            "name": raw.get("name") or file.stem,
            "skills": raw.get("skills") or [],
            "content": content,
        }
    )


def _as_text(value: Any) -> Optional[str]:
    return None if value is None else str(value)


class Syncer:
    """Sync files from a project tree into a database.

    Args:
        db: An open, migrated database.
        config: Application config naming the project directories.
    """

    def __init__(self, db: Database, config: AppConfig) -> None:
        self.db = db
        self.config = config
        self.root = config.project_root()
        self.skills = SkillStore(db)
        self.fragments = FragmentStore(db)

    def sync_skill(self, path: str | Path) -> SyncReport:
        """Index one skill file unless its hash is unchanged."""
        path = str(path)
        report = SyncReport()
        try:
            parsed = parse_skill_file(path, self.config.skills_path())
            existing = self.skills.get_skill_by_path(path)
            if existing and existing.file_hash == parsed.file_hash:
                logger.info("Skipped skill sync (unchanged): %s", path)
                report.skipped.append(path)
            else:
                self.skills.upsert_skill(parsed)
                logger.info("Synced skill: %s", path)
                report.synced.append(path)
        except (OSError, ValueError, DatabaseError) as exc:
            logger.error("Error syncing skill %s: %s", path, exc)
            report.errors.append(f"{path}: {exc}")
        return report

    def sync_all_skills(self) -> SyncReport:
        skills_dir = self.config.skills_path()
        files = scan_markdown_files(skills_dir)
        logger.info("Syncing %d skills from %s", len(files), skills_dir)
        report = SyncReport()
        for file in files:
            report = report.merge(self.sync_skill(file))
        return report

    def prompt_content_path(self, prompt_name: str) -> Path:
        return self.config.prompts_path() / f"{prompt_name}.md"

    def sync_prompt_from_config(self, config_path: str | Path) -> SyncReport:
        """Index one prompt: metadata from YAML, body from prompts/<name>.md.

        The stored hash covers both files, so editing either re-syncs.
        """
        report = SyncReport()
        try:
            prompt_config = parse_prompt_config_file(config_path)
            content_path = self.prompt_content_path(prompt_config.name)
            content = content_path.read_text(encoding="utf-8")
            file_hash = compute_hash(f"{prompt_config.content}\n---\n{content}")
            existing = self.skills.get_prompt_by_name(prompt_config.name)
            if existing and existing.file_hash == file_hash:
                logger.info("Skipped prompt sync (unchanged): %s", prompt_config.name)
                report.skipped.append(prompt_config.name)
                return report

            self.skills.upsert_prompt(
                {
                    "path": str(content_path),
                    "name": prompt_config.name,
                    "title": prompt_config.title,
                    "author": prompt_config.author,
                    "description": prompt_config.description,
                    "content": content,
                    "file_hash": file_hash,
                    "size_bytes": Path(config_path).stat().st_size + content_path.stat().st_size,
                    "token_count": estimate_tokens(content),
                }
            )
            logger.info("Synced prompt from config: %s", prompt_config.name)
            report.synced.append(prompt_config.name)
        except (OSError, ValueError, yaml.YAMLError, DatabaseError) as exc:
            logger.error("Error syncing prompt from config %s: %s", config_path, exc)
            report.errors.append(f"{config_path}: {exc}")
        return report

    def sync_all_prompts(self) -> SyncReport:
        configs_dir = self.config.prompt_configs_path()
        files = scan_prompt_config_files(configs_dir)
        logger.info("Syncing %d prompts from %s", len(files), configs_dir)
        report = SyncReport()
        for file in files:
            report = report.merge(self.sync_prompt_from_config(file))
        return report

    def resolve_skill_path(self, relative_path: str) -> str:
        """Turn a skill path from a prompt config into the stored absolute path."""
        return str(self.root / relative_path)

    def sync_prompt_skills_for_config(self, config_path: str | Path) -> SyncReport:
        """Rebuild the ``<prompt>-embedded`` fragment from a prompt config.

        The fragment's skills are replaced in config order and the prompt's
        fragment reference is recreated. Unknown skills are warned about
        and left out.
        """
        report = SyncReport()
        try:
            prompt_config = parse_prompt_config_file(config_path)
        except (OSError, ValueError, yaml.YAMLError) as exc:
            logger.error("Error syncing prompt fragment from %s: %s", config_path, exc)
            report.errors.append(f"{config_path}: {exc}")
            return report

        name = prompt_config.name
        prompt = self.skills.get_prompt_by_name(name)
        if prompt is None:
            logger.warning("Prompt not found in database: %s (config %s)", name, config_path)
            report.warnings.append(f"Prompt '{name}' not found in database")
            return report

        position = 0
        try:
            with self.db.transaction():
                fragment = self.fragments.get_or_create_fragment(
                    f"{name}-embedded",
                    title=f"{prompt_config.title or name} Embedded Skills",
                    description=f"Embedded skills for {name} prompt",
                )
                self.fragments.clear_skills(fragment.id)

                for skill_path in prompt_config.skills:
                    skill = self.skills.get_skill_by_path(self.resolve_skill_path(skill_path))
                    if skill is None:
                        logger.warning(
                            "Skill not found in database: %s (prompt %s)", skill_path, name
                        )
                        report.warnings.append(f"Skill not found: {skill_path}")
                        continue
                    self.fragments.associate_skill(fragment.id, skill.id, position)
                    position += 1

                self.fragments.clear_prompt_references(prompt.id)
                self.fragments.add_prompt_reference(prompt.id, fragment.id, position=1)
        except (DatabaseError, sqlite3.IntegrityError) as exc:
            logger.error("Error syncing prompt fragment for %s: %s", name, exc)
            report.errors.append(f"{config_path}: {exc}")
            return report

        logger.info("Synced fragment for prompt %s (%d skills)", name, position)
        report.synced.append(f"{name}-embedded")
        return report

    def sync_all_prompt_skills(self) -> SyncReport:
        report = SyncReport()
        for file in scan_prompt_config_files(self.config.prompt_configs_path()):
            report = report.merge(self.sync_prompt_skills_for_config(file))
        return report

    def sync_all(self) -> SyncReport:
        """Sync skills, then prompts, then prompt fragments."""
        report = self.sync_all_skills()
        report = report.merge(self.sync_all_prompts())
        report = report.merge(self.sync_all_prompt_skills())
        logger.info(
            "Sync complete: %d synced, %d skipped, %d errors",
            len(report.synced), len(report.skipped), len(report.errors),
        )
        return report


def sync_all(db: Database, config: AppConfig) -> SyncReport:
    """Convenience wrapper: ``Syncer(db, config).sync_all()``."""
    return Syncer(db, config).sync_all()
