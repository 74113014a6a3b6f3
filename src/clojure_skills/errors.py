"""Exception types raised by clojure-skills.

Each error subclasses the built-in exception a caller would naturally
catch (ValueError for bad input, LookupError for missing rows), so the CLI
can handle them the same way it handles any other bad input.
"""

from __future__ import annotations

from typing import Any, Optional


class ClojureSkillsError(Exception):
    """Base class for all clojure-skills errors."""


class ConfigError(ClojureSkillsError, ValueError):
    """The configuration file could not be used."""


class ValidationFailed(ClojureSkillsError, ValueError):
    """Input data did not match its schema.

    Args:
        errors: Human-readable validation errors (pydantic ``errors()`` style).
        data: The rejected input.
    """

    def __init__(self, errors: Optional[list[Any]] = None, data: Any = None) -> None:
        self.errors = errors or []
        self.data = data
        detail = "; ".join(_format_error(e) for e in self.errors)
        super().__init__(f"Validation failed: {detail}" if detail else "Validation failed")


class NotFoundError(ClojureSkillsError, LookupError):
    """A referenced row (plan, task, skill, ...) does not exist."""


class DuplicateError(ClojureSkillsError, ValueError):
    """A uniqueness constraint would be violated."""


class DatabaseError(ClojureSkillsError):
    """An unexpected SQLite failure, e.g. a malformed FTS5 query."""


def _format_error(error: Any) -> str:
    if isinstance(error, dict):
        loc = ".".join(str(part) for part in error.get("loc", ()) if part != "")
        msg = error.get("msg", "invalid value")
        return f"{loc}: {msg}" if loc else msg
    return str(error)


class AmbiguousError(ClojureSkillsError, LookupError):
    """A name matched more than one row and no qualifier was given."""
