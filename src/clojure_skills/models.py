"""clojure-skills data models — database records and validated inputs.

Records mirror rows in the SQLite database. Input models (``*Create``,
``*Update``) validate data before it reaches SQL; failures surface as
``ValidationFailed`` through ``validate()``.
"""

from __future__ import annotations

import enum
from datetime import datetime
from typing import Any, Optional, TypeVar

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictInt,
    TypeAdapter,
    ValidationError,
    field_validator,
)

from .errors import ValidationFailed

M = TypeVar("M", bound=BaseModel)

MAX_SKILL_NAME = 64
MAX_SKILL_DESCRIPTION = 1024
MAX_PLAN_NAME = 255
MAX_SUMMARY = 1000


class PlanStatus(str, enum.Enum):
    """Lifecycle states of an implementation plan."""

    DRAFT = "draft"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    ARCHIVED = "archived"
    CANCELLED = "cancelled"


class Outcome(str, enum.Enum):
    """How a finished plan turned out."""

    SUCCESS = "success"
    FAILURE = "failure"
    PARTIAL = "partial"


class SearchType(str, enum.Enum):
    SKILLS = "skills"
    PROMPTS = "prompts"
    ALL = "all"


# ── Validation helpers ────────────────────────────────────────────────

_positive_id = TypeAdapter(StrictInt)


def validate(model: type[M], data: Any) -> M:
    """Validate ``data`` against ``model``.

    Args:
        model: The pydantic model class.
        data: A mapping (or model instance) to validate.

    Returns:
        The validated model instance.

    Raises:
        ValidationFailed: If validation fails.
    """
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise ValidationFailed(exc.errors(include_url=False), data) from exc


def validate_id(value: Any, label: str = "id") -> int:
    """Require a strict integer >= 1 (row ids, plan ids, ...)."""
    try:
        result = _positive_id.validate_python(value)
    except ValidationError as exc:
        raise ValidationFailed([{"loc": (label,), "msg": "must be an integer"}], value) from exc
    if result < 1:
        raise ValidationFailed([{"loc": (label,), "msg": "must be >= 1"}], value)
    return result


def validate_text(value: Any, label: str) -> str:
    """Require a non-empty string."""
    if not isinstance(value, str) or not value:
        raise ValidationFailed([{"loc": (label,), "msg": "must be a non-empty string"}], value)
    return value


def validate_limit(value: Any, label: str = "max_results", maximum: int = 1000) -> int:
    """Require a strict integer in 1..maximum."""
    n = validate_id(value, label)
    if n > maximum:
        raise ValidationFailed([{"loc": (label,), "msg": f"must be <= {maximum}"}], value)
    return n


# ── Files ─────────────────────────────────────────────────────────────


class SkillFrontmatter(BaseModel):
    """The YAML header of a skill file.

    Only ``name`` and ``description`` are required; other keys are kept.
    """

    model_config = ConfigDict(extra="allow")

    name: str = Field(min_length=1, max_length=MAX_SKILL_NAME)
    description: str = Field(min_length=1, max_length=MAX_SKILL_DESCRIPTION)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Lowercase letters, digits, hyphens and underscores only."""
        if not all(c.islower() or c.isdigit() or c in "-_" for c in v):
            raise ValueError(f"name must be lowercase kebab-case: got '{v}'")
        return v


class PromptConfig(BaseModel):
    """A prompt_configs/*.yaml file."""

    model_config = ConfigDict(extra="ignore")

    path: str
    file_name: str
    name: str
    title: Optional[str] = None
    description: Optional[str] = None
    author: Optional[str] = None
    date: Optional[str] = None
    skills: list[str] = Field(default_factory=list)
    content: str = ""

    @field_validator("date", mode="before")
    @classmethod
    def date_as_string(cls, v: Any) -> Any:
        # YAML turns bare dates into datetime.date
        return None if v is None else str(v)


class ParsedSkill(BaseModel):
    """A skill file as read from disk, ready to upsert."""

    path: str
    category: str
    name: str
    title: Optional[str] = None
    description: Optional[str] = None
    content: str
    file_hash: str
    size_bytes: int
    token_count: int


# ── Database records ──────────────────────────────────────────────────


class SkillRecord(BaseModel):
    """A row of the ``skills`` table."""

    id: int
    path: str
    category: str
    name: str
    title: Optional[str] = None
    description: Optional[str] = None
    content: str = ""
    file_hash: str = ""
    size_bytes: int = 0
    token_count: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    snippet: Optional[str] = Field(default=None, description="Search match excerpt")
    rank: Optional[float] = Field(default=None, description="bm25 score, lower is better")


class PromptRecord(BaseModel):
    """A row of the ``prompts`` table."""

    id: int
    path: str
    name: str
    title: Optional[str] = None
    author: Optional[str] = None
    description: Optional[str] = None
    content: str = ""
    file_hash: str = ""
    size_bytes: int = 0
    token_count: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    snippet: Optional[str] = None
    rank: Optional[float] = None


class PromptFragment(BaseModel):
    """A named, ordered group of skills embedded into prompts."""

    id: int
    name: str
    title: Optional[str] = None
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class FragmentReference(BaseModel):
    """A prompt -> fragment link, with the fragment's name and title."""

    id: int
    source_prompt_id: int
    target_fragment_id: Optional[int] = None
    target_prompt_id: Optional[int] = None
    reference_type: str
    position: int = 0
    fragment_name: Optional[str] = None
    fragment_title: Optional[str] = None


class FragmentSkill(SkillRecord):
    """A skill inside a prompt fragment, with its position."""

    position: int = 0


class Plan(BaseModel):
    """A row of the ``implementation_plans`` table."""

    id: int
    name: str
    title: Optional[str] = None
    description: Optional[str] = None
    content: str = ""
    status: PlanStatus = PlanStatus.DRAFT
    created_by: Optional[str] = None
    assigned_to: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    snippet: Optional[str] = None
    rank: Optional[float] = None


class TaskList(BaseModel):
    id: int
    plan_id: int
    name: str
    description: Optional[str] = None
    position: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Task(BaseModel):
    id: int
    list_id: int
    name: str
    description: Optional[str] = None
    completed: bool = False
    position: int = 0
    assigned_to: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PlanSkill(BaseModel):
    """A skill attached to a plan (skill fields plus link metadata)."""

    id: int
    path: str
    category: str
    name: str
    title: Optional[str] = None
    description: Optional[str] = None
    position: int = 0
    created_at: Optional[datetime] = None


class PlanSkillLink(BaseModel):
    """A row of the ``plan_skills`` table."""

    id: int
    plan_id: int
    skill_id: int
    position: int = 0
    created_at: Optional[datetime] = None


class PlanResult(BaseModel):
    """A row of the ``plan_results`` table."""

    id: int
    plan_id: int
    outcome: Outcome
    summary: str
    challenges: Optional[str] = None
    solutions: Optional[str] = None
    lessons_learned: Optional[str] = None
    metrics: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    snippet: Optional[str] = None
    rank: Optional[float] = None


class PlanSummary(BaseModel):
    """Counts shown before deleting a plan or task list."""

    task_lists: int = 0
    tasks: int = 0
    completed_tasks: int = 0


class CategoryCount(BaseModel):
    category: str
    count: int


class Stats(BaseModel):
    """Database-wide counters for ``clojure-skills stats``."""

    database_path: str
    database_size_bytes: int = 0
    schema_version: int = 0
    skills: int = 0
    prompts: int = 0
    categories: int = 0
    total_size_bytes: int = 0
    total_tokens: int = 0
    plans: int = 0
    tasks: int = 0


class SyncReport(BaseModel):
    """What a sync run did, file by file."""

    synced: list[str] = Field(default_factory=list)
    skipped: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    def merge(self, other: "SyncReport") -> "SyncReport":
        return SyncReport(
            synced=self.synced + other.synced,
            skipped=self.skipped + other.skipped,
            errors=self.errors + other.errors,
            warnings=self.warnings + other.warnings,
        )


# ── Inputs ────────────────────────────────────────────────────────────


def _not_null(v: Any) -> Any:
    """Reject an explicit None for a column that cannot be NULL."""
    if v is None:
        raise ValueError("may not be null")
    return v


class PlanCreate(BaseModel):
    name: str = Field(min_length=1, max_length=MAX_PLAN_NAME)
    title: Optional[str] = Field(default=None, max_length=MAX_PLAN_NAME)
    description: Optional[str] = None
    content: str = ""
    status: PlanStatus = PlanStatus.DRAFT
    created_by: Optional[str] = None
    assigned_to: Optional[str] = None


class PlanUpdate(BaseModel):
    """Fields that may change on a plan; unknown keys are ignored."""

    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = Field(default=None, min_length=1, max_length=MAX_PLAN_NAME)
    title: Optional[str] = Field(default=None, max_length=MAX_PLAN_NAME)
    description: Optional[str] = None
    content: Optional[str] = None
    status: Optional[PlanStatus] = None
    created_by: Optional[str] = None
    assigned_to: Optional[str] = None

    @field_validator("name", "content", "status")
    @classmethod
    def not_null(cls, v: Any) -> Any:
        return _not_null(v)


class TaskListCreate(BaseModel):
    plan_id: StrictInt = Field(ge=1)
    name: str = Field(min_length=1, max_length=MAX_PLAN_NAME)
    description: Optional[str] = None
    position: int = Field(default=0, ge=0)


class TaskListUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = Field(default=None, min_length=1, max_length=MAX_PLAN_NAME)
    description: Optional[str] = None
    position: Optional[int] = Field(default=None, ge=0)

    @field_validator("name", "position")
    @classmethod
    def not_null(cls, v: Any) -> Any:
        return _not_null(v)


class TaskCreate(BaseModel):
    list_id: StrictInt = Field(ge=1)
    name: str = Field(min_length=1, max_length=MAX_PLAN_NAME)
    description: Optional[str] = None
    position: int = Field(default=0, ge=0)
    assigned_to: Optional[str] = None


class TaskUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = Field(default=None, min_length=1, max_length=MAX_PLAN_NAME)
    description: Optional[str] = None
    position: Optional[int] = Field(default=None, ge=0)
    assigned_to: Optional[str] = None

    @field_validator("name", "position")
    @classmethod
    def not_null(cls, v: Any) -> Any:
        return _not_null(v)


class PlanSkillCreate(BaseModel):
    plan_id: StrictInt = Field(ge=1)
    skill_id: StrictInt = Field(ge=1)
    position: Optional[int] = Field(default=None, ge=0)


class PlanResultCreate(BaseModel):
    plan_id: StrictInt = Field(ge=1)
    outcome: Outcome
    summary: str = Field(min_length=1, max_length=MAX_SUMMARY)
    challenges: Optional[str] = None
    solutions: Optional[str] = None
    lessons_learned: Optional[str] = None
    metrics: Optional[str] = None


class PlanResultUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    outcome: Optional[Outcome] = None
    summary: Optional[str] = Field(default=None, min_length=1, max_length=MAX_SUMMARY)
    challenges: Optional[str] = None
    solutions: Optional[str] = None
    lessons_learned: Optional[str] = None
    metrics: Optional[str] = None

    @field_validator("outcome", "summary")
    @classmethod
    def not_null(cls, v: Any) -> Any:
        return _not_null(v)


def changed_fields(update: BaseModel) -> dict[str, Any]:
    """Return the explicitly-set fields of an update model as column values."""
    values = update.model_dump(exclude_unset=True)
    return {k: (v.value if isinstance(v, enum.Enum) else v) for k, v in values.items()}
