"""
Core type definitions for the Requirements Gatherer.

These types are the canonical shapes returned by every storage backend:
- Project: top-level grouping that owns requirements
- Requirement: a tracked statement of need with free-form tags

Attributes are snake_case in Python and camelCase on the wire
(projectId, createdAt, updatedAt), matching the persisted JSON documents.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


# ============================================
# Enums
# ============================================

class RequirementType(str, Enum):
    """Kinds of requirement."""
    FUNCTIONAL = "functional"
    NON_FUNCTIONAL = "non-functional"
    TECHNICAL = "technical"
    USER_STORY = "user_story"


class RequirementPriority(str, Enum):
    """Priority of a requirement."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RequirementStatus(str, Enum):
    """Lifecycle status of a requirement."""
    DRAFT = "draft"
    PROPOSED = "proposed"
    APPROVED = "approved"
    REJECTED = "rejected"
    IMPLEMENTED = "implemented"
    VERIFIED = "verified"


# ============================================
# Helpers
# ============================================

def new_id() -> str:
    return str(uuid4())


def utc_now() -> str:
    """Current UTC time as a fixed-width ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def _parse_timestamp(value: str) -> datetime | None:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def touch(previous: str | None) -> str:
    """
    Refreshed updatedAt value for a record last stamped at `previous`.

    Never earlier than `previous`, so updatedAt >= createdAt holds even if
    the wall clock steps backwards between writes.
    """
    now = datetime.now(timezone.utc)
    prev = _parse_timestamp(previous) if previous else None
    if prev is not None and prev > now:
        return previous
    return now.isoformat(timespec="microseconds")


def normalize_tags(tags: list[str] | None) -> list[str]:
    """Strip tags, drop blanks, collapse duplicates keeping first occurrence."""
    seen: dict[str, None] = {}
    for tag in tags or []:
        cleaned = tag.strip()
        if cleaned:
            seen.setdefault(cleaned, None)
    return list(seen)


# ============================================
# Base Models
# ============================================

class StoreModel(BaseModel):
    """Base class for stored and input models."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        validate_default=True,
        extra="ignore",
    )

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)


class InputModel(StoreModel):
    """Caller-supplied data; whitespace is stripped from every string."""

    model_config = ConfigDict(str_strip_whitespace=True)


# ============================================
# Core Entities
# ============================================

class Project(StoreModel):
    """A top-level grouping of requirements."""

    id: str = Field(default_factory=new_id)
    name: str = Field(min_length=1)
    description: str = ""

    created_at: str = Field(default_factory=utc_now)
    """When the project was created (ISO-8601)."""

    updated_at: str = Field(default_factory=utc_now)
    """Rewritten on every mutation."""


class Requirement(StoreModel):
    """A single tracked statement of need."""

    id: str = Field(default_factory=new_id)
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    type: RequirementType
    priority: RequirementPriority
    status: RequirementStatus = RequirementStatus.DRAFT

    tags: list[str] = Field(default_factory=list)
    """Free-form labels; always fully materialized."""

    project_id: str | None = None
    """Owning project. Required on creation; legacy JSON rows may lack it."""

    created_at: str = Field(default_factory=utc_now)
    updated_at: str = Field(default_factory=utc_now)

    @field_validator("tags")
    @classmethod
    def _dedupe_tags(cls, value: list[str]) -> list[str]:
        return normalize_tags(value)


# ============================================
# Input Models
# ============================================

class NewProject(InputModel):
    """Data for creating a project."""

    name: str = Field(min_length=1)
    description: str = ""


class ProjectUpdate(InputModel):
    """Partial project update. None means 'leave unchanged'."""

    name: str | None = Field(default=None, min_length=1)
    description: str | None = None


class NewRequirement(InputModel):
    """Data for creating a requirement. Status always starts as draft."""

    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    type: RequirementType
    priority: RequirementPriority
    project_id: str = Field(min_length=1)
    tags: list[str] = Field(default_factory=list)

    @field_validator("tags", mode="before")
    @classmethod
    def _tags_or_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("tags")
    @classmethod
    def _normalize_tags(cls, value: list[str]) -> list[str]:
        return normalize_tags(value)


class RequirementUpdate(InputModel):
    """
    Partial requirement update.

    Fields left as None are not touched. `tags`, when supplied, replaces the
    whole tag set; an empty list removes every tag.
    """

    title: str | None = Field(default=None, min_length=1)
    description: str | None = Field(default=None, min_length=1)
    type: RequirementType | None = None
    priority: RequirementPriority | None = None
    status: RequirementStatus | None = None
    tags: list[str] | None = None

    @field_validator("tags")
    @classmethod
    def _normalize_tags(cls, value: list[str] | None) -> list[str] | None:
        return None if value is None else normalize_tags(value)

    def field_changes(self) -> dict[str, Any]:
        """Supplied scalar fields, excluding tags."""
        return self.model_dump(exclude_none=True, exclude={"tags"})
