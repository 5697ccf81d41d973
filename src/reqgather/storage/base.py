"""
Storage interface shared by every backend.

Both the JSON document store and the SQLite store implement
RequirementsStore; collaborators only ever see this surface. The tag
reconciliation used by update_requirement lives here so both backends
apply exactly the same diff.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from reqgather.core.errors import ValidationError
from reqgather.core.types import (
    NewProject,
    NewRequirement,
    Project,
    ProjectUpdate,
    Requirement,
    RequirementUpdate,
)

ModelT = TypeVar("ModelT", bound=BaseModel)


# ============================================
# Tag Reconciliation
# ============================================

@dataclass
class TagDiff:
    """Minimal set of tag changes turning a current set into a desired one."""

    to_remove: list[str] = field(default_factory=list)
    to_add: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.to_remove and not self.to_add


def reconcile_tags(current: Iterable[str], desired: Iterable[str]) -> TagDiff:
    """
    Diff the stored tag set against the desired one.

    to_remove = current - desired, to_add = desired - current, both in
    first-seen order. Duplicates in either input are ignored.
    """
    current_list = list(dict.fromkeys(current))
    desired_list = list(dict.fromkeys(desired))
    current_set = set(current_list)
    desired_set = set(desired_list)

    return TagDiff(
        to_remove=[tag for tag in current_list if tag not in desired_set],
        to_add=[tag for tag in desired_list if tag not in current_set],
    )


def apply_tag_diff(current: Iterable[str], diff: TagDiff) -> list[str]:
    """Apply removals then additions to an in-memory tag list."""
    removed = set(diff.to_remove)
    tags = [tag for tag in dict.fromkeys(current) if tag not in removed]
    present = set(tags)
    for tag in diff.to_add:
        if tag not in present:
            tags.append(tag)
            present.add(tag)
    return tags


# ============================================
# Input coercion
# ============================================

def coerce(model_cls: type[ModelT], data: ModelT | Mapping[str, Any] | None) -> ModelT:
    """
    Validate caller data into an input model.

    Raises ValidationError before anything touches storage.
    """
    if isinstance(data, model_cls):
        return data
    if isinstance(data, BaseModel):
        data = data.model_dump(exclude_unset=True)
    try:
        return model_cls.model_validate(dict(data or {}))
    except PydanticValidationError as e:
        raise ValidationError.from_pydantic(e) from e


# ============================================
# Store Interface
# ============================================

class RequirementsStore(ABC):
    """
    Persistence contract for projects and requirements.

    Not-found is signalled by returning None (lookups, updates) or False
    (deletes). Invalid input raises ValidationError; failed writes raise
    PersistenceError. Read-only listings degrade to empty results when the
    store cannot be read.
    """

    storage_type: str = ""

    # ------------------------------------------
    # Projects
    # ------------------------------------------

    @abstractmethod
    def list_projects(self) -> list[Project]:
        """All projects, in a stable order."""

    @abstractmethod
    def get_project_by_id(self, project_id: str) -> Project | None:
        """A project by ID, or None."""

    @abstractmethod
    def find_projects_by_name(self, term: str | None = None) -> list[Project]:
        """Case-insensitive substring match on name. Empty term returns all."""

    @abstractmethod
    def create_project(self, data: NewProject | Mapping[str, Any]) -> Project:
        """Create a project with a fresh ID and createdAt == updatedAt."""

    @abstractmethod
    def update_project(
        self, project_id: str, updates: ProjectUpdate | Mapping[str, Any]
    ) -> Project | None:
        """Merge supplied fields and refresh updatedAt, or None if missing."""

    @abstractmethod
    def delete_project(self, project_id: str) -> bool:
        """Delete a project and every requirement it owns."""

    # ------------------------------------------
    # Requirements
    # ------------------------------------------

    @abstractmethod
    def list_requirements(self) -> list[Requirement]:
        """All requirements with tags resolved."""

    @abstractmethod
    def list_requirements_by_project(self, project_id: str) -> list[Requirement]:
        """Requirements owned by a project, tags resolved."""

    @abstractmethod
    def get_requirement_by_id(self, requirement_id: str) -> Requirement | None:
        """A requirement by ID, or None."""

    @abstractmethod
    def create_requirement(self, data: NewRequirement | Mapping[str, Any]) -> Requirement:
        """Create a draft requirement attached to an existing project."""

    @abstractmethod
    def update_requirement(
        self, requirement_id: str, updates: RequirementUpdate | Mapping[str, Any]
    ) -> Requirement | None:
        """Merge supplied fields, reconcile tags if given, or None if missing."""

    @abstractmethod
    def delete_requirement(self, requirement_id: str) -> bool:
        """Delete a requirement and its tags."""

    def close(self) -> None:
        """Release any held resources."""

    def __enter__(self) -> "RequirementsStore":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
