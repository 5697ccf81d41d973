"""
JSON Document Store - whole-collection JSON files on disk.

Layout inside the data directory:
- projects.json      → JSON array of Project records
- requirements.json  → JSON array of Requirement records (tags embedded)

Both collections are loaded once when the store is created and the
in-memory copies are authoritative afterwards. Every mutation rewrites the
entire affected document; the in-memory collection is only swapped once the
file has been replaced on disk, so a failed write never leaves memory ahead
of disk.

There is no cross-process locking. Two processes writing the same data
directory will overwrite each other (last write wins).
"""

import json
import os
import tempfile
from collections.abc import Mapping
from pathlib import Path
from typing import Any, TypeVar

from pydantic import ValidationError as PydanticValidationError

from reqgather.core.config import settings, get_logger
from reqgather.core.errors import PersistenceError, ValidationError
from reqgather.core.types import (
    NewProject,
    NewRequirement,
    Project,
    ProjectUpdate,
    Requirement,
    RequirementUpdate,
    StoreModel,
    touch,
    utc_now,
)
from reqgather.storage.base import (
    RequirementsStore,
    apply_tag_diff,
    coerce,
    reconcile_tags,
)

logger = get_logger("storage.json")

RecordT = TypeVar("RecordT", bound=StoreModel)

PROJECTS_FILENAME = "projects.json"
REQUIREMENTS_FILENAME = "requirements.json"


def load_collection(path: Path, model_cls: type[RecordT]) -> list[RecordT]:
    """
    Read a JSON array of records from disk.

    Raises PersistenceError if the file is unreadable, not a JSON array, or
    holds a record that does not fit the model.
    """
    try:
        raw = json.loads(path.read_text(encoding="utf-8") or "[]")
    except (OSError, json.JSONDecodeError) as e:
        raise PersistenceError(f"Could not read {path}: {e}") from e

    if not isinstance(raw, list):
        raise PersistenceError(f"{path} does not contain a JSON array")

    try:
        return [model_cls.model_validate(item) for item in raw]
    except PydanticValidationError as e:
        raise PersistenceError(f"Corrupt record in {path}: {e}") from e


def write_collection(path: Path, records: list[StoreModel]) -> None:
    """
    Atomically replace a JSON document with the given records.

    The payload goes to a temp file in the same directory which is then
    renamed over the target, so readers never see a half-written file.
    """
    payload = json.dumps([record.to_dict() for record in records], indent=2, ensure_ascii=False)
    tmp_path: Path | None = None

    try:
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        tmp_path = Path(tmp_name)
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(payload)
        os.replace(tmp_path, path)
    except OSError as e:
        if tmp_path is not None:
            tmp_path.unlink(missing_ok=True)
        logger.error(f"Error saving {path.name}: {e}")
        raise PersistenceError(f"Failed to write {path}: {e}") from e


class JsonStore(RequirementsStore):
    """
    Document store backed by two JSON files.

    Returned entities are copies; mutating them does not touch the cache.
    """

    storage_type = "json"

    def __init__(self, data_dir: Path | None = None):
        """Initialize the store, creating empty documents if needed."""
        self.data_dir = data_dir or settings.data_dir
        self.projects_path = self.data_dir / PROJECTS_FILENAME
        self.requirements_path = self.data_dir / REQUIREMENTS_FILENAME

        self._projects: list[Project] = []
        self._requirements: list[Requirement] = []

        self._initialize()

    def _initialize(self) -> None:
        """Create the data directory and documents, then load them."""
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            for path in (self.projects_path, self.requirements_path):
                if not path.exists():
                    path.write_text("[]", encoding="utf-8")
        except OSError as e:
            raise PersistenceError(f"Could not initialize storage in {self.data_dir}: {e}") from e

        self.reload()
        logger.debug(
            f"Loaded {len(self._projects)} projects and "
            f"{len(self._requirements)} requirements from {self.data_dir}"
        )

    def reload(self) -> None:
        """Replace the in-memory collections with what is on disk."""
        projects = load_collection(self.projects_path, Project)
        requirements = load_collection(self.requirements_path, Requirement)
        self._projects = projects
        self._requirements = requirements

    # ------------------------------------------
    # Persistence helpers
    # ------------------------------------------

    def _save_projects(self, projects: list[Project]) -> None:
        write_collection(self.projects_path, projects)
        self._projects = projects

    def _save_requirements(self, requirements: list[Requirement]) -> None:
        write_collection(self.requirements_path, requirements)
        self._requirements = requirements

    def _project_index(self, project_id: str) -> int | None:
        for index, project in enumerate(self._projects):
            if project.id == project_id:
                return index
        return None

    def _requirement_index(self, requirement_id: str) -> int | None:
        for index, requirement in enumerate(self._requirements):
            if requirement.id == requirement_id:
                return index
        return None

    # ------------------------------------------
    # Projects
    # ------------------------------------------

    def list_projects(self) -> list[Project]:
        return [project.model_copy(deep=True) for project in self._projects]

    def get_project_by_id(self, project_id: str) -> Project | None:
        index = self._project_index(project_id)
        if index is None:
            return None
        return self._projects[index].model_copy(deep=True)

    def find_projects_by_name(self, term: str | None = None) -> list[Project]:
        if not term:
            return self.list_projects()

        needle = term.lower()
        return [
            project.model_copy(deep=True)
            for project in self._projects
            if needle in project.name.lower()
        ]

    def create_project(self, data: NewProject | Mapping[str, Any]) -> Project:
        new_project = coerce(NewProject, data)
        now = utc_now()
        project = Project(
            name=new_project.name,
            description=new_project.description,
            created_at=now,
            updated_at=now,
        )

        self._save_projects([*self._projects, project])
        logger.debug(f"Created project {project.id} ({project.name})")
        return project.model_copy(deep=True)

    def update_project(
        self, project_id: str, updates: ProjectUpdate | Mapping[str, Any]
    ) -> Project | None:
        changes = coerce(ProjectUpdate, updates).model_dump(exclude_none=True)

        index = self._project_index(project_id)
        if index is None:
            return None

        existing = self._projects[index]
        updated = existing.model_copy(update={**changes, "updated_at": touch(existing.updated_at)})

        projects = list(self._projects)
        projects[index] = updated
        self._save_projects(projects)

        logger.debug(f"Updated project {project_id}: {sorted(changes)}")
        return updated.model_copy(deep=True)

    def delete_project(self, project_id: str) -> bool:
        index = self._project_index(project_id)
        if index is None:
            return False

        previous = self._requirements
        remaining = [req for req in previous if req.project_id != project_id]
        removed_count = len(previous) - len(remaining)
        if removed_count:
            self._save_requirements(remaining)

        projects = list(self._projects)
        del projects[index]
        try:
            self._save_projects(projects)
        except PersistenceError:
            if removed_count:
                # Put the cascaded requirements back before reporting failure.
                self._save_requirements(previous)
            raise

        logger.info(f"Deleted project {project_id} and {removed_count} requirements")
        return True

    # ------------------------------------------
    # Requirements
    # ------------------------------------------

    def list_requirements(self) -> list[Requirement]:
        return [req.model_copy(deep=True) for req in self._requirements]

    def list_requirements_by_project(self, project_id: str) -> list[Requirement]:
        return [
            req.model_copy(deep=True)
            for req in self._requirements
            if req.project_id == project_id
        ]

    def get_requirement_by_id(self, requirement_id: str) -> Requirement | None:
        index = self._requirement_index(requirement_id)
        if index is None:
            return None
        return self._requirements[index].model_copy(deep=True)

    def create_requirement(self, data: NewRequirement | Mapping[str, Any]) -> Requirement:
        new_req = coerce(NewRequirement, data)
        if self._project_index(new_req.project_id) is None:
            raise ValidationError(f"Project {new_req.project_id} not found")

        now = utc_now()
        requirement = Requirement(
            title=new_req.title,
            description=new_req.description,
            type=new_req.type,
            priority=new_req.priority,
            tags=new_req.tags,
            project_id=new_req.project_id,
            created_at=now,
            updated_at=now,
        )

        self._save_requirements([*self._requirements, requirement])
        logger.debug(f"Created requirement {requirement.id} in project {requirement.project_id}")
        return requirement.model_copy(deep=True)

    def update_requirement(
        self, requirement_id: str, updates: RequirementUpdate | Mapping[str, Any]
    ) -> Requirement | None:
        update = coerce(RequirementUpdate, updates)

        index = self._requirement_index(requirement_id)
        if index is None:
            return None

        existing = self._requirements[index]
        changes = update.field_changes()

        if update.tags is not None:
            diff = reconcile_tags(existing.tags, update.tags)
            changes["tags"] = apply_tag_diff(existing.tags, diff)
            if not diff.is_empty:
                logger.debug(
                    f"Requirement {requirement_id} tags: "
                    f"-{diff.to_remove} +{diff.to_add}"
                )

        updated = existing.model_copy(update={**changes, "updated_at": touch(existing.updated_at)})

        requirements = list(self._requirements)
        requirements[index] = updated
        self._save_requirements(requirements)

        return updated.model_copy(deep=True)

    def delete_requirement(self, requirement_id: str) -> bool:
        index = self._requirement_index(requirement_id)
        if index is None:
            return False

        requirements = list(self._requirements)
        del requirements[index]
        self._save_requirements(requirements)

        logger.debug(f"Deleted requirement {requirement_id}")
        return True
