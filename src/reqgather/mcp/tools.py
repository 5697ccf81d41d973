"""
MCP Tools - project and requirement operations for MCP clients.

Each tool takes the store handle plus the tool arguments and returns a
ToolResult. Failures are reported, not raised, and always carry one of
three kinds so the client can react differently:

- not_found:       the referenced ID does not exist
- invalid_input:   arguments failed validation; nothing was written
- storage_failure: the backend could not complete the write
"""

from dataclasses import dataclass
from functools import wraps
from typing import Any, Callable, Literal

from reqgather.core.config import get_logger
from reqgather.core.errors import PersistenceError, ValidationError
from reqgather.storage.base import RequirementsStore

logger = get_logger("mcp.tools")


ErrorKind = Literal["not_found", "invalid_input", "storage_failure"]

REQUIREMENT_UPDATE_FIELDS = ("title", "description", "type", "priority", "status", "tags")


@dataclass
class ToolResult:
    """Result of a tool call."""

    data: Any = None
    """JSON-ready payload on success."""

    error: str | None = None
    """Error message if the call failed."""

    kind: ErrorKind | None = None

    @property
    def is_error(self) -> bool:
        return self.error is not None

    def to_payload(self) -> Any:
        if self.is_error:
            return {"error": self.error, "kind": self.kind}
        return self.data


def _not_found(what: str, item_id: str) -> ToolResult:
    return ToolResult(error=f"{what} with ID {item_id} not found", kind="not_found")


def _tool(func: Callable[..., ToolResult]) -> Callable[..., ToolResult]:
    """Turn validation and storage errors into failed ToolResults."""

    @wraps(func)
    def wrapper(*args, **kwargs) -> ToolResult:
        try:
            return func(*args, **kwargs)
        except ValidationError as e:
            return ToolResult(error=str(e), kind="invalid_input")
        except PersistenceError as e:
            logger.error(f"{func.__name__} failed: {e}")
            return ToolResult(error=str(e), kind="storage_failure")

    return wrapper


# ============================================
# Project tools
# ============================================

@_tool
def create_project(store: RequirementsStore, name: str, description: str = "") -> ToolResult:
    """Create a project. Use this first when gathering requirements for something new."""
    project = store.create_project({"name": name, "description": description})
    return ToolResult(data=project.to_dict())


@_tool
def update_project(
    store: RequirementsStore,
    id: str,
    name: str | None = None,
    description: str | None = None,
) -> ToolResult:
    project = store.update_project(id, {"name": name, "description": description})
    if project is None:
        return _not_found("Project", id)
    return ToolResult(data=project.to_dict())


@_tool
def delete_project(store: RequirementsStore, id: str) -> ToolResult:
    """Delete a project and every requirement it owns. Cannot be undone."""
    if not store.delete_project(id):
        return _not_found("Project", id)
    return ToolResult(data={"deleted": True, "id": id})


@_tool
def get_project(store: RequirementsStore, id: str) -> ToolResult:
    project = store.get_project_by_id(id)
    if project is None:
        return _not_found("Project", id)
    return ToolResult(data=project.to_dict())


@_tool
def find_projects(store: RequirementsStore, search_term: str | None = None) -> ToolResult:
    """Find projects by name. Returns all projects when no term is given."""
    projects = store.find_projects_by_name(search_term)
    return ToolResult(data={
        "count": len(projects),
        "projects": [project.to_dict() for project in projects],
    })


# ============================================
# Requirement tools
# ============================================

@_tool
def create_requirement(
    store: RequirementsStore,
    title: str,
    description: str,
    type: str,
    priority: str,
    project_id: str,
    tags: list[str] | None = None,
) -> ToolResult:
    requirement = store.create_requirement({
        "title": title,
        "description": description,
        "type": type,
        "priority": priority,
        "project_id": project_id,
        "tags": tags,
    })
    return ToolResult(data=requirement.to_dict())


@_tool
def update_requirement(store: RequirementsStore, id: str, **fields: Any) -> ToolResult:
    """
    Update a requirement.

    Only supplied fields change. Passing tags replaces the whole tag set.
    """
    updates = {key: value for key, value in fields.items() if key in REQUIREMENT_UPDATE_FIELDS}

    requirement = store.update_requirement(id, updates)
    if requirement is None:
        return _not_found("Requirement", id)
    return ToolResult(data=requirement.to_dict())


@_tool
def delete_requirement(store: RequirementsStore, id: str) -> ToolResult:
    if not store.delete_requirement(id):
        return _not_found("Requirement", id)
    return ToolResult(data={"deleted": True, "id": id})


@_tool
def get_requirement(store: RequirementsStore, id: str) -> ToolResult:
    requirement = store.get_requirement_by_id(id)
    if requirement is None:
        return _not_found("Requirement", id)
    return ToolResult(data=requirement.to_dict())


@_tool
def list_project_requirements(store: RequirementsStore, project_id: str) -> ToolResult:
    if store.get_project_by_id(project_id) is None:
        return _not_found("Project", project_id)

    requirements = store.list_requirements_by_project(project_id)
    return ToolResult(data={
        "projectId": project_id,
        "count": len(requirements),
        "requirements": [req.to_dict() for req in requirements],
    })
