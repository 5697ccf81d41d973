"""
MCP Resources - read-only views over stored requirements and projects.

URIs:
- requirements://list, requirements://summary, requirements://{id}
- requirements://type/{type}, requirements://status/{status}
- requirements://priority/{priority}, requirements://project/{projectId}
- requirements://tag/{tag}
- projects://list, projects://{id}
"""

from collections import Counter
from typing import Any

from reqgather.core.types import Requirement
from reqgather.storage.base import RequirementsStore

RESOURCES: list[dict[str, str]] = [
    {
        "uri": "requirements://list",
        "name": "requirements-list",
        "description": "All requirements with their tags",
    },
    {
        "uri": "requirements://summary",
        "name": "requirements-summary",
        "description": "Counts by type, status and priority plus the most used tags",
    },
    {
        "uri": "projects://list",
        "name": "projects-list",
        "description": "All projects",
    },
]

RESOURCE_TEMPLATES: list[dict[str, str]] = [
    {"uriTemplate": "requirements://{id}", "name": "requirement-detail"},
    {"uriTemplate": "requirements://type/{type}", "name": "requirements-by-type"},
    {"uriTemplate": "requirements://status/{status}", "name": "requirements-by-status"},
    {"uriTemplate": "requirements://priority/{priority}", "name": "requirements-by-priority"},
    {"uriTemplate": "requirements://project/{projectId}", "name": "requirements-by-project"},
    {"uriTemplate": "requirements://tag/{tag}", "name": "requirements-by-tag"},
    {"uriTemplate": "projects://{id}", "name": "project-detail"},
]

TOP_TAG_LIMIT = 10


def summarize_requirements(requirements: list[Requirement]) -> dict[str, Any]:
    """Aggregate statistics for a set of requirements."""
    tag_counts = Counter(tag for req in requirements for tag in req.tags)

    return {
        "totalRequirements": len(requirements),
        "byType": dict(Counter(req.type for req in requirements)),
        "byStatus": dict(Counter(req.status for req in requirements)),
        "byPriority": dict(Counter(req.priority for req in requirements)),
        "topTags": dict(tag_counts.most_common(TOP_TAG_LIMIT)),
    }


def _filter(requirements: list[Requirement], field: str, value: str) -> list[dict]:
    return [req.to_dict() for req in requirements if getattr(req, field) == value]


def read_resource(store: RequirementsStore, uri: str) -> Any | None:
    """
    Resolve a resource URI to JSON-ready data.

    Returns None for unknown URIs and for IDs that do not exist.
    """
    scheme, sep, path = uri.partition("://")
    if not sep:
        return None

    if scheme == "projects":
        if path == "list":
            return [project.to_dict() for project in store.list_projects()]
        project = store.get_project_by_id(path)
        return project.to_dict() if project else None

    if scheme != "requirements":
        return None

    if path == "list":
        return [req.to_dict() for req in store.list_requirements()]
    if path == "summary":
        return summarize_requirements(store.list_requirements())

    kind, slash, value = path.partition("/")
    if not slash:
        requirement = store.get_requirement_by_id(path)
        return requirement.to_dict() if requirement else None

    if kind == "project":
        return [req.to_dict() for req in store.list_requirements_by_project(value)]
    if kind == "tag":
        return [req.to_dict() for req in store.list_requirements() if value in req.tags]
    if kind in ("type", "status", "priority"):
        return _filter(store.list_requirements(), kind, value)

    return None
