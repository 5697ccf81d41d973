"""
Requirements Gatherer

Projects, requirements and tags behind a pluggable storage layer,
served over a REST API and an MCP tool server.
"""

__version__ = "1.0.0"

from reqgather.core.config import settings
from reqgather.core.types import (
    Project,
    Requirement,
    RequirementPriority,
    RequirementStatus,
    RequirementType,
)
from reqgather.storage import RequirementsStore, create_storage

__all__ = [
    "settings",
    "Project",
    "Requirement",
    "RequirementPriority",
    "RequirementStatus",
    "RequirementType",
    "RequirementsStore",
    "create_storage",
]
