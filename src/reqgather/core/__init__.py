"""
Core module - Configuration, errors, and entity types.
"""

from reqgather.core.config import settings
from reqgather.core.errors import PersistenceError, ReqGatherError, ValidationError
from reqgather.core.types import (
    NewProject,
    NewRequirement,
    Project,
    ProjectUpdate,
    Requirement,
    RequirementPriority,
    RequirementStatus,
    RequirementType,
    RequirementUpdate,
)

__all__ = [
    "settings",
    "ReqGatherError",
    "ValidationError",
    "PersistenceError",
    "NewProject",
    "NewRequirement",
    "Project",
    "ProjectUpdate",
    "Requirement",
    "RequirementPriority",
    "RequirementStatus",
    "RequirementType",
    "RequirementUpdate",
]
