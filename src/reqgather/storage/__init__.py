"""
Storage Layer - pluggable persistence for projects and requirements.

Two backends satisfy the same RequirementsStore contract:
1. JsonStore   → whole-collection JSON documents, cached in memory
2. SQLiteStore → normalized tables with foreign-key cascades

create_storage() picks one from configuration at startup.
"""

from reqgather.storage.base import RequirementsStore, TagDiff, reconcile_tags
from reqgather.storage.factory import StorageType, create_storage
from reqgather.storage.json_store import JsonStore
from reqgather.storage.migration import MigrationResult, migrate_json_to_sqlite
from reqgather.storage.sqlite_store import SQLiteStore

__all__ = [
    "RequirementsStore",
    "TagDiff",
    "reconcile_tags",
    "StorageType",
    "create_storage",
    "JsonStore",
    "SQLiteStore",
    "MigrationResult",
    "migrate_json_to_sqlite",
]
