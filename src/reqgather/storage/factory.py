"""
Storage selector.

Picks one backend at startup from configuration and hands back a store
handle. Call create_storage() once at process start and pass the handle to
whatever needs it; there is no module-level store and no runtime switching.
"""

from enum import Enum
from pathlib import Path

from reqgather.core.config import settings, get_logger
from reqgather.storage.base import RequirementsStore
from reqgather.storage.json_store import JsonStore
from reqgather.storage.sqlite_store import SQLiteStore

logger = get_logger("storage.factory")


class StorageType(str, Enum):
    """Available storage backends."""
    JSON = "json"
    SQLITE = "sqlite"


DEFAULT_STORAGE_TYPE = StorageType.SQLITE


def resolve_storage_type(value: str | StorageType | None) -> StorageType:
    """
    Map a configured value to a backend.

    Empty means the default (sqlite). Unknown values fall back to json with
    a warning.
    """
    if isinstance(value, StorageType):
        return value
    if not value:
        return DEFAULT_STORAGE_TYPE

    try:
        return StorageType(value.strip().lower())
    except ValueError:
        logger.warning(f"Unknown storage type: {value}, falling back to JSON")
        return StorageType.JSON


def create_storage(
    storage_type: str | StorageType | None = None,
    data_dir: Path | None = None,
) -> RequirementsStore:
    """
    Create the configured storage backend.

    Args:
        storage_type: Backend name; defaults to settings.storage_type
        data_dir: Data directory; defaults to settings.data_dir

    Returns:
        A ready-to-use RequirementsStore
    """
    resolved = resolve_storage_type(storage_type if storage_type is not None else settings.storage_type)
    directory = data_dir or settings.data_dir

    if resolved is StorageType.SQLITE:
        logger.info(f"Using SQLite storage at {directory / settings.database_name}")
        return SQLiteStore(directory / settings.database_name)

    logger.info(f"Using JSON storage in {directory}")
    return JsonStore(directory)
