"""
One-time migration from the JSON document store to SQLite.

Reads projects.json and requirements.json, inserts everything into the
SQLite store in a single transaction, then optionally copies the source
files to timestamped .bak files. Make sure no server is writing the JSON
files while this runs.
"""

import shutil
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from reqgather.core.config import settings, get_logger
from reqgather.core.errors import PersistenceError
from reqgather.core.types import Project, Requirement
from reqgather.storage.json_store import (
    PROJECTS_FILENAME,
    REQUIREMENTS_FILENAME,
    load_collection,
)
from reqgather.storage.sqlite_store import SQLiteStore

logger = get_logger("storage.migration")


@dataclass
class MigrationResult:
    """Outcome of a JSON → SQLite migration."""

    success: bool

    projects_count: int = 0
    """Projects found in the source file."""

    requirements_count: int = 0
    """Requirements found in the source file."""

    projects_imported: int = 0
    requirements_imported: int = 0

    skipped_requirements: list[str] = field(default_factory=list)
    """Requirement IDs without a known project."""

    backups: list[Path] = field(default_factory=list)
    error: str | None = None


def _read_source(path: Path, model_cls: type) -> list:
    if not path.exists():
        logger.warning(f"Could not find {path}, continuing with empty data")
        return []
    records = load_collection(path, model_cls)
    logger.info(f"Found {len(records)} records in {path.name}")
    return records


def backup_files(paths: list[Path]) -> list[Path]:
    """Copy each existing file to <name>.<timestamp>.bak next to it."""
    timestamp = datetime.now().isoformat().replace(":", "-").replace(".", "-")
    backups = []
    for path in paths:
        if not path.exists():
            continue
        backup = path.with_name(f"{path.name}.{timestamp}.bak")
        shutil.copy2(path, backup)
        backups.append(backup)
    return backups


def migrate_json_to_sqlite(
    source_dir: Path | None = None,
    target: SQLiteStore | None = None,
    backup: bool = True,
) -> MigrationResult:
    """
    Copy all JSON-stored projects and requirements into SQLite.

    Args:
        source_dir: Directory holding projects.json / requirements.json
        target: Destination store; defaults to the configured database
        backup: Copy the source files to .bak files after a successful import

    Returns:
        MigrationResult; on failure success is False and nothing was imported
    """
    source_dir = source_dir or settings.data_dir
    projects_path = source_dir / PROJECTS_FILENAME
    requirements_path = source_dir / REQUIREMENTS_FILENAME

    logger.info(f"Starting data migration to SQLite from {source_dir}")

    try:
        projects: list[Project] = _read_source(projects_path, Project)
        requirements: list[Requirement] = _read_source(requirements_path, Requirement)

        store = target or SQLiteStore()
        stats = store.import_records(projects, requirements)
    except PersistenceError as e:
        logger.error(f"Error during data migration: {e}")
        return MigrationResult(success=False, error=str(e))

    result = MigrationResult(
        success=True,
        projects_count=len(projects),
        requirements_count=len(requirements),
        projects_imported=stats["projects"],
        requirements_imported=stats["requirements"],
        skipped_requirements=stats["skipped"],
    )
    logger.info(
        f"Data migration completed: {result.projects_imported} projects, "
        f"{result.requirements_imported} requirements imported"
    )

    if backup:
        try:
            result.backups = backup_files([projects_path, requirements_path])
            logger.info("Created backup of original JSON files")
        except OSError as e:
            logger.warning(f"Could not create backup of JSON files: {e}")

    return result
