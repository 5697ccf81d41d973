"""
SQLite Store - normalized relational storage.

Tables:
- projects:          one row per project
- requirements:      one row per requirement, project_id → projects ON DELETE CASCADE
- requirement_tags:  (requirement_id, tag) composite key,
                     requirement_id → requirements ON DELETE CASCADE

Foreign keys are enabled on every connection, so deleting a project row
removes its requirements and, transitively, their tag rows. Multi-row
mutations (requirement + tags) run in a single BEGIN IMMEDIATE transaction.
"""

import sqlite3
from collections import defaultdict
from collections.abc import Iterable, Mapping
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Generator

from reqgather.core.config import settings, get_logger
from reqgather.core.errors import PersistenceError, ValidationError
from reqgather.core.types import (
    NewProject,
    NewRequirement,
    Project,
    ProjectUpdate,
    Requirement,
    RequirementStatus,
    RequirementUpdate,
    touch,
    utc_now,
)
from reqgather.storage.base import RequirementsStore, coerce, reconcile_tags

logger = get_logger("storage.sqlite")


def _escape_like(term: str) -> str:
    """Escape LIKE wildcards so the term matches literally."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class SQLiteStore(RequirementsStore):
    """
    Relational store on a single SQLite database file.

    Connections are short-lived: each operation opens its own and closes it
    when done.
    """

    storage_type = "sqlite"

    def __init__(self, db_path: Path | None = None, busy_timeout: float = 5.0):
        """Initialize the store and its schema."""
        self.db_path = db_path or settings.database_path
        self.busy_timeout = busy_timeout
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._init_db()
        except (OSError, sqlite3.Error) as e:
            raise PersistenceError(f"Could not initialize database {self.db_path}: {e}") from e

    def _init_db(self) -> None:
        """Initialize the database schema."""
        with self._get_connection() as conn:
            conn.execute("PRAGMA journal_mode = WAL")

            conn.execute("""
                CREATE TABLE IF NOT EXISTS projects (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    description TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS requirements (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    description TEXT NOT NULL,
                    type TEXT NOT NULL,
                    priority TEXT NOT NULL,
                    status TEXT NOT NULL,
                    project_id TEXT NOT NULL
                        REFERENCES projects(id) ON DELETE CASCADE,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

            conn.execute("""
                CREATE TABLE IF NOT EXISTS requirement_tags (
                    requirement_id TEXT NOT NULL
                        REFERENCES requirements(id) ON DELETE CASCADE,
                    tag TEXT NOT NULL,
                    PRIMARY KEY (requirement_id, tag)
                )
            """)

            # Indexes
            conn.execute("CREATE INDEX IF NOT EXISTS idx_requirements_project ON requirements(project_id)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_requirement_tags_tag ON requirement_tags(tag)")

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Get a connection with row factory and foreign keys enforced."""
        conn = sqlite3.connect(self.db_path, timeout=self.busy_timeout, isolation_level=None)
        conn.row_factory = sqlite3.Row
        try:
            # Per-connection pragma; cascades depend on it.
            conn.execute("PRAGMA foreign_keys = ON")
            yield conn
        finally:
            conn.close()

    @contextmanager
    def _transaction(self, action: str) -> Generator[sqlite3.Connection, None, None]:
        """
        Run a write transaction.

        BEGIN IMMEDIATE takes the write lock up front. Any exception rolls
        back; database errors surface as PersistenceError.
        """
        try:
            with self._get_connection() as conn:
                conn.execute("BEGIN IMMEDIATE")
                try:
                    yield conn
                    conn.execute("COMMIT")
                except Exception:
                    if conn.in_transaction:
                        conn.execute("ROLLBACK")
                    raise
        except sqlite3.Error as e:
            logger.error(f"Error {action}: {e}")
            raise PersistenceError(f"Failed {action}: {e}") from e

    # ------------------------------------------
    # Row helpers
    # ------------------------------------------

    @staticmethod
    def _row_to_project(row: sqlite3.Row) -> Project:
        return Project(
            id=row["id"],
            name=row["name"],
            description=row["description"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @staticmethod
    def _row_to_requirement(row: sqlite3.Row, tags: list[str]) -> Requirement:
        return Requirement(
            id=row["id"],
            title=row["title"],
            description=row["description"],
            type=row["type"],
            priority=row["priority"],
            status=row["status"],
            tags=tags,
            project_id=row["project_id"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @staticmethod
    def _fetch_tags(conn: sqlite3.Connection, requirement_id: str) -> list[str]:
        rows = conn.execute(
            "SELECT tag FROM requirement_tags WHERE requirement_id = ? ORDER BY rowid",
            (requirement_id,),
        ).fetchall()
        return [row["tag"] for row in rows]

    def _with_tags(self, conn: sqlite3.Connection, rows: list[sqlite3.Row]) -> list[Requirement]:
        """Attach tag lists to requirement rows with one extra query."""
        if not rows:
            return []

        ids = [row["id"] for row in rows]
        placeholders = ", ".join("?" for _ in ids)
        tag_rows = conn.execute(
            f"SELECT requirement_id, tag FROM requirement_tags "
            f"WHERE requirement_id IN ({placeholders}) ORDER BY rowid",
            ids,
        ).fetchall()

        tags_by_id: dict[str, list[str]] = defaultdict(list)
        for tag_row in tag_rows:
            tags_by_id[tag_row["requirement_id"]].append(tag_row["tag"])

        return [self._row_to_requirement(row, tags_by_id.get(row["id"], [])) for row in rows]

    @staticmethod
    def _project_exists(conn: sqlite3.Connection, project_id: str) -> bool:
        row = conn.execute("SELECT 1 FROM projects WHERE id = ?", (project_id,)).fetchone()
        return row is not None

    # ------------------------------------------
    # Projects
    # ------------------------------------------

    def list_projects(self) -> list[Project]:
        try:
            with self._get_connection() as conn:
                rows = conn.execute("SELECT * FROM projects ORDER BY created_at, rowid").fetchall()
                return [self._row_to_project(row) for row in rows]
        except sqlite3.Error as e:
            logger.error(f"Error reading projects: {e}")
            return []

    def get_project_by_id(self, project_id: str) -> Project | None:
        try:
            with self._get_connection() as conn:
                row = conn.execute("SELECT * FROM projects WHERE id = ?", (project_id,)).fetchone()
                return self._row_to_project(row) if row else None
        except sqlite3.Error as e:
            logger.error(f"Error getting project {project_id}: {e}")
            return None

    def find_projects_by_name(self, term: str | None = None) -> list[Project]:
        if not term:
            return self.list_projects()

        pattern = f"%{_escape_like(term.lower())}%"
        try:
            with self._get_connection() as conn:
                rows = conn.execute(
                    "SELECT * FROM projects WHERE LOWER(name) LIKE ? ESCAPE '\\' "
                    "ORDER BY created_at, rowid",
                    (pattern,),
                ).fetchall()
                return [self._row_to_project(row) for row in rows]
        except sqlite3.Error as e:
            logger.error(f"Error finding projects by name: {e}")
            return []

    def create_project(self, data: NewProject | Mapping[str, Any]) -> Project:
        new_project = coerce(NewProject, data)
        now = utc_now()
        project = Project(
            name=new_project.name,
            description=new_project.description,
            created_at=now,
            updated_at=now,
        )

        with self._transaction("creating project") as conn:
            conn.execute(
                """
                INSERT INTO projects (id, name, description, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (project.id, project.name, project.description, project.created_at, project.updated_at),
            )

        logger.debug(f"Created project {project.id} ({project.name})")
        return project

    def update_project(
        self, project_id: str, updates: ProjectUpdate | Mapping[str, Any]
    ) -> Project | None:
        changes = coerce(ProjectUpdate, updates).model_dump(exclude_none=True)
        updated: Project | None = None

        with self._transaction("updating project") as conn:
            row = conn.execute("SELECT * FROM projects WHERE id = ?", (project_id,)).fetchone()
            if row is not None:
                existing = self._row_to_project(row)
                updated = existing.model_copy(
                    update={**changes, "updated_at": touch(existing.updated_at)}
                )
                conn.execute(
                    "UPDATE projects SET name = ?, description = ?, updated_at = ? WHERE id = ?",
                    (updated.name, updated.description, updated.updated_at, project_id),
                )

        if updated is not None:
            logger.debug(f"Updated project {project_id}: {sorted(changes)}")
        return updated

    def delete_project(self, project_id: str) -> bool:
        with self._transaction("deleting project") as conn:
            owned = conn.execute(
                "SELECT COUNT(*) FROM requirements WHERE project_id = ?", (project_id,)
            ).fetchone()[0]
            # Requirements and tags go with it via ON DELETE CASCADE.
            cursor = conn.execute("DELETE FROM projects WHERE id = ?", (project_id,))
            deleted = cursor.rowcount > 0

        if deleted:
            logger.info(f"Deleted project {project_id} and {owned} requirements")
        return deleted

    # ------------------------------------------
    # Requirements
    # ------------------------------------------

    def list_requirements(self) -> list[Requirement]:
        try:
            with self._get_connection() as conn:
                rows = conn.execute("SELECT * FROM requirements ORDER BY created_at, rowid").fetchall()
                return self._with_tags(conn, rows)
        except sqlite3.Error as e:
            logger.error(f"Error reading requirements: {e}")
            return []

    def list_requirements_by_project(self, project_id: str) -> list[Requirement]:
        try:
            with self._get_connection() as conn:
                rows = conn.execute(
                    "SELECT * FROM requirements WHERE project_id = ? ORDER BY created_at, rowid",
                    (project_id,),
                ).fetchall()
                return self._with_tags(conn, rows)
        except sqlite3.Error as e:
            logger.error(f"Error fetching requirements for project {project_id}: {e}")
            return []

    def get_requirement_by_id(self, requirement_id: str) -> Requirement | None:
        try:
            with self._get_connection() as conn:
                row = conn.execute(
                    "SELECT * FROM requirements WHERE id = ?", (requirement_id,)
                ).fetchone()
                if row is None:
                    return None
                return self._row_to_requirement(row, self._fetch_tags(conn, requirement_id))
        except sqlite3.Error as e:
            logger.error(f"Error getting requirement {requirement_id}: {e}")
            return None

    def create_requirement(self, data: NewRequirement | Mapping[str, Any]) -> Requirement:
        new_req = coerce(NewRequirement, data)
        now = utc_now()
        requirement = Requirement(
            title=new_req.title,
            description=new_req.description,
            type=new_req.type,
            priority=new_req.priority,
            status=RequirementStatus.DRAFT,
            tags=new_req.tags,
            project_id=new_req.project_id,
            created_at=now,
            updated_at=now,
        )

        with self._transaction("creating requirement") as conn:
            if not self._project_exists(conn, requirement.project_id):
                raise ValidationError(f"Project {requirement.project_id} not found")

            conn.execute(
                """
                INSERT INTO requirements (
                    id, title, description, type, priority, status,
                    project_id, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    requirement.id,
                    requirement.title,
                    requirement.description,
                    requirement.type,
                    requirement.priority,
                    requirement.status,
                    requirement.project_id,
                    requirement.created_at,
                    requirement.updated_at,
                ),
            )
            self._insert_tags(conn, requirement.id, requirement.tags)

        logger.debug(f"Created requirement {requirement.id} in project {requirement.project_id}")
        return requirement

    def update_requirement(
        self, requirement_id: str, updates: RequirementUpdate | Mapping[str, Any]
    ) -> Requirement | None:
        update = coerce(RequirementUpdate, updates)
        changes = update.field_changes()
        updated: Requirement | None = None

        with self._transaction("updating requirement") as conn:
            row = conn.execute(
                "SELECT * FROM requirements WHERE id = ?", (requirement_id,)
            ).fetchone()
            if row is not None:
                current_tags = self._fetch_tags(conn, requirement_id)
                existing = self._row_to_requirement(row, current_tags)
                merged = existing.model_copy(
                    update={**changes, "updated_at": touch(existing.updated_at)}
                )

                conn.execute(
                    """
                    UPDATE requirements
                    SET title = ?, description = ?, type = ?, priority = ?, status = ?, updated_at = ?
                    WHERE id = ?
                    """,
                    (
                        merged.title,
                        merged.description,
                        merged.type,
                        merged.priority,
                        merged.status,
                        merged.updated_at,
                        requirement_id,
                    ),
                )

                if update.tags is not None:
                    diff = reconcile_tags(current_tags, update.tags)
                    if diff.to_remove:
                        conn.executemany(
                            "DELETE FROM requirement_tags WHERE requirement_id = ? AND tag = ?",
                            [(requirement_id, tag) for tag in diff.to_remove],
                        )
                    self._insert_tags(conn, requirement_id, diff.to_add)
                    if not diff.is_empty:
                        logger.debug(
                            f"Requirement {requirement_id} tags: "
                            f"-{diff.to_remove} +{diff.to_add}"
                        )

                updated = merged.model_copy(update={"tags": self._fetch_tags(conn, requirement_id)})

        return updated

    def delete_requirement(self, requirement_id: str) -> bool:
        with self._transaction("deleting requirement") as conn:
            cursor = conn.execute("DELETE FROM requirements WHERE id = ?", (requirement_id,))
            deleted = cursor.rowcount > 0

        if deleted:
            logger.debug(f"Deleted requirement {requirement_id}")
        return deleted

    @staticmethod
    def _insert_tags(conn: sqlite3.Connection, requirement_id: str, tags: Iterable[str]) -> None:
        conn.executemany(
            "INSERT INTO requirement_tags (requirement_id, tag) VALUES (?, ?)",
            [(requirement_id, tag) for tag in tags],
        )

    # ------------------------------------------
    # Bulk import
    # ------------------------------------------

    def import_records(
        self, projects: list[Project], requirements: list[Requirement]
    ) -> dict[str, Any]:
        """
        Insert existing records verbatim in one transaction.

        Rows whose ID already exists are left alone, so repeating an import
        is harmless. Requirements without a known project are skipped.

        Returns counts of inserted rows and the IDs of skipped requirements.
        """
        stats: dict[str, Any] = {"projects": 0, "requirements": 0, "skipped": []}

        with self._transaction("importing records") as conn:
            for project in projects:
                cursor = conn.execute(
                    """
                    INSERT OR IGNORE INTO projects (id, name, description, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (project.id, project.name, project.description, project.created_at, project.updated_at),
                )
                stats["projects"] += cursor.rowcount

            for req in requirements:
                if not req.project_id or not self._project_exists(conn, req.project_id):
                    logger.warning(f"Skipping requirement {req.id}: unknown project {req.project_id!r}")
                    stats["skipped"].append(req.id)
                    continue

                cursor = conn.execute(
                    """
                    INSERT OR IGNORE INTO requirements (
                        id, title, description, type, priority, status,
                        project_id, created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        req.id,
                        req.title,
                        req.description,
                        req.type,
                        req.priority,
                        req.status,
                        req.project_id,
                        req.created_at,
                        req.updated_at,
                    ),
                )
                if cursor.rowcount:
                    stats["requirements"] += 1
                    self._insert_tags(conn, req.id, req.tags)

        return stats
