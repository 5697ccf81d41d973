"""
Pytest configuration and fixtures for Requirements Gatherer tests.
"""

import os
import tempfile
from collections.abc import Generator
from pathlib import Path

import pytest

# Set test environment before importing app modules
os.environ["REQG_DATA_DIR"] = tempfile.mkdtemp()
os.environ["REQG_STORAGE_TYPE"] = "sqlite"

from reqgather.storage.base import RequirementsStore
from reqgather.storage.json_store import JsonStore
from reqgather.storage.sqlite_store import SQLiteStore


@pytest.fixture
def temp_data_dir() -> Generator[Path, None, None]:
    """Create a temporary data directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def json_store(temp_data_dir: Path) -> JsonStore:
    """JSON document store in a fresh directory."""
    return JsonStore(temp_data_dir)


@pytest.fixture
def sqlite_store(temp_data_dir: Path) -> Generator[SQLiteStore, None, None]:
    """SQLite store on a fresh database file."""
    store = SQLiteStore(temp_data_dir / "requirements.db")
    yield store
    store.close()


@pytest.fixture(params=["json", "sqlite"])
def store(request, temp_data_dir: Path) -> Generator[RequirementsStore, None, None]:
    """Each backend in turn, so the shared contract is checked against both."""
    if request.param == "json":
        backend: RequirementsStore = JsonStore(temp_data_dir)
    else:
        backend = SQLiteStore(temp_data_dir / "requirements.db")
    yield backend
    backend.close()


@pytest.fixture
def project_data() -> dict:
    """Sample project data for testing."""
    return {
        "name": "Checkout Revamp",
        "description": "Rebuild the web checkout flow",
    }


@pytest.fixture
def requirement_data() -> dict:
    """Sample requirement data (projectId filled in by the test)."""
    return {
        "title": "Guest checkout",
        "description": "Users can pay without creating an account",
        "type": "functional",
        "priority": "high",
        "tags": ["checkout", "ux"],
    }


@pytest.fixture
def make_requirement(requirement_data):
    """Factory that creates a requirement in a store under a project."""
    def _make(store: RequirementsStore, project_id: str, **overrides):
        return store.create_requirement({**requirement_data, "projectId": project_id, **overrides})
    return _make
