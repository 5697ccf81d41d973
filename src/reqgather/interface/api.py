"""
FastAPI REST API for the Requirements Gatherer.

Provides REST endpoints for:
- Project CRUD and name search
- Requirement CRUD, globally and per project

The store handle is created once by the caller and injected through
create_app(); routes reach it via the get_store dependency.
"""

from datetime import datetime, timezone

from fastapi import Depends, FastAPI, HTTPException, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from reqgather.core.config import get_logger
from reqgather.core.errors import PersistenceError, ValidationError
from reqgather.core.types import (
    NewProject,
    NewRequirement,
    ProjectUpdate,
    RequirementUpdate,
)
from reqgather.storage.base import RequirementsStore

logger = get_logger("api")


# ==========================================
# Response Models
# ==========================================

class ProjectList(BaseModel):
    projects: list[dict]
    count: int


class RequirementList(BaseModel):
    requirements: list[dict]
    count: int


# ==========================================
# Dependencies
# ==========================================

def get_store(request: Request) -> RequirementsStore:
    """The store handle attached to the running app."""
    return request.app.state.store


# ==========================================
# App Factory
# ==========================================

def create_app(store: RequirementsStore) -> FastAPI:
    """Build the API around an already-initialized store."""
    app = FastAPI(
        title="Requirements Gatherer API",
        description="API for gathering requirements and managing projects",
        version="1.0.0",
    )
    app.state.store = store

    # CORS for browser clients
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ValidationError)
    async def invalid_input_handler(request: Request, exc: ValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": str(exc), "errors": exc.errors},
        )

    @app.exception_handler(PersistenceError)
    async def storage_failure_handler(request: Request, exc: PersistenceError):
        logger.error(f"Storage failure on {request.method} {request.url.path}: {exc}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Storage failure"},
        )

    _register_routes(app)
    return app


def _register_routes(app: FastAPI) -> None:
    # ==========================================
    # Health
    # ==========================================

    @app.get("/health")
    async def health(store: RequirementsStore = Depends(get_store)):
        """Health check endpoint."""
        return {
            "status": "healthy",
            "storage": store.storage_type,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    # ==========================================
    # Projects
    # ==========================================

    @app.get("/projects", response_model=ProjectList)
    async def list_projects(search: str | None = None, store: RequirementsStore = Depends(get_store)):
        """List projects, optionally filtered by a case-insensitive name search."""
        projects = store.find_projects_by_name(search)
        return {"projects": [p.to_dict() for p in projects], "count": len(projects)}

    @app.post("/projects", status_code=status.HTTP_201_CREATED)
    async def create_project(body: NewProject, store: RequirementsStore = Depends(get_store)):
        return store.create_project(body).to_dict()

    @app.get("/projects/{project_id}")
    async def get_project(project_id: str, store: RequirementsStore = Depends(get_store)):
        project = store.get_project_by_id(project_id)
        if project is None:
            raise HTTPException(status_code=404, detail="Project not found")
        return project.to_dict()

    @app.put("/projects/{project_id}")
    async def update_project(
        project_id: str,
        body: ProjectUpdate,
        store: RequirementsStore = Depends(get_store),
    ):
        """Partially update a project; omitted fields keep their values."""
        project = store.update_project(project_id, body)
        if project is None:
            raise HTTPException(status_code=404, detail="Project not found")
        return project.to_dict()

    @app.delete("/projects/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def delete_project(project_id: str, store: RequirementsStore = Depends(get_store)):
        """Delete a project and all of its requirements."""
        if not store.delete_project(project_id):
            raise HTTPException(status_code=404, detail="Project not found")
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @app.get("/projects/{project_id}/requirements", response_model=RequirementList)
    async def list_project_requirements(project_id: str, store: RequirementsStore = Depends(get_store)):
        if store.get_project_by_id(project_id) is None:
            raise HTTPException(status_code=404, detail="Project not found")
        requirements = store.list_requirements_by_project(project_id)
        return {"requirements": [r.to_dict() for r in requirements], "count": len(requirements)}

    # ==========================================
    # Requirements
    # ==========================================

    @app.get("/requirements", response_model=RequirementList)
    async def list_requirements(store: RequirementsStore = Depends(get_store)):
        requirements = store.list_requirements()
        return {"requirements": [r.to_dict() for r in requirements], "count": len(requirements)}

    @app.post("/requirements", status_code=status.HTTP_201_CREATED)
    async def create_requirement(body: NewRequirement, store: RequirementsStore = Depends(get_store)):
        """Create a draft requirement. Unknown projects are rejected with 400."""
        return store.create_requirement(body).to_dict()

    @app.get("/requirements/{requirement_id}")
    async def get_requirement(requirement_id: str, store: RequirementsStore = Depends(get_store)):
        requirement = store.get_requirement_by_id(requirement_id)
        if requirement is None:
            raise HTTPException(status_code=404, detail="Requirement not found")
        return requirement.to_dict()

    @app.put("/requirements/{requirement_id}")
    async def update_requirement(
        requirement_id: str,
        body: RequirementUpdate,
        store: RequirementsStore = Depends(get_store),
    ):
        """Partially update a requirement. Supplying tags replaces the whole set."""
        requirement = store.update_requirement(requirement_id, body)
        if requirement is None:
            raise HTTPException(status_code=404, detail="Requirement not found")
        return requirement.to_dict()

    @app.delete("/requirements/{requirement_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def delete_requirement(requirement_id: str, store: RequirementsStore = Depends(get_store)):
        if not store.delete_requirement(requirement_id):
            raise HTTPException(status_code=404, detail="Requirement not found")
        return Response(status_code=status.HTTP_204_NO_CONTENT)


# ==========================================
# Run with uvicorn
# ==========================================

if __name__ == "__main__":
    import uvicorn

    from reqgather.core.config import settings, setup_logging
    from reqgather.storage.factory import create_storage

    setup_logging()
    uvicorn.run(create_app(create_storage()), host=settings.api_host, port=settings.api_port)
