"""
API v1 Router

Project-scoped endpoints take the project id in the path; tasks carry their
project in the body or as a query filter.
"""

from fastapi import APIRouter
from . import auth, projects, tasks, users

router = APIRouter()

router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
router.include_router(users.router, prefix="/users", tags=["Users"])
router.include_router(projects.router, prefix="/projects", tags=["Projects"])
router.include_router(tasks.router, prefix="/tasks", tags=["Tasks"])


@router.get("/", tags=["API"])
async def api_root():
    """API root: returns version and available endpoints."""
    return {
        "api": "v1",
        "version": "0.1.0",
        "endpoints": [
            "/auth",
            "/users",
            "/projects",
            "/projects/{project_id}/members",
            "/projects/{project_id}/kanban",
            "/projects/{project_id}/progress",
            "/tasks",
            "/tasks/{task_id}/comments",
        ],
    }
