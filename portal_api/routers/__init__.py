"""API routers."""

from portal_api.routers.consultation import router as consultation_router
from portal_api.routers.consultation_admin import router as consultation_admin_router
from portal_api.routers.projects import router as projects_router

__all__ = [
    "consultation_router",
    "consultation_admin_router",
    "projects_router",
]
