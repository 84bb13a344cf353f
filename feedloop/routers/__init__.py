"""API routers."""

from feedloop.routers.auth import router as auth_router
from feedloop.routers.invitations import router as invitations_router
from feedloop.routers.projects import router as projects_router
from feedloop.routers.reports import router as reports_router
from feedloop.routers.widget import router as widget_router

__all__ = [
    "auth_router",
    "invitations_router",
    "projects_router",
    "reports_router",
    "widget_router",
]
