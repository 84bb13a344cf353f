"""Service layer modules."""

# Import service modules (not individual functions) for cleaner access
from feedloop.services import attachment_service
from feedloop.services import auth_service
from feedloop.services import membership_service
from feedloop.services import project_service
from feedloop.services import report_export_service
from feedloop.services import report_service
from feedloop.services import widget_service

__all__ = [
    "attachment_service",
    "auth_service",
    "membership_service",
    "project_service",
    "report_export_service",
    "report_service",
    "widget_service",
]
