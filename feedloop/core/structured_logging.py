"""Structured logging helpers (no report contents or reporter PII)."""

import logging
from typing import Any

from feedloop.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging() -> None:
    """Configure the root logger once at application start."""
    logging.basicConfig(level=settings.LOG_LEVEL.upper(), format=LOG_FORMAT)


def build_log_context(
    *,
    user_id: Any = None,
    project_id: Any = None,
    report_id: Any = None,
    route: str | None = None,
    method: str | None = None,
) -> dict[str, Any]:
    """Return a log context dict suitable for ``extra=``."""
    context: dict[str, Any] = {}
    if user_id:
        context["user_id"] = str(user_id)
    if project_id:
        context["project_id"] = str(project_id)
    if report_id:
        context["report_id"] = str(report_id)
    if route:
        context["route"] = route
    if method:
        context["method"] = method
    return context
