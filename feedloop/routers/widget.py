"""Public widget endpoint - unauthenticated report submission from customer sites."""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response
from sqlalchemy.orm import Session
from starlette.datastructures import UploadFile

from feedloop.core.deps import get_db
from feedloop.core.errors import FeedLoopError, error_body
from feedloop.core.rate_limit import WIDGET_LIMIT, limiter
from feedloop.core.validation import unwrap, validate
from feedloop.schemas.widget import WidgetReport
from feedloop.services import widget_service

logger = logging.getLogger(__name__)

router = APIRouter()

WIDGET_CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
    "Access-Control-Max-Age": "86400",
}

_TEXT_FIELDS = (
    "project_key", "type", "title", "description", "priority",
    "reporter_name", "reporter_email", "url", "user_agent",
)
_DIAGNOSTIC_FIELDS = (
    "console_logs", "network_requests", "diagnostic_data",
    "diagnostic_data_compressed", "compression_type",
)


def _text(value) -> str | None:
    return value if isinstance(value, str) else None


@router.options("/submit")
def submit_preflight() -> Response:
    return Response(status_code=204, headers=WIDGET_CORS_HEADERS)


@router.post("/submit", status_code=201)
@limiter.limit(WIDGET_LIMIT)
async def submit(request: Request, db: Session = Depends(get_db)):
    """
    Accept a multipart submission from the embedded widget.

    Text fields identify the project and describe the report; diagnostics
    and up to five ``attachments`` files are optional. Errors are returned
    with the widget CORS headers so the embedding page can read them.
    """
    try:
        form = await request.form()
        fields = {name: _text(form.get(name)) for name in _TEXT_FIELDS}
        data = unwrap(validate(
            WidgetReport, {name: value for name, value in fields.items() if value is not None}
        ))
        diagnostics = widget_service.parse_diagnostics(
            **{name: _text(form.get(name)) for name in _DIAGNOSTIC_FIELDS}
        )
        files = []
        for upload in form.getlist("attachments"):
            if not isinstance(upload, UploadFile) or not upload.filename:
                continue
            files.append(widget_service.UploadedFile(
                filename=upload.filename,
                content_type=upload.content_type or "application/octet-stream",
                data=await upload.read(),
            ))
        result = widget_service.submit_report(db, data, diagnostics, files)
    except FeedLoopError as exc:
        logger.info("Widget submission rejected error=%s", exc.error)
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc.error, exc.message, exc.details),
            headers=WIDGET_CORS_HEADERS,
        )
    return JSONResponse(
        status_code=201,
        content=result.model_dump(mode="json"),
        headers=WIDGET_CORS_HEADERS,
    )
