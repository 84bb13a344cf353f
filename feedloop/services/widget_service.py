"""Public widget submissions - diagnostics parsing, report and attachment creation."""

import base64
import binascii
import json
import logging
import zlib
from dataclasses import dataclass
from typing import Any

import pydantic
from sqlalchemy.orm import Session

from feedloop.core.errors import ValidationError
from feedloop.core.structured_logging import build_log_context
from feedloop.db.models import Project
from feedloop.schemas.report import ConsoleLogEntry, NetworkRequestEntry
from feedloop.schemas.widget import WidgetAttachmentRead, WidgetReport, WidgetSubmitResponse
from feedloop.services import attachment_service, project_service, report_service

logger = logging.getLogger(__name__)

MAX_DIAGNOSTIC_ENTRIES = 100
MAX_COMPRESSED_DIAGNOSTICS_BYTES = 5 * 1024 * 1024
MAX_DECOMPRESSED_DIAGNOSTICS_BYTES = 10 * 1024 * 1024

# zlib window bits that accept only a gzip header and trailer
_GZIP_WBITS = 16 + zlib.MAX_WBITS


@dataclass
class UploadedFile:
    filename: str
    content_type: str
    data: bytes


@dataclass
class Diagnostics:
    console_logs: list[dict[str, Any]]
    network_requests: list[dict[str, Any]]


def _load_json(raw: str | None, label: str) -> Any:
    if not raw:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Ignoring unparseable widget %s", label)
        return None


def _decompress(raw: str) -> str | None:
    try:
        compressed = base64.b64decode(raw, validate=True)
        if len(compressed) > MAX_COMPRESSED_DIAGNOSTICS_BYTES:
            logger.warning("Ignoring oversized compressed diagnostics")
            return None
        inflater = zlib.decompressobj(wbits=_GZIP_WBITS)
        data = inflater.decompress(compressed, MAX_DECOMPRESSED_DIAGNOSTICS_BYTES)
        if inflater.unconsumed_tail:
            logger.warning("Ignoring compressed diagnostics that inflate past the size limit")
            return None
        if not inflater.eof:
            logger.warning("Ignoring truncated compressed diagnostics")
            return None
        return data.decode("utf-8")
    except (binascii.Error, zlib.error, UnicodeDecodeError):
        logger.warning("Ignoring undecodable compressed diagnostics")
        return None


def _clean_entries(entries: Any, model: type[pydantic.BaseModel]) -> list[dict[str, Any]]:
    """Keep entries matching the embedded shape, at most MAX_DIAGNOSTIC_ENTRIES."""
    if not isinstance(entries, list):
        return []
    cleaned = []
    for entry in entries:
        if len(cleaned) >= MAX_DIAGNOSTIC_ENTRIES:
            break
        try:
            cleaned.append(model.model_validate(entry).model_dump(exclude_none=True))
        except pydantic.ValidationError:
            continue
    return cleaned


def parse_diagnostics(
    *,
    console_logs: str | None = None,
    network_requests: str | None = None,
    diagnostic_data: str | None = None,
    diagnostic_data_compressed: str | None = None,
    compression_type: str | None = None,
) -> Diagnostics:
    """
    Collect console logs and network requests from the submission.

    Combined diagnostics (plain or gzip+base64) take precedence over the
    separate fields. Anything unparseable is dropped, never fatal.
    """
    combined = None
    if diagnostic_data_compressed and (compression_type or "").lower() == "gzip":
        decompressed = _decompress(diagnostic_data_compressed)
        combined = _load_json(decompressed, "compressed diagnostics") if decompressed else None
    elif diagnostic_data:
        combined = _load_json(diagnostic_data, "diagnostics")

    if isinstance(combined, dict):
        raw_logs = combined.get("consoleLogs", combined.get("console_logs"))
        raw_requests = combined.get("networkRequests", combined.get("network_requests"))
    else:
        raw_logs = _load_json(console_logs, "console logs")
        raw_requests = _load_json(network_requests, "network requests")

    return Diagnostics(
        console_logs=_clean_entries(raw_logs, ConsoleLogEntry),
        network_requests=_clean_entries(raw_requests, NetworkRequestEntry),
    )


def resolve_project(db: Session, project_key: str) -> Project:
    project = project_service.get_project_by_integration_key(db, project_key.strip())
    if project is None:
        raise ValidationError("Invalid project key")
    return project


def submit_report(
    db: Session,
    data: WidgetReport,
    diagnostics: Diagnostics,
    files: list[UploadedFile],
) -> WidgetSubmitResponse:
    """
    Create a report from a widget submission.

    Attachment problems are collected in ``attachment_errors`` and do not
    fail the submission.
    """
    project = resolve_project(db, data.project_key)
    browser_info = {"user_agent": data.user_agent} if data.user_agent else None
    report = report_service.create_report(
        db,
        project,
        title=data.title,
        description=data.description,
        report_type=data.type.value,
        priority=data.priority.value,
        reporter_name=data.reporter_name,
        reporter_email=data.reporter_email,
        page_url=data.url,
        browser_info=browser_info,
        console_logs=diagnostics.console_logs,
        network_requests=diagnostics.network_requests,
    )

    stored: list[WidgetAttachmentRead] = []
    errors: list[str] = []
    limit = attachment_service.MAX_ATTACHMENTS_PER_REPORT
    for upload in files[:limit]:
        try:
            attachment = attachment_service.create_attachment(
                db, report, upload.filename, upload.content_type, upload.data
            )
        except ValueError as exc:
            errors.append(str(exc))
            continue
        except attachment_service.StorageError as exc:
            logger.warning(
                "Attachment upload failed report_id=%s: %s", report.id, exc,
                extra=build_log_context(project_id=project.id, report_id=report.id),
            )
            errors.append(f"{upload.filename}: upload failed")
            continue
        stored.append(WidgetAttachmentRead(
            id=attachment.id,
            filename=attachment.filename,
            file_size=attachment.file_size,
            mime_type=attachment.mime_type,
        ))
    if len(files) > limit:
        errors.append(f"Only {limit} attachments are allowed per report; {len(files) - limit} ignored")

    db.commit()
    logger.info(
        "Widget report submitted project_id=%s report_id=%s attachments=%s",
        project.id, report.id, len(stored),
        extra=build_log_context(project_id=project.id, report_id=report.id),
    )
    return WidgetSubmitResponse(
        success=True,
        report_id=report.id,
        message="Report submitted successfully",
        attachments=stored,
        attachment_errors=errors,
    )
