"""Attachment storage for report files."""

import logging
import os
import uuid
from pathlib import Path

from botocore.exceptions import BotoCoreError, ClientError
from sqlalchemy.orm import Session

from feedloop.core.config import settings
from feedloop.db.models import Attachment, Report
from feedloop.services.storage_client import get_s3_client, public_object_url
from feedloop.utils.normalization import sanitize_filename

logger = logging.getLogger(__name__)


# =============================================================================
# Configuration
# =============================================================================

ALLOWED_EXTENSIONS = {"png", "jpg", "jpeg", "gif", "pdf", "xls", "xlsx", "doc", "docx"}
ALLOWED_MIME_TYPES = {
    "image/png",
    "image/jpeg",
    "image/jpg",
    "image/gif",
    "application/pdf",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/msword",
}
MAX_FILE_SIZE_BYTES = 10 * 1024 * 1024  # 10 MB
MAX_ATTACHMENTS_PER_REPORT = 5
S3_BATCH_DELETE_SIZE = 1000


class StorageError(Exception):
    """Object storage rejected an operation."""


# =============================================================================
# Storage Backend
# =============================================================================

def _get_storage_backend() -> str:
    return settings.STORAGE_BACKEND


def _local_path(storage_key: str) -> Path:
    root = Path(settings.LOCAL_STORAGE_PATH)
    path = (root / storage_key).resolve()
    if root.resolve() not in path.parents:
        raise StorageError(f"Storage key escapes storage root: {storage_key}")
    return path


def validate_file(filename: str, content_type: str, file_size: int) -> tuple[bool, str | None]:
    """
    Validate file against allowlists and size limits.

    Returns (is_valid, error_message)
    """
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    if ext not in ALLOWED_EXTENSIONS:
        return False, f"{filename}: file extension '.{ext}' not allowed"

    if content_type not in ALLOWED_MIME_TYPES:
        return False, f"{filename}: content type '{content_type}' not allowed"

    if file_size > MAX_FILE_SIZE_BYTES:
        max_mb = MAX_FILE_SIZE_BYTES / (1024 * 1024)
        return False, f"{filename}: file size exceeds {max_mb:.0f} MB limit"

    return True, None


def build_storage_key(project_id: uuid.UUID, report_id: uuid.UUID, filename: str) -> str:
    return f"projects/{project_id}/reports/{report_id}/{uuid.uuid4().hex}_{sanitize_filename(filename)}"


def store_file(storage_key: str, data: bytes, content_type: str) -> str:
    """Store bytes in the configured backend and return the object's URL."""
    if _get_storage_backend() == "s3":
        try:
            get_s3_client().put_object(
                Bucket=settings.S3_BUCKET, Key=storage_key, Body=data, ContentType=content_type
            )
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(str(exc)) from exc
        return public_object_url(storage_key)

    path = _local_path(storage_key)
    try:
        os.makedirs(path.parent, exist_ok=True)
        path.write_bytes(data)
    except OSError as exc:
        raise StorageError(str(exc)) from exc
    return path.as_uri()


def delete_files(storage_keys: list[str]) -> tuple[int, list[str]]:
    """
    Delete stored objects.

    S3 keys are removed in batches; when a batch call fails the keys are
    retried one by one. Returns (deleted_count, failures) where each failure
    names the key and the reason.
    """
    if not storage_keys:
        return 0, []
    if _get_storage_backend() == "s3":
        return _delete_s3_objects(storage_keys)

    deleted = 0
    failures: list[str] = []
    for key in storage_keys:
        try:
            _local_path(key).unlink(missing_ok=True)
            deleted += 1
        except (OSError, StorageError) as exc:
            failures.append(f"{key}: {exc}")
    return deleted, failures


def _delete_s3_objects(storage_keys: list[str]) -> tuple[int, list[str]]:
    s3 = get_s3_client()
    deleted = 0
    failures: list[str] = []

    for start in range(0, len(storage_keys), S3_BATCH_DELETE_SIZE):
        batch = storage_keys[start:start + S3_BATCH_DELETE_SIZE]
        try:
            response = s3.delete_objects(
                Bucket=settings.S3_BUCKET,
                Delete={"Objects": [{"Key": key} for key in batch], "Quiet": True},
            )
        except (BotoCoreError, ClientError) as exc:
            logger.warning("Batch storage delete failed, retrying individually: %s", exc)
            batch_deleted, batch_failures = _delete_s3_individually(s3, batch)
            deleted += batch_deleted
            failures.extend(batch_failures)
            continue

        errors = response.get("Errors", [])
        for error in errors:
            failures.append(f"{error.get('Key')}: {error.get('Message') or error.get('Code')}")
        deleted += len(batch) - len(errors)

    return deleted, failures


def _delete_s3_individually(s3, keys: list[str]) -> tuple[int, list[str]]:
    deleted = 0
    failures: list[str] = []
    for key in keys:
        try:
            s3.delete_object(Bucket=settings.S3_BUCKET, Key=key)
            deleted += 1
        except (BotoCoreError, ClientError) as exc:
            failures.append(f"{key}: {exc}")
    return deleted, failures


# =============================================================================
# Service Functions
# =============================================================================

def create_attachment(
    db: Session,
    report: Report,
    filename: str,
    content_type: str,
    data: bytes,
) -> Attachment:
    """
    Validate, store, and record one attachment.

    Raises:
        ValueError: file rejected by the allowlist or size limit
        StorageError: the backend refused the upload
    """
    is_valid, error = validate_file(filename, content_type, len(data))
    if not is_valid:
        raise ValueError(error)

    storage_key = build_storage_key(report.project_id, report.id, filename)
    file_url = store_file(storage_key, data, content_type)

    attachment = Attachment(
        report_id=report.id,
        filename=filename,
        file_size=len(data),
        mime_type=content_type,
        storage_key=storage_key,
        file_url=file_url,
    )
    db.add(attachment)
    db.flush()
    return attachment
