"""Data normalization utilities for consistent data quality."""

import re
import unicodedata
from typing import Optional


def normalize_email(email: Optional[str]) -> Optional[str]:
    """
    Normalize email to lowercase.

    Args:
        email: Raw email input

    Returns:
        Lowercased email or None if empty
    """
    if not email:
        return None
    stripped = email.strip().lower()
    return stripped or None


def normalize_name(name: Optional[str]) -> Optional[str]:
    """Strip whitespace and collapse multiple spaces; None if empty."""
    if not name:
        return None
    collapsed = " ".join(name.split())
    return collapsed or None


def escape_like_string(value: str) -> str:
    """Escape LIKE wildcards so user text matches literally (escape char ``\\``)."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _strip_accents(value: str) -> str:
    return "".join(
        ch for ch in unicodedata.normalize("NFKD", value) if not unicodedata.combining(ch)
    )


def sanitize_filename(filename: Optional[str], max_length: int = 100) -> str:
    """
    Make an uploaded filename safe for use in a storage key.

    Keeps letters, digits, dot, dash and underscore; everything else
    becomes an underscore. Never returns an empty string.
    """
    if not filename:
        return "file"
    base = filename.replace("\\", "/").rsplit("/", 1)[-1]
    cleaned = re.sub(r"[^A-Za-z0-9._-]+", "_", _strip_accents(base)).strip("._")
    if not cleaned:
        return "file"
    if len(cleaned) > max_length:
        stem, dot, ext = cleaned.rpartition(".")
        if dot and len(ext) < 10:
            cleaned = stem[: max_length - len(ext) - 1] + "." + ext
        else:
            cleaned = cleaned[:max_length]
    return cleaned
