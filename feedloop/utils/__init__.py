"""Utility modules."""

from feedloop.utils.normalization import (
    escape_like_string,
    normalize_email,
    normalize_name,
    sanitize_filename,
)
from feedloop.utils.pagination import (
    PaginationMeta,
    PaginationParams,
    paginate_select,
)

__all__ = [
    # Normalization
    "escape_like_string",
    "normalize_email",
    "normalize_name",
    "sanitize_filename",
    # Pagination
    "PaginationParams",
    "PaginationMeta",
    "paginate_select",
]
