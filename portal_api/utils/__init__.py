"""Utility modules."""

from portal_api.utils.normalization import (
    normalize_email,
    normalize_name,
)
from portal_api.utils.pagination import (
    PaginationParams,
    get_pagination,
    paginate_query,
    total_pages,
)

__all__ = [
    # Normalization
    "normalize_email",
    "normalize_name",
    # Pagination
    "PaginationParams",
    "get_pagination",
    "paginate_query",
    "total_pages",
]
