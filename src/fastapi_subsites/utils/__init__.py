"""Utility functions — input normalisation and DB compatibility."""

from fastapi_subsites.utils.db_compat import DbDialect, detect_dialect, requires_static_pool
from fastapi_subsites.utils.validation import (
    coerce_tenant_id,
    ensure_permission_codes,
    normalize_host,
    slugify_title,
    validate_url,
)

__all__ = [
    "DbDialect",
    "coerce_tenant_id",
    "detect_dialect",
    "ensure_permission_codes",
    "normalize_host",
    "requires_static_pool",
    "slugify_title",
    "validate_url",
]
