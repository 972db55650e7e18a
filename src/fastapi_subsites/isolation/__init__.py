"""Tenant filter — scoping of content and group reads to one subsite."""

from fastapi_subsites.isolation.filter import (
    apply_tenant_filter,
    effective_tenant_id,
    filter_records,
    is_filter_disabled,
    tenant_filter_disabled,
)

__all__ = [
    "apply_tenant_filter",
    "effective_tenant_id",
    "filter_records",
    "is_filter_disabled",
    "tenant_filter_disabled",
]
