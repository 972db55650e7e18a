"""Core subsite abstractions — types, config, context, session and exceptions."""

from fastapi_subsites.core.config import SubsitesConfig
from fastapi_subsites.core.context import (
    RequestState,
    TenantContext,
    bind_request,
    current_tenant_hint,
    permission_cache,
    request_state,
    reset_request,
)
from fastapi_subsites.core.exceptions import (
    ConfigurationError,
    ContentNodeNotFoundError,
    GroupNotFoundError,
    InvalidPermissionArgumentError,
    InvalidTenantKindError,
    PermissionDeniedError,
    ReplicationError,
    SubsitesError,
    TenantNotFoundError,
)
from fastapi_subsites.core.session import MappingSessionStore, SessionStore
from fastapi_subsites.core.types import (
    MAIN_SITE_ID,
    PERMISSION_DESCRIPTIONS,
    ContentNode,
    DomainBinding,
    DomainMatch,
    Group,
    PermissionCode,
    Principal,
    Stage,
    Tenant,
    TenantKind,
    build_tenant,
)

__all__ = [
    # Config
    "SubsitesConfig",
    # Context
    "RequestState",
    "TenantContext",
    "bind_request",
    "current_tenant_hint",
    "permission_cache",
    "request_state",
    "reset_request",
    # Session
    "MappingSessionStore",
    "SessionStore",
    # Exceptions
    "SubsitesError",
    "TenantNotFoundError",
    "ContentNodeNotFoundError",
    "GroupNotFoundError",
    "InvalidPermissionArgumentError",
    "InvalidTenantKindError",
    "ReplicationError",
    "PermissionDeniedError",
    "ConfigurationError",
    # Types
    "MAIN_SITE_ID",
    "PERMISSION_DESCRIPTIONS",
    "ContentNode",
    "DomainBinding",
    "DomainMatch",
    "Group",
    "PermissionCode",
    "Principal",
    "Stage",
    "Tenant",
    "TenantKind",
    "build_tenant",
]
