"""fastapi-subsites — host several independently managed sites on one FastAPI app.

This package lets one application serve several *subsites*, each with its own
content tree, domain patterns and access groups.  It provides hostname
resolution with wildcard patterns, a session-backed "current subsite", a
tenant filter for scoped reads, group-based access decisions and subtree
replication for duplicating subsites and instantiating templates.

Quick start
-----------
.. code-block:: python

    from fastapi import FastAPI
    from starlette.middleware.sessions import SessionMiddleware
    from fastapi_subsites import SubsitesConfig, SubsitesManager, SubsitesMiddleware
    from fastapi_subsites.dependencies import make_current_tenant_id_dependency

    config = SubsitesConfig(database_url="sqlite+aiosqlite:///./cms.db")
    manager = SubsitesManager(config)

    app = FastAPI(lifespan=manager.create_lifespan())
    app.add_middleware(SubsitesMiddleware, manager=manager)
    app.add_middleware(SessionMiddleware, secret_key="change-me")

    get_subsite_id = make_current_tenant_id_dependency(manager)

Public surface
--------------
The symbols exported below form the **stable public API**.  Anything not
listed here is an implementation detail and may change between minor versions.
"""

from importlib.metadata import PackageNotFoundError, version as _pkg_version

from fastapi_subsites.access.evaluator import AccessEvaluator
from fastapi_subsites.core.config import SubsitesConfig
from fastapi_subsites.core.context import TenantContext, bind_request, reset_request
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
from fastapi_subsites.isolation.filter import tenant_filter_disabled
from fastapi_subsites.manager import SubsitesManager, provide_permissions
from fastapi_subsites.middleware.subsites import SubsitesMiddleware
from fastapi_subsites.registry import TenantRegistry
from fastapi_subsites.replication.replicator import SubtreeReplicator
from fastapi_subsites.resolution.domain import DomainMatcher
from fastapi_subsites.storage.content_store import ContentStore
from fastapi_subsites.storage.group_store import GroupStore
from fastapi_subsites.storage.memory import (
    InMemoryContentStore,
    InMemoryGroupStore,
    InMemoryTenantStore,
)
from fastapi_subsites.storage.tenant_store import TenantStore

try:
    __version__: str = _pkg_version("fastapi-subsites")
except PackageNotFoundError:  # pragma: no cover  (source checkout)
    __version__ = "0.0.0.dev0"

__all__ = [
    # Version
    "__version__",
    # Configuration
    "SubsitesConfig",
    # Manager
    "SubsitesManager",
    "provide_permissions",
    # Domain types
    "MAIN_SITE_ID",
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
    # Context
    "MappingSessionStore",
    "SessionStore",
    "TenantContext",
    "bind_request",
    "reset_request",
    "tenant_filter_disabled",
    # Components
    "AccessEvaluator",
    "DomainMatcher",
    "SubtreeReplicator",
    "TenantRegistry",
    # Exceptions
    "ConfigurationError",
    "ContentNodeNotFoundError",
    "GroupNotFoundError",
    "InvalidPermissionArgumentError",
    "InvalidTenantKindError",
    "PermissionDeniedError",
    "ReplicationError",
    "SubsitesError",
    "TenantNotFoundError",
    # Storage
    "ContentStore",
    "GroupStore",
    "InMemoryContentStore",
    "InMemoryGroupStore",
    "InMemoryTenantStore",
    "TenantStore",
    # Middleware
    "SubsitesMiddleware",
]
