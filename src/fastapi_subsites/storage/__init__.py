"""Storage backends for fastapi-subsites.

Three repositories, each with an in-memory and a SQLAlchemy backend:

:class:`~fastapi_subsites.storage.tenant_store.TenantStore`
    Subsite records and their domain bindings.

:class:`~fastapi_subsites.storage.content_store.ContentStore`
    Content nodes in the draft and live stages.

:class:`~fastapi_subsites.storage.group_store.GroupStore`
    Access groups, their permission codes and members.

The SQLAlchemy backends (:mod:`fastapi_subsites.storage.database`) are the
production choice and can share one engine.  The in-memory backends
(:mod:`fastapi_subsites.storage.memory`) are for tests and local development.

Example — testing::

    from fastapi_subsites.storage import InMemoryTenantStore

    store = InMemoryTenantStore()
    acme = await store.create(Tenant(title="Acme"))
"""

from fastapi_subsites.core.session import MappingSessionStore, SessionStore
from fastapi_subsites.storage.content_store import ContentStore
from fastapi_subsites.storage.database import (
    SQLAlchemyContentStore,
    SQLAlchemyGroupStore,
    SQLAlchemyTenantStore,
    SubsiteModel,
    create_subsites_engine,
)
from fastapi_subsites.storage.group_store import GroupStore
from fastapi_subsites.storage.memory import (
    InMemoryContentStore,
    InMemoryGroupStore,
    InMemoryTenantStore,
)
from fastapi_subsites.storage.tenant_store import TenantStore

__all__ = [
    "ContentStore",
    "GroupStore",
    "InMemoryContentStore",
    "InMemoryGroupStore",
    "InMemoryTenantStore",
    "MappingSessionStore",
    "SQLAlchemyContentStore",
    "SQLAlchemyGroupStore",
    "SQLAlchemyTenantStore",
    "SessionStore",
    "SubsiteModel",
    "TenantStore",
    "create_subsites_engine",
]
