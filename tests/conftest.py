"""Shared pytest fixtures for the fastapi-subsites test suite.

Hierarchy
---------
reset_request_context   autouse; gives every test a fresh request context
config                  SubsitesConfig with in-memory defaults
tenant_store            fresh InMemoryTenantStore per test
content_store           fresh InMemoryContentStore per test
group_store             fresh InMemoryGroupStore per test
manager                 SubsitesManager wired to the three in-memory stores
acme                    public subsite bound to ``acme.*`` (primary)
globex                  public subsite bound to ``*.globex.com``
template                template subsite with a small live tree
admin / editor / guest  principals; admin and editor get groups
build_tree              helper seeding a draft+live content tree
sqlite_engine           async engine on SQLite :memory:
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest
import pytest_asyncio

from fastapi_subsites.core.config import SubsitesConfig
from fastapi_subsites.core.context import bind_request, reset_request
from fastapi_subsites.core.session import MappingSessionStore
from fastapi_subsites.core.types import (
    ContentNode,
    DomainBinding,
    Group,
    PermissionCode,
    Principal,
    Stage,
    Tenant,
    TenantKind,
)
from fastapi_subsites.manager import SubsitesManager
from fastapi_subsites.storage.memory import (
    InMemoryContentStore,
    InMemoryGroupStore,
    InMemoryTenantStore,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable, Iterator

    from sqlalchemy.ext.asyncio import AsyncEngine

###################
# Request context #
###################


@pytest.fixture(autouse=True)
def reset_request_context() -> Iterator[MappingSessionStore]:
    """Bind an empty request context for the test and restore it afterwards."""
    session = MappingSessionStore()
    token = bind_request(host=None, override=None, session=session)
    yield session
    reset_request(token)


@pytest.fixture
def session(reset_request_context: MappingSessionStore) -> MappingSessionStore:
    return reset_request_context


##########
# Config #
##########


@pytest.fixture
def config() -> SubsitesConfig:
    return SubsitesConfig(allowed_themes=["simple", "corporate"])


##########
# Stores #
##########


@pytest.fixture
def tenant_store() -> InMemoryTenantStore:
    return InMemoryTenantStore()


@pytest.fixture
def content_store() -> InMemoryContentStore:
    return InMemoryContentStore()


@pytest.fixture
def group_store() -> InMemoryGroupStore:
    return InMemoryGroupStore()


###########
# Manager #
###########


@pytest_asyncio.fixture
async def manager(
    config: SubsitesConfig,
    tenant_store: InMemoryTenantStore,
    content_store: InMemoryContentStore,
    group_store: InMemoryGroupStore,
) -> AsyncIterator[SubsitesManager]:
    m = SubsitesManager(config, tenant_store, content_store, group_store)
    await m.initialize()
    yield m
    await m.close()


############
# Subsites #
############


@pytest_asyncio.fixture
async def acme(tenant_store: InMemoryTenantStore) -> Tenant:
    t = await tenant_store.create(Tenant(title="Acme", identifier="acme"))
    await tenant_store.add_domain_binding(
        DomainBinding(tenant_id=t.id, domain="acme.*", is_primary=True)
    )
    return t


@pytest_asyncio.fixture
async def globex(tenant_store: InMemoryTenantStore) -> Tenant:
    t = await tenant_store.create(Tenant(title="Globex", identifier="globex"))
    await tenant_store.add_domain_binding(DomainBinding(tenant_id=t.id, domain="*.globex.com"))
    return t


@pytest.fixture
def build_tree(
    content_store: InMemoryContentStore,
) -> Callable[..., Awaitable[dict[str, ContentNode]]]:
    """Return a helper writing ``{title: parent_title | None}`` into both stages.

    Nodes are written in mapping order, so parents must precede children.
    """

    async def _build(tenant_id: int, layout: dict[str, str | None], **extra: Any) -> dict[str, ContentNode]:
        nodes: dict[str, ContentNode] = {}
        for order, (title, parent) in enumerate(layout.items()):
            parent_id = nodes[parent].id if parent else 0
            node = await content_store.write_to_stage(
                ContentNode(
                    tenant_id=tenant_id,
                    parent_id=parent_id,
                    title=title,
                    url_segment=title.lower().replace(" ", "-"),
                    sort_order=order,
                    **extra,
                ),
                Stage.DRAFT,
            )
            await content_store.publish(node.id, Stage.DRAFT, Stage.LIVE)
            nodes[title] = node
        return nodes

    return _build


@pytest_asyncio.fixture
async def template(
    tenant_store: InMemoryTenantStore,
    group_store: InMemoryGroupStore,
    build_tree: Callable[..., Awaitable[dict[str, ContentNode]]],
) -> Tenant:
    t = await tenant_store.create(
        Tenant(title="Starter", identifier="starter", kind=TenantKind.TEMPLATE)
    )
    await build_tree(t.id, {"Home": None, "About": "Home", "Team": "About", "Contact": None})
    await group_store.create(
        Group(
            title="Starter editors",
            tenant_id=t.id,
            permission_codes=frozenset({PermissionCode.SUBSITE_EDIT.value}),
            member_ids=frozenset({99}),
        )
    )
    return t


##############
# Principals #
##############


@pytest.fixture
def guest() -> Principal:
    return Principal(id=3, email="guest@example.com")


@pytest_asyncio.fixture
async def admin(group_store: InMemoryGroupStore) -> Principal:
    await group_store.create(
        Group(
            title="Administrators",
            permission_codes=frozenset({PermissionCode.ADMIN.value}),
            member_ids=frozenset({1}),
        )
    )
    return Principal(id=1, email="admin@example.com")


@pytest_asyncio.fixture
async def editor(group_store: InMemoryGroupStore, acme: Tenant) -> Principal:
    """Principal 2 holds SUBSITE_EDIT on acme only."""
    await group_store.create(
        Group(
            title="Acme editors",
            tenant_id=acme.id,
            permission_codes=frozenset({PermissionCode.SUBSITE_EDIT.value}),
            member_ids=frozenset({2}),
        )
    )
    return Principal(id=2, email="editor@example.com")


##########
# SQLite #
##########


@pytest_asyncio.fixture
async def sqlite_engine() -> AsyncIterator[AsyncEngine]:
    pytest.importorskip("aiosqlite", reason="aiosqlite not installed")
    from fastapi_subsites.storage.database import create_subsites_engine  # noqa: PLC0415

    engine = create_subsites_engine("sqlite+aiosqlite:///:memory:")
    yield engine
    await engine.dispose()
