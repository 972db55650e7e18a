"""In-memory storage backends for testing and development.

Warning:
    These stores hold all data in Python dictionaries.  Everything is
    **lost when the process exits**.  Use them for unit tests, local
    development and demos; use the SQLAlchemy stores in production.

Design notes
------------
- No async I/O: all operations complete synchronously, wrapped in ``async def``
  to satisfy the abstract interfaces.  This keeps tests fast.
- Ids are allocated from per-store counters starting at ``1``, mirroring
  autoincrement primary keys.
- All mutating methods acquire ``_lock`` before touching shared state.
  Read-only methods do not; they are pure dict reads.
- Scoped reads go through :func:`~fastapi_subsites.isolation.filter.filter_records`
  exactly like the SQLAlchemy stores go through ``apply_tenant_filter``.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
import itertools
import logging
from typing import TYPE_CHECKING, Any

from fastapi_subsites.core.exceptions import (
    ContentNodeNotFoundError,
    GroupNotFoundError,
    TenantNotFoundError,
)
from fastapi_subsites.core.types import MAIN_SITE_ID, ContentNode, DomainBinding, Group, Stage, Tenant
from fastapi_subsites.isolation.filter import effective_tenant_id, filter_records
from fastapi_subsites.storage.content_store import ContentStore
from fastapi_subsites.storage.group_store import GroupStore
from fastapi_subsites.storage.tenant_store import TenantStore

if TYPE_CHECKING:
    from collections.abc import Sequence

    from fastapi_subsites.core.types import TenantKind

logger = logging.getLogger(__name__)


class InMemoryTenantStore(TenantStore):
    """In-memory subsite and domain-binding store.

    Example — pytest fixture::

        @pytest.fixture
        async def tenant_store():
            store = InMemoryTenantStore()
            yield store
            store.clear()

    Example — seeded store::

        store = InMemoryTenantStore()
        acme = await store.create(Tenant(title="Acme"))
        await store.add_domain_binding(DomainBinding(tenant_id=acme.id, domain="acme.*"))
    """

    def __init__(self) -> None:
        self._tenants: dict[int, Tenant] = {}
        self._bindings: dict[int, DomainBinding] = {}
        self._tenant_ids = itertools.count(1)
        self._binding_ids = itertools.count(1)
        self._lock: asyncio.Lock = asyncio.Lock()
        logger.debug("InMemoryTenantStore initialised")

    ###################
    # Read operations #
    ###################

    async def get_by_id(self, tenant_id: int) -> Tenant:
        tenant = self._tenants.get(tenant_id)
        if tenant is None:
            raise TenantNotFoundError(identifier=tenant_id)
        return tenant

    async def get_by_identifier(self, identifier: str) -> Tenant:
        """Return the lowest-id subsite with *identifier*.

        Identifiers are not unique: a duplicated subsite keeps its source's
        slug until renamed.
        """
        for tenant_id in sorted(self._tenants):
            if self._tenants[tenant_id].identifier == identifier:
                return self._tenants[tenant_id]
        raise TenantNotFoundError(identifier=identifier)

    async def list(
        self,
        include_private: bool = True,
        kind: TenantKind | None = None,
    ) -> list[Tenant]:
        tenants = [self._tenants[tid] for tid in sorted(self._tenants)]
        if not include_private:
            tenants = [t for t in tenants if t.is_public]
        if kind is not None:
            tenants = [t for t in tenants if t.kind == kind]
        return tenants

    async def count(self) -> int:
        return len(self._tenants)

    async def list_domain_bindings(
        self, include_private: bool = False, include_templates: bool = False
    ) -> list[DomainBinding]:
        bindings = [self._bindings[bid] for bid in sorted(self._bindings)]
        if not include_private:
            bindings = [b for b in bindings if self._tenants[b.tenant_id].is_public]
        if not include_templates:
            bindings = [b for b in bindings if not self._tenants[b.tenant_id].is_template]
        return bindings

    async def bindings_for(self, tenant_id: int) -> list[DomainBinding]:
        bindings = [
            self._bindings[bid]
            for bid in sorted(self._bindings)
            if self._bindings[bid].tenant_id == tenant_id
        ]
        # Stable sort keeps id order inside each primary/non-primary bucket.
        return sorted(bindings, key=lambda b: not b.is_primary)

    ####################
    # Write operations #
    ####################

    async def create(self, tenant: Tenant) -> Tenant:
        """Persist *tenant* under a freshly allocated id.

        Raises:
            ValueError: When ``tenant.id`` is already set.
        """
        if tenant.id is not None:
            msg = f"Tenant id={tenant.id!r} is already set; use update()."
            raise ValueError(msg)
        async with self._lock:
            stored = tenant.model_copy(update={"id": next(self._tenant_ids)})
            if stored.default_site:
                self._clear_default_site(except_id=stored.id)
            self._tenants[stored.id] = stored
        logger.info("Created subsite id=%s title=%r kind=%s", stored.id, stored.title, stored.kind)
        return stored

    async def update(self, tenant: Tenant) -> Tenant:
        async with self._lock:
            if tenant.id not in self._tenants:
                raise TenantNotFoundError(identifier=tenant.id)
            updated = tenant.model_copy(update={"updated_at": datetime.now(UTC)})
            if updated.default_site:
                self._clear_default_site(except_id=updated.id)
            self._tenants[tenant.id] = updated
        logger.debug("Updated subsite id=%s", tenant.id)
        return updated

    async def delete(self, tenant_id: int) -> None:
        async with self._lock:
            if tenant_id not in self._tenants:
                raise TenantNotFoundError(identifier=tenant_id)
            del self._tenants[tenant_id]
            for bid in [b.id for b in self._bindings.values() if b.tenant_id == tenant_id]:
                del self._bindings[bid]
        logger.info("Deleted subsite id=%s", tenant_id)

    async def add_domain_binding(self, binding: DomainBinding) -> DomainBinding:
        async with self._lock:
            if binding.tenant_id not in self._tenants:
                raise TenantNotFoundError(identifier=binding.tenant_id)
            stored = binding.model_copy(update={"id": next(self._binding_ids)})
            self._bindings[stored.id] = stored
        logger.debug(
            "Bound domain %r to subsite %s (primary=%s)",
            stored.domain,
            stored.tenant_id,
            stored.is_primary,
        )
        return stored

    async def remove_domain_binding(self, binding_id: int) -> None:
        async with self._lock:
            self._bindings.pop(binding_id, None)

    def _clear_default_site(self, except_id: int | None) -> None:
        # Caller holds the lock.
        for tid, tenant in self._tenants.items():
            if tid != except_id and tenant.default_site:
                self._tenants[tid] = tenant.model_copy(update={"default_site": False})

    ########################
    # Test / debug helpers #
    ########################

    def clear(self) -> None:
        """Remove every subsite and binding."""
        self._tenants.clear()
        self._bindings.clear()
        logger.debug("InMemoryTenantStore cleared")

    def statistics(self) -> dict[str, Any]:
        """Return a summary of current store state for debugging."""
        by_kind: dict[str, int] = {}
        for tenant in self._tenants.values():
            by_kind[tenant.kind.value] = by_kind.get(tenant.kind.value, 0) + 1
        return {
            "total": len(self._tenants),
            "by_kind": by_kind,
            "domain_bindings": len(self._bindings),
        }


class InMemoryContentStore(ContentStore):
    """In-memory staged content store.

    Each stage is a separate ``{id: ContentNode}`` dict; ids are shared
    between stages.
    """

    def __init__(self) -> None:
        self._stages: dict[Stage, dict[int, ContentNode]] = {stage: {} for stage in Stage}
        self._ids = itertools.count(1)
        self._lock: asyncio.Lock = asyncio.Lock()

    async def get_by_id(
        self,
        node_id: int,
        stage: Stage,
        tenant_id: int | None = None,
    ) -> ContentNode:
        node = self._stages[stage].get(node_id)
        scope = effective_tenant_id(tenant_id)
        if node is None or (scope is not None and node.tenant_id != scope):
            raise ContentNodeNotFoundError(node_id, stage.value)
        return node

    async def children(
        self,
        parent_id: int,
        stage: Stage,
        tenant_id: int | None = None,
    ) -> list[ContentNode]:
        nodes = [n for n in self._stages[stage].values() if n.parent_id == parent_id]
        nodes = filter_records(nodes, tenant_id)
        return sorted(nodes, key=lambda n: (n.sort_order, n.id or 0))

    async def list(self, stage: Stage, tenant_id: int | None = None) -> list[ContentNode]:
        nodes = filter_records(self._stages[stage].values(), tenant_id)
        return sorted(nodes, key=lambda n: n.id or 0)

    async def count(self, stage: Stage, tenant_id: int | None = None) -> int:
        return len(filter_records(self._stages[stage].values(), tenant_id))

    async def write_to_stage(self, node: ContentNode, stage: Stage) -> ContentNode:
        if node.id is None and stage != Stage.DRAFT:
            msg = "New content nodes must be written to the draft stage first."
            raise ValueError(msg)
        async with self._lock:
            if node.id is None:
                node = node.model_copy(update={"id": next(self._ids)})
            self._stages[stage][node.id] = node
        logger.debug("Wrote content node %s to %s (subsite %s)", node.id, stage.value, node.tenant_id)
        return node

    async def publish(self, node_id: int, from_stage: Stage, to_stage: Stage) -> ContentNode:
        async with self._lock:
            node = self._stages[from_stage].get(node_id)
            if node is None:
                raise ContentNodeNotFoundError(node_id, from_stage.value)
            self._stages[to_stage][node_id] = node
        logger.debug("Published content node %s %s → %s", node_id, from_stage.value, to_stage.value)
        return node

    async def delete_from_stage(self, node_id: int, stage: Stage) -> None:
        async with self._lock:
            self._stages[stage].pop(node_id, None)

    def clear(self) -> None:
        for nodes in self._stages.values():
            nodes.clear()


class InMemoryGroupStore(GroupStore):
    """In-memory access-group store."""

    def __init__(self) -> None:
        self._groups: dict[int, Group] = {}
        self._ids = itertools.count(1)
        self._lock: asyncio.Lock = asyncio.Lock()

    async def get_by_id(self, group_id: int) -> Group:
        group = self._groups.get(group_id)
        if group is None:
            raise GroupNotFoundError(group_id)
        return group

    async def for_tenant(self, tenant_id: int | None = None) -> list[Group]:
        groups = [self._groups[gid] for gid in sorted(self._groups)]
        return filter_records(groups, tenant_id)

    async def for_member(self, principal_id: int) -> list[Group]:
        return [
            self._groups[gid]
            for gid in sorted(self._groups)
            if principal_id in self._groups[gid].member_ids
        ]

    async def create(self, group: Group) -> Group:
        async with self._lock:
            stored = group.model_copy(update={"id": next(self._ids)})
            self._groups[stored.id] = stored
        scope = "global" if stored.tenant_id == MAIN_SITE_ID else f"subsite {stored.tenant_id}"
        logger.debug("Created group id=%s title=%r (%s)", stored.id, stored.title, scope)
        return stored

    async def add_member(self, group_id: int, principal_id: int) -> Group:
        async with self._lock:
            group = self._groups.get(group_id)
            if group is None:
                raise GroupNotFoundError(group_id)
            updated = group.model_copy(update={"member_ids": group.member_ids | {principal_id}})
            self._groups[group_id] = updated
        return updated

    async def remove_member(self, group_id: int, principal_id: int) -> Group:
        async with self._lock:
            group = self._groups.get(group_id)
            if group is None:
                raise GroupNotFoundError(group_id)
            updated = group.model_copy(update={"member_ids": group.member_ids - {principal_id}})
            self._groups[group_id] = updated
        return updated

    def clear(self) -> None:
        self._groups.clear()


__all__ = ["InMemoryContentStore", "InMemoryGroupStore", "InMemoryTenantStore"]
