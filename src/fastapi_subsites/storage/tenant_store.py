"""Abstract subsite storage interface — the repository pattern.

``TenantStore`` defines the contract for subsite records and their domain
bindings.  The in-memory and SQLAlchemy backends implement it, giving the
matcher, the registry and the replicator a stable dependency target
regardless of the chosen backend.

Subsite records are not themselves tenant-scoped, so no method here goes
through the tenant filter.

Invariants every implementation upholds
---------------------------------------
- Stored ids start at ``1``; ``0`` is the main site and never a row.
- At most one subsite has ``default_site=True``: writing a new default
  clears the flag on every other subsite.
- A domain binding always references an existing subsite.
- Deleting a subsite deletes its bindings.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
import logging
from typing import TYPE_CHECKING

from fastapi_subsites.core.exceptions import TenantNotFoundError
from fastapi_subsites.core.types import MAIN_SITE_ID, DomainBinding, Tenant

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from fastapi_subsites.core.types import TenantKind

logger = logging.getLogger(__name__)


class TenantStore(ABC):
    """Abstract base class for subsite storage backends.

    Implementations must be:

    - **Fully async** — every method is a coroutine.
    - **Concurrency-safe** — instances are shared across all requests.
    - **Raise on not-found** — single-record lookups raise
      ``TenantNotFoundError``; use :meth:`get_optional` for a ``None``
      result instead.
    """

    ############
    # Subsites #
    ############

    @abstractmethod
    async def get_by_id(self, tenant_id: int) -> Tenant:
        """Fetch a subsite by id.

        Raises:
            TenantNotFoundError: When no subsite with *tenant_id* exists.
        """

    @abstractmethod
    async def get_by_identifier(self, identifier: str) -> Tenant:
        """Fetch a subsite by its slug identifier.

        Raises:
            TenantNotFoundError: When no subsite has *identifier*.
        """

    @abstractmethod
    async def create(self, tenant: Tenant) -> Tenant:
        """Persist a new subsite and return it with its assigned id.

        Raises:
            ValueError: When ``tenant.id`` is already set.
        """

    @abstractmethod
    async def update(self, tenant: Tenant) -> Tenant:
        """Replace all mutable fields of an existing subsite.

        Raises:
            TenantNotFoundError: When ``tenant.id`` does not exist.
        """

    @abstractmethod
    async def delete(self, tenant_id: int) -> None:
        """Remove a subsite together with its domain bindings.

        Raises:
            TenantNotFoundError: When *tenant_id* does not exist.
        """

    @abstractmethod
    async def list(
        self,
        include_private: bool = True,
        kind: TenantKind | None = None,
    ) -> Sequence[Tenant]:
        """Return subsites ordered by id.

        Args:
            include_private: When ``False`` only public subsites are returned.
            kind: Optional variant filter.
        """

    @abstractmethod
    async def count(self) -> int:
        """Return the number of stored subsites."""

    ###################
    # Domain bindings #
    ###################

    @abstractmethod
    async def add_domain_binding(self, binding: DomainBinding) -> DomainBinding:
        """Persist a domain binding and return it with its assigned id.

        Raises:
            TenantNotFoundError: When ``binding.tenant_id`` does not exist.
        """

    @abstractmethod
    async def remove_domain_binding(self, binding_id: int) -> None:
        """Delete a domain binding.  Unknown ids are ignored."""

    @abstractmethod
    async def list_domain_bindings(
        self, include_private: bool = False, include_templates: bool = False
    ) -> Sequence[DomainBinding]:
        """Return every binding in store order (ascending id).

        Args:
            include_private: When ``False`` bindings of non-public subsites
                are skipped.
            include_templates: When ``False`` bindings of template subsites
                are skipped; templates are never routable.
        """

    @abstractmethod
    async def bindings_for(self, tenant_id: int) -> Sequence[DomainBinding]:
        """Return the bindings of one subsite, primary bindings first."""

    ####################################
    # Optional operations (base impls) #
    ####################################

    async def close(self) -> None:
        """Release any resources held by this store.

        The base implementation is a no-op; backends holding connection pools
        override it.
        """

    async def get_optional(self, tenant_id: int) -> Tenant | None:
        """Return the subsite with *tenant_id*, or ``None``.

        ``0`` (the main site) always returns ``None``.
        """
        if tenant_id == MAIN_SITE_ID:
            return None
        try:
            return await self.get_by_id(tenant_id)
        except TenantNotFoundError:
            return None

    async def exists(self, tenant_id: int) -> bool:
        return await self.get_optional(tenant_id) is not None

    async def get_by_ids(self, tenant_ids: Iterable[int]) -> Sequence[Tenant]:
        """Fetch several subsites; ids with no match are skipped."""
        result: list[Tenant] = []
        for tid in tenant_ids:
            tenant = await self.get_optional(tid)
            if tenant is not None:
                result.append(tenant)
        return result

    async def default_tenant(self) -> Tenant | None:
        """Return the subsite flagged ``default_site``, or ``None``."""
        for tenant in await self.list():
            if tenant.default_site:
                return tenant
        return None


__all__ = ["TenantStore"]
