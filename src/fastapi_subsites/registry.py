"""Subsite lookup, creation and filter-bypass execution.

:class:`TenantRegistry` is the single entry point application code uses to
find and create subsites.  Creation goes through
:func:`~fastapi_subsites.core.types.build_tenant`, so the variant of a new
record is chosen by a :class:`~fastapi_subsites.core.types.TenantKind` tag.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
import inspect
import logging
from typing import TYPE_CHECKING, Any, TypeVar

from fastapi_subsites.core.exceptions import TenantNotFoundError
from fastapi_subsites.core.types import TenantKind, build_tenant
from fastapi_subsites.isolation.filter import tenant_filter_disabled
from fastapi_subsites.utils.validation import slugify_title

if TYPE_CHECKING:
    from collections.abc import Sequence

    from fastapi_subsites.core.types import Tenant
    from fastapi_subsites.resolution.domain import DomainMatcher
    from fastapi_subsites.storage.tenant_store import TenantStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TenantRegistry:
    """Find, create and list subsites.

    Args:
        store: Subsite storage backend.
        matcher: Domain matcher backing :meth:`by_domain`.
    """

    def __init__(self, store: TenantStore, matcher: DomainMatcher) -> None:
        self._store = store
        self._matcher = matcher

    @property
    def store(self) -> TenantStore:
        return self._store

    async def by_id(self, tenant_id: int) -> Tenant:
        """Return the subsite with *tenant_id*.

        Raises:
            TenantNotFoundError: When it does not exist (including id ``0``).
        """
        tenant = await self._store.get_optional(tenant_id)
        if tenant is None:
            raise TenantNotFoundError(identifier=tenant_id)
        return tenant

    async def get_optional(self, tenant_id: int) -> Tenant | None:
        return await self._store.get_optional(tenant_id)

    async def by_domain(self, host: str, include_private: bool = False) -> int | None:
        """Return the id of the subsite serving *host*, or ``None``."""
        return await self._matcher.resolve(host, include_private)

    async def create(
        self,
        title: str,
        kind: TenantKind | str = TenantKind.SUBSITE,
        **fields: Any,
    ) -> Tenant:
        """Create and persist a subsite titled *title*.

        The identifier is derived from the title unless given explicitly.
        """
        fields.setdefault("identifier", slugify_title(title))
        tenant = await self._store.create(build_tenant(kind, title=title, **fields))
        logger.info("Registered subsite id=%s identifier=%r", tenant.id, tenant.identifier)
        return tenant

    async def list(self, include_private: bool = True) -> Sequence[Tenant]:
        return await self._store.list(include_private=include_private)

    async def templates(self) -> Sequence[Tenant]:
        return await self._store.list(kind=TenantKind.TEMPLATE)

    async def default_tenant(self) -> Tenant | None:
        """Return the subsite flagged as the default site, if any."""
        return await self._store.default_tenant()

    async def with_filter_disabled(
        self,
        fn: Callable[..., Awaitable[T]] | Callable[..., T],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        """Run *fn* with the tenant filter bypassed and return its result.

        *fn* may be a plain function or a coroutine function.  The previous
        bypass state is restored on normal return and when *fn* raises.
        """
        with tenant_filter_disabled():
            result = fn(*args, **kwargs)
            if inspect.isawaitable(result):
                result = await result
        return result  # type: ignore[return-value]


__all__ = ["TenantRegistry"]
