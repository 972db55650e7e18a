"""Group-based access decisions for the main site and for subsites.

Rules, short-circuiting in order:

1. No principal → deny (``False`` / ``[]``).
2. Membership of a global group carrying ``ADMIN`` → allow everything.
3. Membership of a global group carrying ``SUBSITE_ACCESS_ALL`` → allow
   everything.
4. Otherwise membership of a global group carrying one of the required codes
   grants main-site access; for a single subsite, a group of that subsite
   carrying the code (or ``ADMIN``) grants access too.

Decisions are memoised in the request-local permission cache, which
:meth:`~fastapi_subsites.core.context.TenantContext.switch_to` clears.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from fastapi_subsites.core.context import permission_cache
from fastapi_subsites.core.exceptions import InvalidPermissionArgumentError
from fastapi_subsites.core.types import MAIN_SITE_ID, PermissionCode
from fastapi_subsites.utils.validation import ensure_permission_codes

if TYPE_CHECKING:
    from collections.abc import Sequence

    from fastapi_subsites.core.types import Group, Principal, Tenant
    from fastapi_subsites.storage.group_store import GroupStore
    from fastapi_subsites.storage.tenant_store import TenantStore

logger = logging.getLogger(__name__)

_GLOBAL_GRANTS = frozenset({PermissionCode.ADMIN.value, PermissionCode.SUBSITE_ACCESS_ALL.value})


class AccessEvaluator:
    """Answer "may this principal do X here?" from group memberships.

    Args:
        tenant_store: Source of subsites and domain bindings.
        group_store: Source of groups and their members.
    """

    def __init__(self, tenant_store: TenantStore, group_store: GroupStore) -> None:
        self._tenants = tenant_store
        self._groups = group_store

    async def _member_groups(self, principal: Principal) -> Sequence[Group]:
        cache = permission_cache()
        key = ("groups", principal.id)
        if key not in cache:
            cache[key] = await self._groups.for_member(principal.id)
        return cache[key]

    async def _global_codes(self, principal: Principal) -> frozenset[str]:
        codes: set[str] = set()
        for group in await self._member_groups(principal):
            if group.is_global:
                codes |= group.permission_codes
        return frozenset(codes)

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------

    async def has_main_site_access(
        self,
        principal: Principal | None,
        required_codes: Any = frozenset({PermissionCode.ADMIN.value}),
    ) -> bool:
        """Return ``True`` when *principal* may act on the main site.

        Raises:
            InvalidPermissionArgumentError: When *required_codes* is not a
                collection of strings.
        """
        codes = ensure_permission_codes(required_codes)
        if principal is None:
            return False

        cache = permission_cache()
        key = ("main", principal.id, codes)
        if key in cache:
            return cache[key]

        global_codes = await self._global_codes(principal)
        allowed = not global_codes.isdisjoint(_GLOBAL_GRANTS) or not global_codes.isdisjoint(codes)
        cache[key] = allowed
        logger.debug("Main-site access for principal %s with %s: %s", principal.id, sorted(codes), allowed)
        return allowed

    async def has_permission(
        self,
        principal: Principal | None,
        code: str,
        tenant_id: int = MAIN_SITE_ID,
    ) -> bool:
        """Return ``True`` when *principal* holds *code* on *tenant_id*.

        Main-site grants cover every subsite; a subsite group grants only its
        own subsite.
        """
        if not isinstance(code, str):
            raise InvalidPermissionArgumentError(code)
        if principal is None:
            return False
        if await self.has_main_site_access(principal, {code}):
            return True
        if tenant_id == MAIN_SITE_ID:
            return False
        wanted = {code, PermissionCode.ADMIN.value}
        return any(
            g.tenant_id == tenant_id and g.grants(wanted)
            for g in await self._member_groups(principal)
        )

    async def accessible_tenants(
        self,
        principal: Principal | None,
        required_codes: Any = PermissionCode.SUBSITE_EDIT.value,
    ) -> list[Tenant]:
        """Return the subsites *principal* holds any of *required_codes* on, sorted by title.

        *required_codes* is a single code or a collection of codes.  Subsites
        with an empty title, and subsites that are neither templates nor
        reachable through at least one domain binding, are never listed.
        """
        codes = ensure_permission_codes(
            [required_codes] if isinstance(required_codes, str) else required_codes
        )
        if principal is None:
            return []

        cache = permission_cache()
        key = ("tenants", principal.id, codes)
        if key in cache:
            return list(cache[key])

        wanted = codes | {PermissionCode.ADMIN.value}
        global_codes = await self._global_codes(principal)
        grants_all = not global_codes.isdisjoint(_GLOBAL_GRANTS | wanted)
        granted_ids = {
            g.tenant_id
            for g in await self._member_groups(principal)
            if not g.is_global and g.grants(wanted)
        }

        bound_ids = {b.tenant_id for b in await self._tenants.list_domain_bindings(include_private=True)}
        tenants = [
            t
            for t in await self._tenants.list(include_private=True)
            if t.title
            and (t.is_template or t.id in bound_ids)
            and (grants_all or t.id in granted_ids)
        ]
        tenants.sort(key=lambda t: (t.title, t.id or 0))
        cache[key] = tuple(tenants)
        return tenants

    # ------------------------------------------------------------------
    # Listings
    # ------------------------------------------------------------------

    async def members_by_permission(
        self,
        codes: Any = frozenset({PermissionCode.ADMIN.value}),
        tenant_id: int | None = None,
    ) -> list[int]:
        """Return ids of members of a subsite's groups carrying any of *codes*.

        ``tenant_id=None`` uses the current subsite.

        Raises:
            InvalidPermissionArgumentError: When *codes* is not a collection
                of strings.
        """
        wanted = ensure_permission_codes(codes)
        members: set[int] = set()
        for group in await self._groups.for_tenant(tenant_id):
            if group.grants(wanted):
                members |= group.member_ids
        return sorted(members)

    async def tenants_for_principal(self, principal: Principal | None) -> list[Tenant]:
        """Return every subsite *principal* is associated with.

        Main-site administrators get all subsites; everybody else gets the
        subsites of the groups they belong to.
        """
        if principal is None:
            return []
        if await self.has_main_site_access(principal):
            return list(await self._tenants.list(include_private=True))
        tenant_ids = sorted(
            {g.tenant_id for g in await self._member_groups(principal) if not g.is_global}
        )
        return list(await self._tenants.get_by_ids(tenant_ids))


__all__ = ["AccessEvaluator"]
