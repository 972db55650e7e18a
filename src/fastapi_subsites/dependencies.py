"""FastAPI dependency factories for the current subsite.

The factories capture the :class:`~fastapi_subsites.manager.SubsitesManager`
in a closure, so no ``app.state`` lookup is needed::

    from typing import Annotated
    from fastapi import Depends

    get_subsite_id = make_current_tenant_id_dependency(manager)
    get_subsite = make_current_tenant_dependency(manager)

    @app.get("/pages")
    async def list_pages(subsite_id: Annotated[int, Depends(get_subsite_id)]):
        return await manager.content_store.list(Stage.LIVE, tenant_id=subsite_id)

Both dependencies read the request context bound by
:class:`~fastapi_subsites.middleware.subsites.SubsitesMiddleware`, reusing the
id it already resolved.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from fastapi_subsites.core.types import Tenant
    from fastapi_subsites.manager import SubsitesManager


def make_current_tenant_id_dependency(manager: SubsitesManager) -> Any:
    """Create a dependency returning the current subsite id (``0`` = main site)."""

    async def _get_current_tenant_id() -> int:
        return await manager.context.current()

    return _get_current_tenant_id


def make_current_tenant_dependency(manager: SubsitesManager) -> Any:
    """Create a dependency returning the current subsite record.

    Returns ``None`` on the main site, or when the session points at a
    subsite that no longer exists.
    """

    async def _get_current_tenant() -> Tenant | None:
        return await manager.context.current_tenant()

    return _get_current_tenant


__all__ = ["make_current_tenant_dependency", "make_current_tenant_id_dependency"]
