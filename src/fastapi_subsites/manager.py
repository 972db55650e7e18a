"""``SubsitesManager`` — the central orchestrator for fastapi-subsites.

The manager wires together every component (stores, domain matcher,
current-subsite context, registry, access evaluator and replicator) and
provides:

1. A FastAPI lifespan context manager for clean startup/shutdown.
2. Store construction from ``SubsitesConfig`` without manual wiring:
   SQLAlchemy stores sharing one engine when ``database_url`` is set,
   in-memory stores otherwise.
3. The admin actions (duplicate, create from template, switch), each gated
   by the access evaluator.

Typical setup::

    from fastapi import FastAPI
    from starlette.middleware.sessions import SessionMiddleware
    from fastapi_subsites import SubsitesConfig, SubsitesManager
    from fastapi_subsites.middleware.subsites import SubsitesMiddleware

    config = SubsitesConfig(database_url="sqlite+aiosqlite:///./cms.db")
    manager = SubsitesManager(config)

    app = FastAPI(lifespan=manager.create_lifespan())
    app.add_middleware(SubsitesMiddleware, manager=manager)
    app.add_middleware(SessionMiddleware, secret_key="change-me")

Starlette runs the most recently added middleware first, so adding
``SessionMiddleware`` last makes the session available to
``SubsitesMiddleware``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from fastapi_subsites.access.evaluator import AccessEvaluator
from fastapi_subsites.core.context import TenantContext
from fastapi_subsites.core.exceptions import PermissionDeniedError
from fastapi_subsites.core.types import MAIN_SITE_ID, PERMISSION_DESCRIPTIONS, PermissionCode
from fastapi_subsites.registry import TenantRegistry
from fastapi_subsites.replication.replicator import SubtreeReplicator
from fastapi_subsites.resolution.domain import DomainMatcher

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncEngine

    from fastapi_subsites.core.config import SubsitesConfig
    from fastapi_subsites.core.types import Principal, Tenant
    from fastapi_subsites.storage.content_store import ContentStore
    from fastapi_subsites.storage.group_store import GroupStore
    from fastapi_subsites.storage.tenant_store import TenantStore

logger = logging.getLogger(__name__)


def provide_permissions() -> dict[str, str]:
    """Return the permission codes this library defines, with descriptions.

    Feed this to an authorisation UI so administrators can grant the codes.
    """
    return {str(code): text for code, text in PERMISSION_DESCRIPTIONS.items()}


####################
# SubsitesManager #
####################


class SubsitesManager:
    """Central orchestrator wiring stores and subsite components.

    Args:
        config: Library configuration.
        tenant_store: Subsite store.  Built from *config* when omitted.
        content_store: Staged content store.  Built from *config* when omitted.
        group_store: Group store.  Built from *config* when omitted.

    Attributes:
        config: The ``SubsitesConfig`` this manager was constructed with.
        tenant_store: Subsite and domain-binding storage.
        content_store: Staged content storage.
        group_store: Group storage.
        matcher: Hostname → subsite resolver.
        context: Current-subsite manager.
        registry: Subsite lookup and creation.
        evaluator: Access decisions.
        replicator: Subtree replication.
    """

    def __init__(
        self,
        config: SubsitesConfig,
        tenant_store: TenantStore | None = None,
        content_store: ContentStore | None = None,
        group_store: GroupStore | None = None,
    ) -> None:
        self.config = config
        self._engine: AsyncEngine | None = None

        defaults = self._build_default_stores(config, tenant_store, content_store, group_store)
        self.tenant_store: TenantStore = tenant_store or defaults["tenant"]
        self.content_store: ContentStore = content_store or defaults["content"]
        self.group_store: GroupStore = group_store or defaults["group"]

        self.matcher = DomainMatcher(self.tenant_store, config)
        self.context = TenantContext(self.matcher, self.tenant_store, config)
        self.registry = TenantRegistry(self.tenant_store, self.matcher)
        self.evaluator = AccessEvaluator(self.tenant_store, self.group_store)
        self.replicator = SubtreeReplicator(
            self.registry, self.content_store, self.group_store, self.context
        )
        logger.info(
            "SubsitesManager created tenant_store=%s content_store=%s group_store=%s",
            type(self.tenant_store).__name__,
            type(self.content_store).__name__,
            type(self.group_store).__name__,
        )

    def _build_default_stores(
        self,
        config: SubsitesConfig,
        tenant_store: TenantStore | None,
        content_store: ContentStore | None,
        group_store: GroupStore | None,
    ) -> dict[str, Any]:
        if tenant_store and content_store and group_store:
            return {}
        if config.database_url:
            from fastapi_subsites.storage.database import (  # noqa: PLC0415
                SQLAlchemyContentStore,
                SQLAlchemyGroupStore,
                SQLAlchemyTenantStore,
                create_subsites_engine,
            )

            self._engine = create_subsites_engine(
                config.database_url,
                pool_size=config.database_pool_size,
                echo=config.database_echo,
            )
            return {
                "tenant": SQLAlchemyTenantStore(engine=self._engine),
                "content": SQLAlchemyContentStore(engine=self._engine),
                "group": SQLAlchemyGroupStore(engine=self._engine),
            }

        from fastapi_subsites.storage.memory import (  # noqa: PLC0415
            InMemoryContentStore,
            InMemoryGroupStore,
            InMemoryTenantStore,
        )

        logger.warning("No database_url configured; using in-memory stores (data is not persisted)")
        return {
            "tenant": InMemoryTenantStore(),
            "content": InMemoryContentStore(),
            "group": InMemoryGroupStore(),
        }

    @property
    def stores(self) -> tuple[TenantStore, ContentStore, GroupStore]:
        return (self.tenant_store, self.content_store, self.group_store)

    #############
    # Lifecycle #
    #############

    async def initialize(self) -> None:
        """Initialise every store (creates tables where applicable).

        Safe to call multiple times.
        """
        for store in self.stores:
            if hasattr(store, "initialize"):
                await store.initialize()
                logger.info("Store initialised: %s", type(store).__name__)
        logger.info("SubsitesManager initialised")

    async def close(self) -> None:
        """Close every store and dispose the shared engine, if any."""
        for store in self.stores:
            await store.close()
        if self._engine is not None:
            await self._engine.dispose()
        logger.info("SubsitesManager shut down cleanly")

    ###########################
    # FastAPI lifespan helper #
    ###########################

    def create_lifespan(self) -> Any:
        """Return an async context manager suitable for FastAPI's ``lifespan``.

        Example::

            app = FastAPI(lifespan=manager.create_lifespan())
        """
        from contextlib import asynccontextmanager  # noqa: PLC0415

        @asynccontextmanager
        async def _lifespan(app: Any) -> AsyncIterator[None]:
            await self.initialize()
            try:
                yield
            finally:
                await self.close()

        return _lifespan

    #################
    # Admin actions #
    #################

    async def _require_admin(self, principal: Principal | None, action: str) -> None:
        if not await self.evaluator.has_main_site_access(
            principal, self.config.admin_permission_codes
        ):
            principal_id = principal.id if principal is not None else None
            logger.warning("Denied %s for principal %s", action, principal_id)
            raise PermissionDeniedError(action, principal_id)

    async def duplicate_tenant(self, principal: Principal | None, tenant_id: int) -> Tenant:
        """Duplicate a subsite together with its live content tree.

        Raises:
            PermissionDeniedError: When *principal* lacks main-site admin access.
            TenantNotFoundError: When *tenant_id* does not exist.
            ReplicationError: When the copy fails part-way.
        """
        await self._require_admin(principal, "duplicate subsites")
        return await self.replicator.duplicate(tenant_id)

    async def create_from_template(
        self,
        principal: Principal | None,
        template_id: int,
        title: str,
        domain: str | None = None,
    ) -> Tenant:
        """Instantiate a new subsite from a template.

        Raises:
            PermissionDeniedError: When *principal* lacks main-site admin access.
            InvalidTenantKindError: When *template_id* is not a template.
            ReplicationError: When the copy fails part-way.
        """
        await self._require_admin(principal, "create subsites from templates")
        return await self.replicator.create_instance(template_id, title, domain)

    async def switch_tenant(self, principal: Principal | None, tenant_id: int) -> int:
        """Switch the session's current subsite on behalf of *principal*.

        Switching to the main site requires main-site access; switching to a
        subsite requires it to be among the principal's accessible subsites.

        Raises:
            PermissionDeniedError: When the principal may not switch there.
            TenantNotFoundError: When *tenant_id* does not exist.
        """
        if tenant_id == MAIN_SITE_ID:
            await self._require_admin(principal, "switch to the main site")
        else:
            tenant = await self.registry.by_id(tenant_id)
            accessible = await self.evaluator.accessible_tenants(
                principal, PermissionCode.SUBSITE_EDIT.value
            )
            if tenant.id not in {t.id for t in accessible}:
                principal_id = principal.id if principal is not None else None
                logger.warning("Denied switch to subsite %s for principal %s", tenant_id, principal_id)
                raise PermissionDeniedError(f"switch to subsite {tenant_id}", principal_id)
        self.context.switch_to(tenant_id)
        return tenant_id

    ############
    # Helpers #
    ############

    def allowed_themes(self) -> dict[str, str]:
        """Return the configured themes as ``{theme: theme}``."""
        return self.config.allowed_themes_map()

    def provide_permissions(self) -> dict[str, str]:
        return provide_permissions()

    async def absolute_base_url(self, tenant_id: int, request_host: str | None = None) -> str | None:
        """Return the absolute base URL of a subsite, or ``None`` without bindings."""
        return await self.matcher.absolute_base_url(tenant_id, request_host)


__all__ = ["SubsitesManager", "provide_permissions"]
