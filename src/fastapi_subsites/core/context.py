"""Async-safe "current subsite" management using :mod:`contextvars`.

Each async task (i.e. each HTTP request handled by FastAPI) automatically
receives its own copy of every :class:`~contextvars.ContextVar`, so the
request state bound by the middleware is isolated from every other concurrent
request without any explicit locking.

Request state
-------------
One mutable :class:`RequestState` is bound per request.  It carries:

* the raw inputs: hostname, explicit override value, session store;
* the request-local caches: the resolved subsite id, a single-slot
  ``(id, Tenant)`` record cache and the permission-decision cache.

Because the object is mutable, writes made from a dependency running in a
worker thread (FastAPI copies the context for sync dependencies) stay visible
to the rest of the request.

Resolution order for :meth:`TenantContext.current`
--------------------------------------------------
1. Explicit override on the request → coerced to ``int`` and persisted to
   the session.
2. Otherwise the session value.
3. Otherwise the domain match (``0`` when nothing matches), persisted to the
   session.

:meth:`TenantContext.switch_to` is the only code path that changes the
session's subsite on purpose; it invalidates both request-local caches.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar, Token
from dataclasses import dataclass, field
import logging
from typing import TYPE_CHECKING, Any

from fastapi_subsites.core.session import MappingSessionStore, SessionStore
from fastapi_subsites.core.types import MAIN_SITE_ID, Tenant
from fastapi_subsites.utils.validation import coerce_tenant_id

if TYPE_CHECKING:
    from fastapi_subsites.core.config import SubsitesConfig
    from fastapi_subsites.resolution.domain import DomainMatcher
    from fastapi_subsites.storage.tenant_store import TenantStore

logger = logging.getLogger(__name__)


@dataclass
class RequestState:
    """Mutable per-request inputs and caches.

    Attributes:
        host: Request hostname (may include a port).
        override: Raw override value from the query string, if any.
        session: Session store the current subsite id is persisted in.
        session_key: Key the subsite id is stored under in *session*.
        tenant_id: Cached resolved subsite id.
        tenant_slot: Single-slot ``(id, record)`` cache for
            :meth:`TenantContext.current_tenant`.
        host_match_private: ``include_private`` of the host match that filled
            *tenant_id*, or ``None`` when it came from the override or session.
        permission_cache: Memoised access decisions keyed by the evaluator.
    """

    host: str | None = None
    override: Any = None
    session: SessionStore = field(default_factory=MappingSessionStore)
    session_key: str = "SubsiteID"
    tenant_id: int | None = None
    tenant_slot: tuple[int, Tenant | None] | None = None
    host_match_private: bool | None = None
    permission_cache: dict[tuple[Any, ...], Any] = field(default_factory=dict)

    def invalidate(self) -> None:
        """Drop every request-local cache entry."""
        self.tenant_id = None
        self.tenant_slot = None
        self.host_match_private = None
        self.permission_cache.clear()


# ---------------------------------------------------------------------------
# Module-level context variable
# ---------------------------------------------------------------------------

_request_ctx: ContextVar[RequestState | None] = ContextVar("subsites_request", default=None)


def bind_request(
    host: str | None = None,
    override: Any = None,
    session: SessionStore | None = None,
    session_key: str = "SubsiteID",
) -> Token[RequestState | None]:
    """Bind fresh request state to the current execution context.

    Returns:
        A token that restores the previous state via :func:`reset_request`.
    """
    state = RequestState(
        host=host,
        override=override,
        session=session if session is not None else MappingSessionStore(),
        session_key=session_key,
    )
    return _request_ctx.set(state)


def reset_request(token: Token[RequestState | None]) -> None:
    """Restore the request state captured in *token*."""
    _request_ctx.reset(token)


def request_state() -> RequestState:
    """Return the bound request state, binding an empty one if necessary.

    Code running outside a request (scripts, background jobs, tests) gets an
    ephemeral session, so it behaves like a first visit.
    """
    state = _request_ctx.get()
    if state is None:
        state = RequestState()
        _request_ctx.set(state)
    return state


def permission_cache() -> dict[tuple[Any, ...], Any]:
    """Return the request-local permission-decision cache."""
    return request_state().permission_cache


class TenantContext:
    """Resolve and switch the session's current subsite.

    Args:
        matcher: Domain matcher used when neither an override nor a session
            value is available.
        store: Tenant store used to load the current subsite record.
        config: Library configuration (supplies the session key).
    """

    def __init__(
        self,
        matcher: DomainMatcher,
        store: TenantStore,
        config: SubsitesConfig,
    ) -> None:
        self._matcher = matcher
        self._store = store
        self._config = config

    @property
    def session_key(self) -> str:
        return self._config.session_key

    def _state(self) -> RequestState:
        state = request_state()
        state.session_key = self.session_key
        return state

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def current(self, use_cache: bool = True, include_private: bool = False) -> int:
        """Return the current subsite id (``0`` for the main site).

        Args:
            use_cache: Return the id resolved earlier in this request when
                available.
            include_private: Let domain matching consider non-public subsites.
                When the id was matched from the host earlier in this request
                without private subsites, the host is matched again.
        """
        state = self._state()
        rematch = include_private and state.host_match_private is False
        if use_cache and state.tenant_id is not None and not rematch:
            return state.tenant_id

        raw = None if rematch else state.session.get(self.session_key)
        if state.override is not None:
            tenant_id = coerce_tenant_id(state.override)
            state.session.set(self.session_key, tenant_id)
            state.host_match_private = None
            logger.debug("Current subsite %d taken from request override", tenant_id)
        elif raw is not None:
            tenant_id = coerce_tenant_id(raw)
            logger.debug("Current subsite %d taken from session", tenant_id)
        else:
            matched = await self._matcher.resolve(state.host or "", include_private)
            tenant_id = matched if matched is not None else MAIN_SITE_ID
            state.session.set(self.session_key, tenant_id)
            state.host_match_private = include_private
            logger.debug("Current subsite %d resolved from host %r", tenant_id, state.host)

        state.tenant_id = tenant_id
        return tenant_id

    async def current_tenant(self, use_cache: bool = True) -> Tenant | None:
        """Return the current subsite record, or ``None`` for the main site.

        The record is kept in a single-slot request-local cache keyed by id.
        """
        tenant_id = await self.current(use_cache=use_cache)
        if tenant_id == MAIN_SITE_ID:
            return None
        state = self._state()
        if use_cache and state.tenant_slot is not None and state.tenant_slot[0] == tenant_id:
            return state.tenant_slot[1]
        tenant = await self._store.get_optional(tenant_id)
        state.tenant_slot = (tenant_id, tenant)
        return tenant

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def switch_to(self, tenant: Tenant | int) -> None:
        """Make *tenant* the session's current subsite.

        Writes the session, drops the request override and invalidates the
        request-local subsite and permission caches.
        """
        tenant_id = tenant.id if isinstance(tenant, Tenant) else tenant
        tenant_id = coerce_tenant_id(tenant_id)
        state = self._state()
        state.session.set(self.session_key, tenant_id)
        state.override = None
        state.invalidate()
        logger.info("Switched current subsite to %d", tenant_id)

    def activate(self, tenant: Tenant) -> None:
        """Switch to *tenant* and prime the record cache with it."""
        self.switch_to(tenant)
        if tenant.id is not None:
            state = self._state()
            state.tenant_id = tenant.id
            state.tenant_slot = (tenant.id, tenant)

    @contextmanager
    def switched_to(self, tenant: Tenant | int) -> Iterator[int]:
        """Temporarily switch the current subsite.

        The raw previous session value and request override are restored on
        every exit path, and the caches are invalidated again.
        """
        state = self._state()
        previous = state.session.get(self.session_key)
        previous_override = state.override
        self.switch_to(tenant)
        try:
            yield coerce_tenant_id(state.session.get(self.session_key))
        finally:
            if previous is None:
                state.session.delete(self.session_key)
            else:
                state.session.set(self.session_key, previous)
            state.override = previous_override
            state.invalidate()
            logger.debug("Restored session subsite value %r", previous)


def current_tenant_hint() -> int:
    """Best-effort current subsite id without any I/O.

    Uses the cached resolved id, then the override, then the session value;
    ``0`` when none is available.  The tenant filter relies on this.
    """
    state = request_state()
    if state.tenant_id is not None:
        return state.tenant_id
    if state.override is not None:
        return coerce_tenant_id(state.override)
    raw = state.session.get(state.session_key)
    return coerce_tenant_id(raw) if raw is not None else MAIN_SITE_ID


__all__ = [
    "RequestState",
    "TenantContext",
    "bind_request",
    "current_tenant_hint",
    "permission_cache",
    "request_state",
    "reset_request",
]
