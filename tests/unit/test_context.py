"""Unit tests — fastapi_subsites.core.context

Coverage target: 100 %

Verified:
* Resolution order: override → session → domain → main site
* The override is coerced and persisted to the session
* Domain resolution is persisted; unmatched hosts resolve to 0
* The resolved id is cached per request; use_cache=False re-resolves, and
  include_private re-matches a public-only host match
* current_tenant() uses a single-slot cache and returns None for 0
* switch_to() writes the session, drops the override, clears caches
* switched_to() restores the raw previous value on every exit path
* Each task sees its own request state
"""

from __future__ import annotations

import asyncio

import pytest

from fastapi_subsites.core.context import (
    RequestState,
    TenantContext,
    bind_request,
    current_tenant_hint,
    permission_cache,
    request_state,
    reset_request,
)
from fastapi_subsites.core.session import MappingSessionStore
from fastapi_subsites.core.types import Tenant
from fastapi_subsites.resolution.domain import DomainMatcher

pytestmark = pytest.mark.unit


@pytest.fixture
def context(tenant_store, config) -> TenantContext:
    return TenantContext(DomainMatcher(tenant_store, config), tenant_store, config)


def _rebind(host=None, override=None, data=None) -> MappingSessionStore:
    session = MappingSessionStore(data)
    bind_request(host=host, override=override, session=session)
    return session


# ──────────────────────────── request state ──────────────────────────────────


class TestRequestState:
    def test_invalidate_clears_caches(self):
        state = RequestState(tenant_id=3, tenant_slot=(3, None), host_match_private=False)
        state.permission_cache["k"] = True
        state.invalidate()
        assert state.tenant_id is None
        assert state.tenant_slot is None
        assert state.host_match_private is None
        assert state.permission_cache == {}

    def test_bind_and_reset(self):
        outer = request_state()
        token = bind_request(host="acme.test")
        assert request_state().host == "acme.test"
        reset_request(token)
        assert request_state() is outer

    def test_permission_cache_is_request_local(self):
        permission_cache()["x"] = 1
        token = bind_request()
        assert permission_cache() == {}
        reset_request(token)
        assert permission_cache() == {"x": 1}

    async def test_tasks_get_their_own_state(self):
        async def handle(host: str) -> str | None:
            bind_request(host=host)
            await asyncio.sleep(0)
            return request_state().host

        results = await asyncio.gather(handle("a.test"), handle("b.test"))
        assert results == ["a.test", "b.test"]
        assert request_state().host is None


# ──────────────────────────── current() ──────────────────────────────────────


class TestCurrent:
    async def test_main_site_without_inputs(self, context, session):
        assert await context.current() == 0
        assert session.get("SubsiteID") == 0

    async def test_override_wins_and_is_persisted(self, context, acme, globex):
        session = _rebind(host="acme.test", override=str(globex.id), data={"SubsiteID": acme.id})
        assert await context.current() == globex.id
        assert session.get("SubsiteID") == globex.id

    async def test_non_numeric_override_is_main_site(self, context):
        session = _rebind(override="abc")
        assert await context.current() == 0
        assert session.get("SubsiteID") == 0

    async def test_session_beats_domain(self, context, acme, globex):
        _rebind(host="acme.test", data={"SubsiteID": globex.id})
        assert await context.current() == globex.id

    async def test_domain_resolution_is_persisted(self, context, acme):
        session = _rebind(host="www.acme.test:8000")
        assert await context.current() == acme.id
        assert session.get("SubsiteID") == acme.id

    async def test_unmatched_host_is_main_site(self, context, acme):
        session = _rebind(host="unknown.test")
        assert await context.current() == 0
        assert session.get("SubsiteID") == 0

    async def test_private_subsite_needs_include_private(self, context, tenant_store, acme):
        await tenant_store.update(acme.model_copy(update={"is_public": False}))
        _rebind(host="acme.test")
        assert await context.current() == 0
        _rebind(host="acme.test")
        assert await context.current(include_private=True) == acme.id

    async def test_include_private_rematches_public_only_host_match(
        self, context, tenant_store, acme
    ):
        await tenant_store.update(acme.model_copy(update={"is_public": False}))
        session = _rebind(host="acme.test")
        assert await context.current() == 0
        assert await context.current(include_private=True) == acme.id
        assert session.get("SubsiteID") == acme.id
        assert await context.current() == acme.id

    async def test_include_private_keeps_session_from_earlier_request(
        self, context, tenant_store, acme
    ):
        await tenant_store.update(acme.model_copy(update={"is_public": False}))
        _rebind(host="acme.test", data={"SubsiteID": 0})
        assert await context.current(include_private=True) == 0

    async def test_result_is_cached(self, context, acme, globex):
        session = _rebind(host="acme.test")
        assert await context.current() == acme.id
        session.set("SubsiteID", globex.id)
        assert await context.current() == acme.id
        assert await context.current(use_cache=False) == globex.id

    async def test_hint_uses_cache_then_override_then_session(self, context, acme):
        _rebind(override="4", data={"SubsiteID": 9})
        assert current_tenant_hint() == 4
        _rebind(data={"SubsiteID": 9})
        assert current_tenant_hint() == 9
        await context.current()
        request_state().session.set("SubsiteID", 11)
        assert current_tenant_hint() == 9

    async def test_custom_session_key(self, tenant_store, acme):
        from fastapi_subsites.core.config import SubsitesConfig  # noqa: PLC0415

        cfg = SubsitesConfig(session_key="site")
        ctx = TenantContext(DomainMatcher(tenant_store, cfg), tenant_store, cfg)
        session = _rebind(host="acme.test")
        assert await ctx.current() == acme.id
        assert session.get("site") == acme.id
        assert session.get("SubsiteID") is None


# ──────────────────────────── current_tenant() ───────────────────────────────


class TestCurrentTenant:
    async def test_none_on_main_site(self, context):
        assert await context.current_tenant() is None

    async def test_loads_record(self, context, acme):
        _rebind(host="acme.test")
        tenant = await context.current_tenant()
        assert isinstance(tenant, Tenant)
        assert tenant.id == acme.id

    async def test_single_slot_cache(self, context, tenant_store, acme):
        _rebind(host="acme.test")
        first = await context.current_tenant()
        await tenant_store.update(acme.model_copy(update={"title": "Renamed"}))
        assert await context.current_tenant() is first
        fresh = await context.current_tenant(use_cache=False)
        assert fresh.title == "Renamed"

    async def test_deleted_subsite_in_session(self, context):
        _rebind(data={"SubsiteID": 404})
        assert await context.current() == 404
        assert await context.current_tenant() is None


# ──────────────────────────── switching ──────────────────────────────────────


class TestSwitch:
    async def test_switch_writes_session_and_clears_caches(self, context, acme, globex):
        session = _rebind(host="acme.test", override=str(acme.id))
        assert await context.current() == acme.id
        await context.current_tenant()
        permission_cache()[("main", 1, frozenset())] = True

        context.switch_to(globex)

        state = request_state()
        assert session.get("SubsiteID") == globex.id
        assert state.override is None
        assert state.tenant_id is None
        assert state.tenant_slot is None
        assert state.permission_cache == {}
        assert await context.current() == globex.id

    async def test_switch_accepts_id(self, context, session):
        context.switch_to(0)
        assert session.get("SubsiteID") == 0
        assert await context.current() == 0

    async def test_activate_primes_cache(self, context, acme):
        context.activate(acme)
        assert await context.current() == acme.id
        assert await context.current_tenant() is acme

    async def test_switched_to_restores_previous(self, context, acme, globex):
        session = _rebind(data={"SubsiteID": acme.id})
        with context.switched_to(globex) as active:
            assert active == globex.id
            assert await context.current() == globex.id
        assert session.get("SubsiteID") == acme.id
        assert await context.current() == acme.id

    async def test_switched_to_restores_raw_value(self, context, globex):
        session = _rebind(data={"SubsiteID": "7abc"})
        with context.switched_to(globex):
            pass
        assert session.get("SubsiteID") == "7abc"

    async def test_switched_to_removes_absent_key(self, context, globex, session):
        with context.switched_to(globex):
            assert session.get("SubsiteID") == globex.id
        assert "SubsiteID" not in session.data

    async def test_switched_to_restores_on_error(self, context, acme, globex):
        session = _rebind(override=str(acme.id), data={"SubsiteID": acme.id})
        with pytest.raises(RuntimeError), context.switched_to(globex):
            raise RuntimeError("boom")
        assert session.get("SubsiteID") == acme.id
        assert request_state().override == str(acme.id)
        assert await context.current() == acme.id
