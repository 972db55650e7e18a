"""Unit tests — fastapi_subsites.isolation.filter

Verified:
* Implicit scope follows the request's current subsite
* Explicit tenant_id always scopes, even inside the bypass
* tenant_filter_disabled nests and restores on error
* The bypass does not leak into concurrently running tasks
* apply_tenant_filter adds a WHERE clause only when a scope applies
"""

from __future__ import annotations

import asyncio

import pytest
from sqlalchemy import Column, Integer, MetaData, Table, select

from fastapi_subsites.core.context import request_state
from fastapi_subsites.core.types import ContentNode
from fastapi_subsites.isolation.filter import (
    apply_tenant_filter,
    effective_tenant_id,
    filter_records,
    is_filter_disabled,
    tenant_filter_disabled,
)

pytestmark = pytest.mark.unit

_pages = Table("pages", MetaData(), Column("id", Integer), Column("tenant_id", Integer))


def _nodes() -> list[ContentNode]:
    return [
        ContentNode(id=1, tenant_id=0, title="Main home"),
        ContentNode(id=2, tenant_id=1, title="Acme home"),
        ContentNode(id=3, tenant_id=2, title="Globex home"),
    ]


class TestEffectiveTenantId:
    def test_defaults_to_main_site(self):
        assert effective_tenant_id() == 0

    def test_follows_session(self, session):
        session.set("SubsiteID", 2)
        assert effective_tenant_id() == 2

    def test_follows_cached_id(self):
        request_state().tenant_id = 5
        assert effective_tenant_id() == 5

    def test_explicit_wins(self, session):
        session.set("SubsiteID", 2)
        assert effective_tenant_id(7) == 7

    def test_bypass_returns_none(self):
        with tenant_filter_disabled():
            assert effective_tenant_id() is None
            assert effective_tenant_id(3) == 3


class TestBypass:
    def test_nesting_restores_outer_state(self):
        assert not is_filter_disabled()
        with tenant_filter_disabled():
            with tenant_filter_disabled():
                assert is_filter_disabled()
            assert is_filter_disabled()
        assert not is_filter_disabled()

    def test_restored_on_error(self):
        with pytest.raises(RuntimeError), tenant_filter_disabled():
            raise RuntimeError("boom")
        assert not is_filter_disabled()

    async def test_does_not_leak_into_other_tasks(self):
        started = asyncio.Event()
        release = asyncio.Event()
        seen: list[bool] = []

        async def bypassing():
            with tenant_filter_disabled():
                started.set()
                await release.wait()

        async def observer():
            await started.wait()
            seen.append(is_filter_disabled())
            release.set()

        await asyncio.gather(bypassing(), observer())
        assert seen == [False]


class TestFilterRecords:
    def test_scopes_to_current(self, session):
        session.set("SubsiteID", 1)
        assert [n.id for n in filter_records(_nodes())] == [2]

    def test_main_site_scope(self):
        assert [n.id for n in filter_records(_nodes())] == [1]

    def test_bypass_returns_everything(self):
        with tenant_filter_disabled():
            assert [n.id for n in filter_records(_nodes())] == [1, 2, 3]

    def test_explicit_scope(self):
        assert [n.id for n in filter_records(_nodes(), tenant_id=2)] == [3]


class TestApplyTenantFilter:
    def test_adds_where_clause(self):
        query = apply_tenant_filter(select(_pages), _pages.c.tenant_id, tenant_id=4)
        compiled = query.compile(compile_kwargs={"literal_binds": True})
        assert "WHERE pages.tenant_id = 4" in str(compiled)

    def test_bypass_leaves_query_untouched(self):
        base = select(_pages)
        with tenant_filter_disabled():
            assert apply_tenant_filter(base, _pages.c.tenant_id) is base
