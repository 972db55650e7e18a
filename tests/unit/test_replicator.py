"""Unit tests — fastapi_subsites.replication.replicator.SubtreeReplicator

Verified:
* The live hierarchy is reproduced (parent links remapped to new ids)
* Every copy lands in both stages of the destination
* Deep trees are copied without recursion
* A failure mid-walk raises ReplicationError carrying nodes_copied; nothing
  is rolled back
* The session's current subsite is restored after every walk
* duplicate() copies the record but not bindings, groups or default_site
* create_instance() requires a template, binds the domain, copies groups
  without members
"""

from __future__ import annotations

import pytest

from fastapi_subsites.core.exceptions import (
    InvalidTenantKindError,
    ReplicationError,
    TenantNotFoundError,
)
from fastapi_subsites.core.types import ContentNode, Stage, Tenant, TenantKind
from fastapi_subsites.isolation.filter import tenant_filter_disabled

pytestmark = pytest.mark.unit


@pytest.fixture
def replicator(manager):
    return manager.replicator


def _tree(nodes: list[ContentNode]) -> set[tuple[str, str | None]]:
    """Return ``{(title, parent_title)}`` for a flat list of nodes."""
    by_id = {n.id: n for n in nodes}
    return {(n.title, by_id[n.parent_id].title if n.parent_id else None) for n in nodes}


class TestReplicate:
    async def test_hierarchy_preserved(self, replicator, tenant_store, content_store, template):
        dest = await tenant_store.create(Tenant(title="Copy"))
        copied = await replicator.replicate(template.id, dest.id)

        assert copied == 4
        live = await content_store.list(Stage.LIVE, tenant_id=dest.id)
        assert _tree(live) == {
            ("Home", None),
            ("About", "Home"),
            ("Team", "About"),
            ("Contact", None),
        }

    async def test_copies_land_in_both_stages(self, replicator, tenant_store, content_store, template):
        dest = await tenant_store.create(Tenant(title="Copy"))
        await replicator.replicate(template.id, dest.id)
        draft = await content_store.list(Stage.DRAFT, tenant_id=dest.id)
        live = await content_store.list(Stage.LIVE, tenant_id=dest.id)
        assert draft == live
        assert all(n.tenant_id == dest.id for n in live)

    async def test_source_untouched(self, replicator, tenant_store, content_store, template):
        before = await content_store.list(Stage.LIVE, tenant_id=template.id)
        dest = await tenant_store.create(Tenant(title="Copy"))
        await replicator.replicate(template.id, dest.id)
        assert await content_store.list(Stage.LIVE, tenant_id=template.id) == before

    async def test_only_live_nodes_copied(self, replicator, tenant_store, content_store, template):
        await content_store.write_to_stage(
            ContentNode(tenant_id=template.id, title="Unpublished"), Stage.DRAFT
        )
        dest = await tenant_store.create(Tenant(title="Copy"))
        assert await replicator.replicate(template.id, dest.id) == 4

    async def test_content_fields_copied(self, replicator, tenant_store, content_store, build_tree):
        src = await tenant_store.create(Tenant(title="Src"))
        await build_tree(src.id, {"Home": None}, content="<p>Hello</p>", metadata={"k": "v"})
        dest = await tenant_store.create(Tenant(title="Dest"))
        await replicator.replicate(src.id, dest.id)
        (node,) = await content_store.list(Stage.LIVE, tenant_id=dest.id)
        assert (node.title, node.url_segment, node.content, node.metadata) == (
            "Home",
            "home",
            "<p>Hello</p>",
            {"k": "v"},
        )

    async def test_deep_tree_is_iterative(self, replicator, tenant_store, content_store, build_tree):
        src = await tenant_store.create(Tenant(title="Deep"))
        depth = 1500
        layout = {f"n{i}": (f"n{i - 1}" if i else None) for i in range(depth)}
        await build_tree(src.id, layout)
        dest = await tenant_store.create(Tenant(title="Copy"))
        assert await replicator.replicate(src.id, dest.id) == depth
        assert await content_store.count(Stage.LIVE, tenant_id=dest.id) == depth

    async def test_empty_source(self, replicator, tenant_store):
        src = await tenant_store.create(Tenant(title="Empty"))
        dest = await tenant_store.create(Tenant(title="Copy"))
        assert await replicator.replicate(src.id, dest.id) == 0

    async def test_session_restored(self, replicator, tenant_store, template, session, acme):
        session.set("SubsiteID", acme.id)
        dest = await tenant_store.create(Tenant(title="Copy"))
        await replicator.replicate(template.id, dest.id)
        assert session.get("SubsiteID") == acme.id

    async def test_failure_reports_progress_without_rollback(
        self, replicator, tenant_store, content_store, template, session, monkeypatch
    ):
        dest = await tenant_store.create(Tenant(title="Copy"))
        original = content_store.publish
        calls = {"n": 0}

        async def flaky_publish(node_id, from_stage, to_stage):
            calls["n"] += 1
            if calls["n"] == 3:
                raise RuntimeError("storage went away")
            return await original(node_id, from_stage, to_stage)

        monkeypatch.setattr(content_store, "publish", flaky_publish)

        with pytest.raises(ReplicationError) as exc_info:
            await replicator.replicate(template.id, dest.id)

        err = exc_info.value
        assert err.nodes_copied == 2
        assert err.source_id == template.id
        assert err.destination_id == dest.id
        assert "storage went away" in err.reason
        assert isinstance(err.__cause__, RuntimeError)
        assert await content_store.count(Stage.LIVE, tenant_id=dest.id) == 2
        assert "SubsiteID" not in session.data


class TestDuplicate:
    async def test_duplicate_copies_record_and_tree(
        self, replicator, tenant_store, content_store, build_tree
    ):
        src = await tenant_store.create(
            Tenant(title="Acme", identifier="acme", theme="simple", default_site=True)
        )
        await build_tree(src.id, {"Home": None, "About": "Home"})

        copy = await replicator.duplicate(src.id)

        assert copy.id != src.id
        assert (copy.title, copy.identifier, copy.theme) == ("Acme", "acme", "simple")
        assert copy.default_site is False
        assert (await tenant_store.get_by_id(src.id)).default_site is True
        assert _tree(await content_store.list(Stage.LIVE, tenant_id=copy.id)) == {
            ("Home", None),
            ("About", "Home"),
        }

    async def test_duplicate_skips_bindings_and_groups(self, replicator, tenant_store, group_store, template):
        copy = await replicator.duplicate(template)
        assert copy.kind == TenantKind.TEMPLATE
        assert await tenant_store.bindings_for(copy.id) == []
        assert await group_store.for_tenant(copy.id) == []

    async def test_duplicate_unknown(self, replicator):
        with pytest.raises(TenantNotFoundError):
            await replicator.duplicate(404)


class TestCreateInstance:
    async def test_instance_from_template(
        self, replicator, tenant_store, content_store, group_store, template
    ):
        instance = await replicator.create_instance(template.id, "Acme Intranet", "intranet.acme.com")

        assert instance.kind == TenantKind.SUBSITE
        assert instance.template_id == template.id
        assert instance.identifier == "acme-intranet"
        (binding,) = await tenant_store.bindings_for(instance.id)
        assert binding.domain == "intranet.acme.com"
        assert binding.is_primary
        assert await content_store.count(Stage.LIVE, tenant_id=instance.id) == 4

    async def test_groups_copied_without_members(self, replicator, group_store, template):
        instance = await replicator.create_instance(template, "Acme")
        (group,) = await group_store.for_tenant(instance.id)
        assert group.title == "Starter editors"
        assert group.permission_codes == frozenset({"SUBSITE_EDIT"})
        assert group.member_ids == frozenset()

    async def test_without_domain(self, replicator, tenant_store, template):
        instance = await replicator.create_instance(template, "Acme")
        assert await tenant_store.bindings_for(instance.id) == []

    async def test_requires_template(self, replicator, tenant_store, acme):
        with pytest.raises(InvalidTenantKindError) as exc_info:
            await replicator.create_instance(acme.id, "Nope")
        assert exc_info.value.actual == "subsite"
        assert await tenant_store.count() == 1

    async def test_group_copy_failure(self, replicator, group_store, template, monkeypatch):
        async def broken_create(group):
            raise RuntimeError("groups offline")

        monkeypatch.setattr(group_store, "create", broken_create)
        with pytest.raises(ReplicationError) as exc_info:
            await replicator.create_instance(template, "Acme")
        assert exc_info.value.nodes_copied == 4
        assert exc_info.value.destination_id is not None

    async def test_instance_content_isolated_from_template(
        self, replicator, content_store, template
    ):
        instance = await replicator.create_instance(template, "Acme")
        with tenant_filter_disabled():
            total = await content_store.count(Stage.LIVE)
        assert total == 8
        assert await content_store.count(Stage.LIVE, tenant_id=instance.id) == 4
