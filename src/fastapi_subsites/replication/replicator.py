"""Copy a subsite's live content tree (and template groups) into another subsite.

Replication walk
----------------
The walk is iterative, driven by an explicit stack of
``(source_parent_id, destination_parent_id)`` pairs seeded with ``(0, 0)``:

1. Pop a pair and read the *live* children of ``source_parent_id`` in the
   source subsite.
2. For each child, build an unsaved clone attached to
   ``destination_parent_id`` in the destination subsite, write it to the
   draft stage, publish it to live, and push ``(child.id, clone.id)``.

Deep trees therefore never hit Python's recursion limit.  While the walk
runs the destination is the session's current subsite; the previous session
value is restored afterwards on every exit path.

Failure model
-------------
Any failure is re-raised as
:class:`~fastapi_subsites.core.exceptions.ReplicationError`.  Nothing is
rolled back: the destination keeps the nodes copied so far, and
``ReplicationError.nodes_copied`` says how many.
"""

from __future__ import annotations

from datetime import UTC, datetime
import logging
from typing import TYPE_CHECKING

from fastapi_subsites.core.exceptions import InvalidTenantKindError, ReplicationError
from fastapi_subsites.core.types import DomainBinding, Stage, Tenant, TenantKind

if TYPE_CHECKING:
    from fastapi_subsites.core.context import TenantContext
    from fastapi_subsites.registry import TenantRegistry
    from fastapi_subsites.storage.content_store import ContentStore
    from fastapi_subsites.storage.group_store import GroupStore

logger = logging.getLogger(__name__)


class SubtreeReplicator:
    """Duplicate subsites and instantiate templates.

    Args:
        registry: Subsite registry used to load and create subsites.
        content_store: Staged content backend.
        group_store: Group backend (template groups are copied).
        context: Current-subsite manager; the destination is made current
            for the duration of a walk.
    """

    def __init__(
        self,
        registry: TenantRegistry,
        content_store: ContentStore,
        group_store: GroupStore,
        context: TenantContext,
    ) -> None:
        self._registry = registry
        self._content = content_store
        self._groups = group_store
        self._context = context

    async def _load(self, tenant: Tenant | int) -> Tenant:
        if isinstance(tenant, Tenant):
            return tenant
        return await self._registry.by_id(tenant)

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def duplicate(self, source: Tenant | int) -> Tenant:
        """Create a copy of *source* and replicate its live tree into it.

        The copy keeps every field of the source except its id, timestamps
        and the ``default_site`` flag.  Domain bindings and groups are not
        copied.

        Raises:
            TenantNotFoundError: When *source* is an unknown id.
            ReplicationError: When creating the copy or replicating fails.
        """
        source = await self._load(source)
        now = datetime.now(UTC)
        try:
            destination = await self._registry.store.create(
                source.model_copy(
                    update={"id": None, "default_site": False, "created_at": now, "updated_at": now}
                )
            )
        except Exception as exc:
            raise ReplicationError(source.id, None, str(exc)) from exc

        await self.replicate(source.id, destination.id)  # type: ignore[arg-type]
        logger.info("Duplicated subsite %s into %s", source.id, destination.id)
        return destination

    async def create_instance(
        self,
        template: Tenant | int,
        title: str,
        domain: str | None = None,
    ) -> Tenant:
        """Create a subsite from *template*.

        Creates the subsite (``template_id`` set), binds *domain* as its
        primary domain, replicates the template's live tree and copies every
        group of the template (title, description and permission codes,
        never members).

        Raises:
            InvalidTenantKindError: When *template* is not a template.
            ReplicationError: When any step after validation fails.
        """
        template = await self._load(template)
        if not template.is_template:
            raise InvalidTenantKindError(template.id, TenantKind.TEMPLATE.value, template.kind.value)

        try:
            instance = await self._registry.create(
                title,
                kind=TenantKind.SUBSITE,
                template_id=template.id,
            )
            if domain:
                await self._registry.store.add_domain_binding(
                    DomainBinding(tenant_id=instance.id, domain=domain, is_primary=True)  # type: ignore[arg-type]
                )
        except Exception as exc:
            raise ReplicationError(template.id, None, str(exc)) from exc

        copied = await self.replicate(template.id, instance.id)  # type: ignore[arg-type]

        try:
            groups = await self._groups.for_tenant(template.id)
            for group in groups:
                await self._groups.create(group.clone_for(instance.id))  # type: ignore[arg-type]
        except Exception as exc:
            raise ReplicationError(template.id, instance.id, str(exc), nodes_copied=copied) from exc

        logger.info(
            "Created subsite %s from template %s (%d nodes, %d groups)",
            instance.id,
            template.id,
            copied,
            len(groups),
        )
        return instance

    async def replicate(self, source_id: int, destination_id: int) -> int:
        """Copy the live tree of *source_id* under the root of *destination_id*.

        Returns:
            The number of nodes copied.

        Raises:
            ReplicationError: On any failure; already copied nodes stay.
        """
        logger.info("Replicating content of subsite %s into %s", source_id, destination_id)
        copied = 0
        stack: list[tuple[int, int]] = [(0, 0)]
        try:
            with self._context.switched_to(destination_id):
                while stack:
                    source_parent, destination_parent = stack.pop()
                    children = await self._content.children(
                        source_parent, Stage.LIVE, tenant_id=source_id
                    )
                    for child in children:
                        clone = await self._content.write_to_stage(
                            child.clone_for(destination_id, destination_parent), Stage.DRAFT
                        )
                        await self._content.publish(clone.id, Stage.DRAFT, Stage.LIVE)  # type: ignore[arg-type]
                        copied += 1
                        stack.append((child.id, clone.id))  # type: ignore[arg-type]
        except Exception as exc:
            logger.warning(
                "Replication %s → %s failed after %d node(s): %s",
                source_id,
                destination_id,
                copied,
                exc,
            )
            raise ReplicationError(source_id, destination_id, str(exc), nodes_copied=copied) from exc
        return copied


__all__ = ["SubtreeReplicator"]
