"""Abstract staged content storage.

Content nodes live in two stages, ``Stage.DRAFT`` and ``Stage.LIVE``.  A node
keeps the same id in both stages: :meth:`ContentStore.write_to_stage` to
``DRAFT`` assigns the id, and :meth:`ContentStore.publish` copies the draft
row into ``LIVE`` under that id.

Every read here is tenant-scoped through
:func:`~fastapi_subsites.isolation.filter.effective_tenant_id`: pass an
explicit ``tenant_id`` to pin the scope, or rely on the current subsite.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from fastapi_subsites.core.types import ContentNode, Stage


class ContentStore(ABC):
    """Abstract base class for staged content backends."""

    @abstractmethod
    async def get_by_id(
        self,
        node_id: int,
        stage: Stage,
        tenant_id: int | None = None,
    ) -> ContentNode:
        """Fetch one node from *stage*.

        Raises:
            ContentNodeNotFoundError: When the node does not exist in *stage*
                within the effective scope.
        """

    @abstractmethod
    async def children(
        self,
        parent_id: int,
        stage: Stage,
        tenant_id: int | None = None,
    ) -> Sequence[ContentNode]:
        """Return the children of *parent_id* ordered by ``sort_order`` then id.

        ``parent_id=0`` returns the root nodes.
        """

    @abstractmethod
    async def list(
        self,
        stage: Stage,
        tenant_id: int | None = None,
    ) -> Sequence[ContentNode]:
        """Return every node of *stage* in the effective scope, ordered by id."""

    @abstractmethod
    async def count(self, stage: Stage, tenant_id: int | None = None) -> int:
        """Return the number of nodes of *stage* in the effective scope."""

    @abstractmethod
    async def write_to_stage(self, node: ContentNode, stage: Stage) -> ContentNode:
        """Insert or replace *node* in *stage*.

        A node without an id is inserted and receives a fresh id.  Ids are
        shared by both stages and allocated by ``DRAFT``.

        Raises:
            ValueError: When a node without an id targets a stage other than
                ``DRAFT``.
        """

    @abstractmethod
    async def publish(self, node_id: int, from_stage: Stage, to_stage: Stage) -> ContentNode:
        """Copy node *node_id* from *from_stage* into *to_stage*.

        Raises:
            ContentNodeNotFoundError: When the node is missing in *from_stage*.
        """

    @abstractmethod
    async def delete_from_stage(self, node_id: int, stage: Stage) -> None:
        """Remove node *node_id* from *stage*.  Missing nodes are ignored."""

    async def close(self) -> None:
        """Release any resources held by this store."""


__all__ = ["ContentStore"]
