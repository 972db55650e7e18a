"""Abstract access-group storage.

Groups are scoped to a subsite, or global when ``tenant_id`` is ``0``.
:meth:`GroupStore.for_tenant` goes through the tenant filter; the member
lookup :meth:`GroupStore.for_member` is unscoped, so the access evaluator
sees global groups and groups of every subsite.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from fastapi_subsites.core.types import Group


class GroupStore(ABC):
    """Abstract base class for group backends."""

    @abstractmethod
    async def get_by_id(self, group_id: int) -> Group:
        """Fetch a group.

        Raises:
            GroupNotFoundError: When no group has *group_id*.
        """

    @abstractmethod
    async def for_tenant(self, tenant_id: int | None = None) -> Sequence[Group]:
        """Return the groups scoped to one subsite, ordered by id.

        ``tenant_id=None`` scopes to the current subsite (or every group when
        the tenant filter is bypassed).
        """

    @abstractmethod
    async def for_member(self, principal_id: int) -> Sequence[Group]:
        """Return every group *principal_id* belongs to, across all subsites."""

    @abstractmethod
    async def create(self, group: Group) -> Group:
        """Persist a new group (codes and members included) with a fresh id."""

    @abstractmethod
    async def add_member(self, group_id: int, principal_id: int) -> Group:
        """Add *principal_id* to the group and return the updated group.

        Raises:
            GroupNotFoundError: When no group has *group_id*.
        """

    @abstractmethod
    async def remove_member(self, group_id: int, principal_id: int) -> Group:
        """Remove *principal_id* from the group.

        Raises:
            GroupNotFoundError: When no group has *group_id*.
        """

    async def close(self) -> None:
        """Release any resources held by this store."""


__all__ = ["GroupStore"]
