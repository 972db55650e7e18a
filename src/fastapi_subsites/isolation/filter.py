"""Tenant filter: the query-decoration hook every scoped read goes through.

Content and group reads are restricted to one subsite.  Which subsite is
decided by :func:`effective_tenant_id`:

1. An explicit ``tenant_id`` argument always wins.
2. Otherwise, when the filter is bypassed (:func:`tenant_filter_disabled`),
   no restriction applies and ``None`` is returned.
3. Otherwise the current subsite of the request scopes the read.

The bypass lives in a :class:`~contextvars.ContextVar`, so turning it off in
one request never leaks into a concurrent one, and it is restored on every
exit path of the ``with`` block.

:func:`apply_tenant_filter` decorates SQLAlchemy ``Select`` statements;
:func:`filter_records` does the same for in-memory record iterables.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from contextvars import ContextVar
import logging
from typing import TYPE_CHECKING, Any, Protocol, TypeVar

from fastapi_subsites.core.context import current_tenant_hint

if TYPE_CHECKING:
    from sqlalchemy import ColumnElement, Select

logger = logging.getLogger(__name__)

_filter_disabled: ContextVar[bool] = ContextVar("subsites_filter_disabled", default=False)


class _TenantScoped(Protocol):
    tenant_id: int


ScopedT = TypeVar("ScopedT", bound=_TenantScoped)
SelectT = TypeVar("SelectT", bound="Select[Any]")


@contextmanager
def tenant_filter_disabled() -> Iterator[None]:
    """Bypass implicit tenant scoping for the duration of the block.

    Explicit ``tenant_id`` arguments still scope.  The previous state is
    restored on normal exit and on error, so blocks nest correctly.
    """
    token = _filter_disabled.set(True)
    try:
        yield
    finally:
        _filter_disabled.reset(token)


def is_filter_disabled() -> bool:
    """Return ``True`` while inside :func:`tenant_filter_disabled`."""
    return _filter_disabled.get()


def effective_tenant_id(tenant_id: int | None = None) -> int | None:
    """Return the subsite a read must be scoped to, or ``None`` for no scope."""
    if tenant_id is not None:
        return tenant_id
    if _filter_disabled.get():
        return None
    return current_tenant_hint()


def apply_tenant_filter(
    query: SelectT,
    column: ColumnElement[Any] | Any,
    tenant_id: int | None = None,
) -> SelectT:
    """Add ``WHERE <column> = :tenant_id`` to *query* when a scope applies.

    Args:
        query: SQLAlchemy ``Select`` statement.
        column: The tenant-id column of the queried table.
        tenant_id: Explicit scope; see :func:`effective_tenant_id`.

    Returns:
        The (possibly) filtered statement.
    """
    scope = effective_tenant_id(tenant_id)
    if scope is None:
        return query
    return query.where(column == scope)


def filter_records(records: Iterable[ScopedT], tenant_id: int | None = None) -> list[ScopedT]:
    """In-memory counterpart of :func:`apply_tenant_filter`."""
    scope = effective_tenant_id(tenant_id)
    if scope is None:
        return list(records)
    return [r for r in records if r.tenant_id == scope]


__all__ = [
    "apply_tenant_filter",
    "effective_tenant_id",
    "filter_records",
    "is_filter_disabled",
    "tenant_filter_disabled",
]
