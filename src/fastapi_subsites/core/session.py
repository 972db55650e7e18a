"""Per-session storage of the current subsite id.

The library only ever needs three operations on the user session, captured by
:class:`SessionStore`.  :class:`MappingSessionStore` adapts any mutable
mapping, most importantly Starlette's ``request.session`` (populated by
``starlette.middleware.sessions.SessionMiddleware``).  When no session
middleware is installed the request layer falls back to a throw-away
in-memory mapping, so the subsite is re-resolved on every request.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import MutableMapping
from typing import Any


class SessionStore(ABC):
    """Minimal key-value view of a user session."""

    @abstractmethod
    def get(self, key: str) -> Any:
        """Return the value stored under *key*, or ``None``."""

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store *value* under *key*."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove *key*.  Missing keys are ignored."""


class MappingSessionStore(SessionStore):
    """:class:`SessionStore` over a plain mutable mapping.

    Args:
        data: Backing mapping.  A fresh ``dict`` when omitted.
    """

    def __init__(self, data: MutableMapping[str, Any] | None = None) -> None:
        self._data: MutableMapping[str, Any] = data if data is not None else {}

    @property
    def data(self) -> MutableMapping[str, Any]:
        return self._data

    def get(self, key: str) -> Any:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def __repr__(self) -> str:
        return f"MappingSessionStore(keys={sorted(self._data)!r})"


__all__ = ["MappingSessionStore", "SessionStore"]
