"""Custom exceptions for fastapi-subsites.

All exceptions derive from ``SubsitesError`` so callers can catch the entire
family with a single ``except SubsitesError`` clause while still being able to
handle individual sub-types.

Exception hierarchy::

    SubsitesError
    ├── TenantNotFoundError
    ├── ContentNodeNotFoundError
    ├── GroupNotFoundError
    ├── InvalidPermissionArgumentError   (also a TypeError)
    ├── InvalidTenantKindError
    ├── ReplicationError
    ├── PermissionDeniedError
    └── ConfigurationError

Ambiguous domain matches are *not* represented here: they are
logged at WARNING level and reported through
:attr:`~fastapi_subsites.core.types.DomainMatch.ambiguous`.
"""

from __future__ import annotations

from typing import Any


class SubsitesError(Exception):
    """Base exception for all fastapi-subsites errors.

    Attributes:
        message: Human-readable description of the error.
        details: Supplementary key-value context.  Safe to log; must never
            contain secrets or user PII.
    """

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.details: dict[str, Any] = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | details={self.details}"
        return self.message

    def __repr__(self) -> str:
        return f"{type(self).__name__}(message={self.message!r})"


class TenantNotFoundError(SubsitesError):
    """Raised when a subsite id or identifier matches no stored subsite.

    Attributes:
        identifier: The id or identifier that was looked up.
    """

    def __init__(
        self,
        identifier: int | str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        message = (
            f"Subsite not found: {identifier!r}" if identifier is not None else "Subsite not found"
        )
        super().__init__(message, details)
        self.identifier = identifier


class ContentNodeNotFoundError(SubsitesError):
    """Raised when a content node does not exist in the requested stage.

    Attributes:
        node_id: The missing node's id.
        stage: Stage value that was searched.
    """

    def __init__(
        self,
        node_id: int,
        stage: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(f"Content node {node_id} not found in stage {stage!r}", details)
        self.node_id = node_id
        self.stage = stage


class GroupNotFoundError(SubsitesError):
    """Raised when a group id matches no stored group."""

    def __init__(
        self,
        group_id: int,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(f"Group not found: {group_id}", details)
        self.group_id = group_id


class InvalidPermissionArgumentError(SubsitesError, TypeError):
    """Raised when a permission-code argument is not a collection of codes.

    A bare string is rejected too: iterating ``"ADMIN"`` would silently check
    the single-character codes ``"A"``, ``"D"`` and so on.

    Attributes:
        received_type: Name of the offending argument's type.
    """

    def __init__(
        self,
        value: object,
        details: dict[str, Any] | None = None,
    ) -> None:
        received = type(value).__name__
        super().__init__(
            f"Permission codes must be a collection of strings, got {received}",
            details,
        )
        self.received_type = received


class InvalidTenantKindError(SubsitesError):
    """Raised when an operation requires a different subsite variant.

    Attributes:
        tenant_id: The offending subsite's id.
        expected: Required kind.
        actual: The subsite's actual kind.
    """

    def __init__(
        self,
        tenant_id: int | None,
        expected: str,
        actual: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            f"Subsite {tenant_id} is of kind {actual!r}, expected {expected!r}",
            details,
        )
        self.tenant_id = tenant_id
        self.expected = expected
        self.actual = actual


class ReplicationError(SubsitesError):
    """Raised when copying a content subtree between subsites fails.

    Nothing is rolled back: the destination subsite keeps the nodes that were
    already copied.  ``nodes_copied`` tells the operator how far it got.

    Attributes:
        source_id: Subsite the tree was copied from.
        destination_id: Subsite the tree was copied into (``None`` when the
            failure happened before the destination was created).
        nodes_copied: Number of nodes written and published before failing.
        reason: Description of the underlying failure.
    """

    def __init__(
        self,
        source_id: int | None,
        destination_id: int | None,
        reason: str,
        nodes_copied: int = 0,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            f"Replication from subsite {source_id} to {destination_id} failed "
            f"after {nodes_copied} node(s): {reason}",
            details,
        )
        self.source_id = source_id
        self.destination_id = destination_id
        self.nodes_copied = nodes_copied
        self.reason = reason


class PermissionDeniedError(SubsitesError):
    """Raised when a principal is not allowed to perform an admin action.

    Attributes:
        action: Name of the refused action.
        principal_id: Acting principal's id (``None`` for anonymous callers).
    """

    def __init__(
        self,
        action: str,
        principal_id: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        who = f"principal {principal_id}" if principal_id is not None else "anonymous caller"
        super().__init__(f"Permission denied: {who} may not {action}", details)
        self.action = action
        self.principal_id = principal_id


class ConfigurationError(SubsitesError):
    """Raised when ``SubsitesConfig`` or a component wiring is invalid.

    Attributes:
        parameter: The name of the invalid setting.
        reason: Why the current value is invalid.
    """

    def __init__(
        self,
        parameter: str,
        reason: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(f"Invalid configuration for {parameter!r}: {reason}", details)
        self.parameter = parameter
        self.reason = reason


__all__ = [
    "ConfigurationError",
    "ContentNodeNotFoundError",
    "GroupNotFoundError",
    "InvalidPermissionArgumentError",
    "InvalidTenantKindError",
    "PermissionDeniedError",
    "ReplicationError",
    "SubsitesError",
    "TenantNotFoundError",
]
