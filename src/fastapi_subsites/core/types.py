"""Domain types, enumerations, and data models for fastapi-subsites.

This module is the single source of truth for the library's public domain
vocabulary.  All other modules import *from* this module — never the reverse —
to keep the dependency graph acyclic.

Design notes
------------
* Enumerations use :class:`~enum.StrEnum` so values serialise to plain
  strings in JSON, logs, and database rows without extra conversion.
* Every record is a Pydantic ``frozen=True`` model.  Produce modified copies
  with :meth:`~pydantic.BaseModel.model_copy`.
* Integer ids follow the storage convention: ``None`` means "not persisted
  yet" and ``0`` (:data:`MAIN_SITE_ID`) is reserved for the main site — it is
  never the id of a stored subsite.
* The template variant of a subsite is a :class:`TenantKind` tag rather than a
  subclass; :func:`build_tenant` is the factory keyed by that tag.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

#: Reserved tenant id meaning "no subsite / main site".
MAIN_SITE_ID: int = 0


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class TenantKind(StrEnum):
    """Variant tag of a subsite record.

    Kinds
    -----
    SUBSITE
        An ordinary, routable subsite.
    TEMPLATE
        A non-routable subsite used only as a cloning source for
        :meth:`~fastapi_subsites.replication.replicator.SubtreeReplicator.create_instance`.
    """

    SUBSITE = "subsite"
    TEMPLATE = "template"


class Stage(StrEnum):
    """Storage stage of a content node.

    ``DRAFT`` is the working copy edited in the CMS; ``LIVE`` is what the
    public site serves.  Publishing copies a node from ``DRAFT`` to ``LIVE``.
    """

    DRAFT = "Stage"
    LIVE = "Live"


class PermissionCode(StrEnum):
    """Permission codes understood by the access evaluator."""

    ADMIN = "ADMIN"
    SUBSITE_EDIT = "SUBSITE_EDIT"
    SUBSITE_ACCESS_ALL = "SUBSITE_ACCESS_ALL"
    SUBSITE_ASSETS_EDIT = "SUBSITE_ASSETS_EDIT"


#: Human-readable descriptions registered with an authorisation UI.
PERMISSION_DESCRIPTIONS: dict[str, str] = {
    PermissionCode.SUBSITE_EDIT: "Edit Sub-site Details",
    PermissionCode.SUBSITE_ACCESS_ALL: "Access all subsites",
    PermissionCode.SUBSITE_ASSETS_EDIT: "Edit Sub-site Assets Admin",
}


# ---------------------------------------------------------------------------
# Domain models
# ---------------------------------------------------------------------------


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Tenant(BaseModel):
    """Immutable subsite record.

    Attributes:
        id: Storage id (``None`` until persisted; never ``0``).
        title: Display name.  Subsites without a title are considered
            incompletely provisioned.
        identifier: Slug derived from the title at creation time.
        redirect_url: Optional URL the subsite forwards visitors to.
        default_site: Fallback subsite flag.  At most one subsite holds it.
        is_public: Non-public subsites are skipped by public domain
            resolution but remain visible to privileged callers.
        theme: Theme selector.
        template_id: Id of the template this subsite was instantiated from.
        kind: :class:`TenantKind` variant tag.
        created_at: Creation timestamp (UTC).
        updated_at: Last-modification timestamp (UTC).
    """

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "examples": [
                {
                    "id": 5,
                    "title": "Acme Intranet",
                    "identifier": "acme-intranet",
                    "is_public": True,
                    "kind": "subsite",
                }
            ]
        },
    )

    id: int | None = Field(default=None, ge=1, description="Storage id.")
    title: str = Field(default="", max_length=255, description="Display name.")
    identifier: str | None = Field(
        default=None, max_length=255, description="Slug derived from the title."
    )
    redirect_url: str | None = Field(default=None, max_length=255)
    default_site: bool = Field(default=False, description="Fallback subsite flag.")
    is_public: bool = Field(default=True, description="Publicly resolvable.")
    theme: str | None = Field(default=None, max_length=255)
    template_id: int | None = Field(
        default=None, ge=1, description="Template this subsite was created from."
    )
    kind: TenantKind = Field(default=TenantKind.SUBSITE, description="Variant tag.")
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @field_validator("redirect_url")
    @classmethod
    def _validate_redirect_url(cls, v: str | None) -> str | None:
        from fastapi_subsites.utils.validation import validate_url  # noqa: PLC0415

        if v and not validate_url(v):
            msg = f"redirect_url must be an http(s) URL, got {v!r}"
            raise ValueError(msg)
        return v or None

    @property
    def is_template(self) -> bool:
        """Return ``True`` for :attr:`TenantKind.TEMPLATE` records."""
        return self.kind == TenantKind.TEMPLATE

    @property
    def is_persisted(self) -> bool:
        return self.id is not None


class DomainBinding(BaseModel):
    """A hostname pattern bound to one subsite.

    Attributes:
        id: Storage id (``None`` until persisted).
        tenant_id: Owning subsite.
        domain: Hostname pattern; ``*`` stands for exactly one label.
        is_primary: Preferred when several bindings match the same host.
    """

    model_config = ConfigDict(frozen=True)

    id: int | None = Field(default=None, ge=1)
    tenant_id: int = Field(..., ge=1)
    domain: str = Field(..., min_length=1, max_length=255)
    is_primary: bool = False

    @field_validator("domain")
    @classmethod
    def _normalise_domain(cls, v: str) -> str:
        return v.strip().lower()


class ContentNode(BaseModel):
    """A page in a subsite's content tree.

    The tree is a parent-id forest per subsite; root nodes have
    ``parent_id == 0``.
    """

    model_config = ConfigDict(frozen=True)

    id: int | None = Field(default=None, ge=1)
    tenant_id: int = Field(default=MAIN_SITE_ID, ge=0)
    parent_id: int = Field(default=0, ge=0)
    title: str = Field(..., max_length=255)
    url_segment: str = Field(default="", max_length=255)
    content: str = ""
    sort_order: int = 0
    node_type: str = Field(default="Page", max_length=100)
    show_in_menus: bool = True
    metadata: dict[str, Any] = Field(default_factory=dict)

    def clone_for(self, tenant_id: int, parent_id: int) -> ContentNode:
        """Return an unsaved deep copy attached to *parent_id* in *tenant_id*.

        Every field is copied except identity and hierarchy pointers.
        """
        return self.model_copy(
            update={"id": None, "tenant_id": tenant_id, "parent_id": parent_id},
            deep=True,
        )


class Group(BaseModel):
    """Access-control group, global when ``tenant_id`` is ``0``."""

    model_config = ConfigDict(frozen=True)

    id: int | None = Field(default=None, ge=1)
    title: str = Field(..., max_length=255)
    description: str = ""
    tenant_id: int = Field(default=MAIN_SITE_ID, ge=0)
    permission_codes: frozenset[str] = Field(default_factory=frozenset)
    member_ids: frozenset[int] = Field(default_factory=frozenset)

    @property
    def is_global(self) -> bool:
        return self.tenant_id == MAIN_SITE_ID

    def grants(self, codes: frozenset[str] | set[str]) -> bool:
        """Return ``True`` when this group carries any of *codes*."""
        return not self.permission_codes.isdisjoint(codes)

    def clone_for(self, tenant_id: int) -> Group:
        """Return an unsaved, member-less copy scoped to *tenant_id*."""
        return self.model_copy(
            update={"id": None, "tenant_id": tenant_id, "member_ids": frozenset()}
        )


class Principal(BaseModel):
    """The authenticated user on whose behalf an action runs."""

    model_config = ConfigDict(frozen=True)

    id: int = Field(..., ge=1)
    email: str | None = None
    name: str | None = None


class DomainMatch(BaseModel):
    """Outcome of matching a hostname against the registered bindings.

    Attributes:
        host: The normalised host that was matched.
        bindings: Matching bindings, primary bindings first.
        tenant_id: Winning subsite id, or ``None`` when nothing matched.
        ambiguous: ``True`` when bindings of more than one subsite matched.
    """

    model_config = ConfigDict(frozen=True)

    host: str
    bindings: tuple[DomainBinding, ...] = ()
    tenant_id: int | None = None
    ambiguous: bool = False

    @property
    def tenant_ids(self) -> list[int]:
        """Distinct matching subsite ids in match order."""
        return list(dict.fromkeys(b.tenant_id for b in self.bindings))


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


def build_tenant(kind: TenantKind | str = TenantKind.SUBSITE, **fields: Any) -> Tenant:
    """Build an unsaved :class:`Tenant` of the given *kind*.

    Args:
        kind: Variant tag (or its string value).
        **fields: Any other :class:`Tenant` field.

    Returns:
        A new, unsaved tenant record.

    Raises:
        ValueError: When *kind* is not a known :class:`TenantKind`.
    """
    return Tenant(kind=TenantKind(kind), **fields)


__all__ = [
    "MAIN_SITE_ID",
    "PERMISSION_DESCRIPTIONS",
    "ContentNode",
    "DomainBinding",
    "DomainMatch",
    "Group",
    "PermissionCode",
    "Principal",
    "Stage",
    "Tenant",
    "TenantKind",
    "build_tenant",
]
