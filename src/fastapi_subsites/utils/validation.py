"""Input validation and normalisation helpers.

These are small, pure functions shared by the types, the registry, the
access evaluator and the request layer.

Security model
--------------
- Input length is capped *before* any regex runs to prevent ReDoS attacks
  on pathologically long strings.
- All patterns are compiled once at module load time.
"""

from __future__ import annotations

from collections.abc import Collection
import re
from typing import Any

from fastapi_subsites.core.exceptions import InvalidPermissionArgumentError

################################
# Compiled regular expressions #
################################

# HTTP/HTTPS URL.
_URL_RE = re.compile(r"^https?://[a-zA-Z0-9.\-]+(:[0-9]{1,5})?(/.*)?$")

# Characters dropped by slugify_title: anything but letters, digits, whitespace.
_SLUG_STRIP_RE = re.compile(r"[^a-z0-9\s]")
_WHITESPACE_RE = re.compile(r"\s+")

# Leading integer part of an override value, after optional whitespace/sign.
_INT_PREFIX_RE = re.compile(r"^\s*([+-]?\d+)")

# Hostname labels with an optional trailing port.
_PORT_RE = re.compile(r":\d*$")

# Hard cap applied before any regex to prevent ReDoS.
_MAX_INPUT_LEN: int = 512


#########
# Slugs #
#########


def slugify_title(title: str) -> str:
    """Derive a subsite identifier from its title.

    The title is lowercased, every character other than ASCII letters,
    digits and whitespace is dropped, the result is trimmed and each run of
    whitespace becomes a single hyphen.

    Examples::

        slugify_title("Acme Intranet!")   # "acme-intranet"
        slugify_title("  R&D  Labs ")     # "rd-labs"
    """
    s = _SLUG_STRIP_RE.sub("", title[:_MAX_INPUT_LEN].lower()).strip()
    return _WHITESPACE_RE.sub("-", s)


#############
# Overrides #
#############


def coerce_tenant_id(value: Any) -> int:
    """Coerce a raw request value to a subsite id.

    Integers pass through.  Strings contribute their leading integer part;
    anything non-numeric becomes ``0`` (the main site).  Negative numbers
    are clamped to ``0`` as well.

    Examples::

        coerce_tenant_id("5")      # 5
        coerce_tenant_id("7abc")   # 7
        coerce_tenant_id("abc")    # 0
        coerce_tenant_id(None)     # 0
    """
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return max(value, 0)
    if value is None:
        return 0
    match = _INT_PREFIX_RE.match(str(value)[:_MAX_INPUT_LEN])
    if not match:
        return 0
    return max(int(match.group(1)), 0)


#########
# Hosts #
#########


def normalize_host(host: str | None) -> str:
    """Normalise a hostname (or pattern) for domain matching.

    Lowercases, trims, drops a ``:port`` suffix and strips one leading
    ``www.`` label.

    Examples::

        normalize_host("WWW.Example.com:8080")   # "example.com"
        normalize_host("www.*.example.com")      # "*.example.com"
    """
    if not host:
        return ""
    h = host.strip().lower()[:_MAX_INPUT_LEN]
    h = _PORT_RE.sub("", h)
    if h.startswith("www."):
        h = h[4:]
    return h


def validate_url(url: str) -> bool:
    """Return ``True`` if *url* is a syntactically valid HTTP/HTTPS URL."""
    if not url or not isinstance(url, str) or len(url) > 2048:
        return False
    return bool(_URL_RE.match(url))


####################
# Permission codes #
####################


def ensure_permission_codes(codes: Any) -> frozenset[str]:
    """Validate a permission-code collection and return it as a frozenset.

    Raises:
        InvalidPermissionArgumentError: When *codes* is not a non-string
            collection of strings.
    """
    if isinstance(codes, (str, bytes)) or not isinstance(codes, Collection):
        raise InvalidPermissionArgumentError(codes)
    if not all(isinstance(c, str) for c in codes):
        raise InvalidPermissionArgumentError(
            codes, details={"reason": "every code must be a string"}
        )
    return frozenset(codes)


__all__ = [
    "coerce_tenant_id",
    "ensure_permission_codes",
    "normalize_host",
    "slugify_title",
    "validate_url",
]
