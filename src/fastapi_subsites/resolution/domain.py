"""Hostname → subsite resolution with wildcard domain patterns.

A subsite is reachable through any number of
:class:`~fastapi_subsites.core.types.DomainBinding` patterns.  ``*`` in a
pattern stands for exactly one dot-free label, so ``*.example.com`` matches
``blog.example.com`` but not ``example.com`` or ``a.b.example.com``.

Matching algorithm
------------------
1. Normalise the host: lowercase, drop ``:port``, strip one leading ``www.``.
   Patterns are normalised the same way.
2. Test every binding of a public subsite (or of every subsite when
   ``include_private``) in store order.
3. Order the matches primary-first, keeping store order otherwise.
4. No match → ``None``.  Matches belonging to more than one subsite are
   *ambiguous*: a WARNING is logged, :attr:`DomainMatch.ambiguous` is set and
   the first match still wins.  Matching never raises for any host string.
"""

from __future__ import annotations

from functools import lru_cache
import logging
import re
from typing import TYPE_CHECKING

from fastapi_subsites.core.types import DomainMatch
from fastapi_subsites.utils.validation import normalize_host

if TYPE_CHECKING:
    from fastapi_subsites.core.config import SubsitesConfig
    from fastapi_subsites.core.types import DomainBinding
    from fastapi_subsites.storage.tenant_store import TenantStore

logger = logging.getLogger(__name__)

_PORT_RE = re.compile(r":\d*$")


@lru_cache(maxsize=1024)
def compile_pattern(pattern: str) -> re.Pattern[str]:
    """Compile a domain pattern into an anchored regular expression.

    Every character is matched literally except ``*``, which matches one
    dot-free label.
    """
    normalised = normalize_host(pattern)
    parts = (re.escape(chunk) for chunk in normalised.split("*"))
    return re.compile("[^.]+".join(parts))


def pattern_matches(pattern: str, host: str) -> bool:
    """Return ``True`` when *host* matches domain *pattern*."""
    return compile_pattern(pattern).fullmatch(normalize_host(host)) is not None


class DomainMatcher:
    """Resolve hostnames to subsite ids against the stored domain bindings.

    Args:
        store: Source of domain bindings.
        config: Supplies URL scheme, base path and wildcard label for the
            URL helpers.
    """

    def __init__(self, store: TenantStore, config: SubsitesConfig) -> None:
        self._store = store
        self._config = config

    async def match(self, host: str, include_private: bool = False) -> DomainMatch:
        """Return every binding matching *host*, primary bindings first."""
        normalised = normalize_host(host)
        if not normalised:
            return DomainMatch(host=normalised)

        bindings = await self._store.list_domain_bindings(include_private=include_private)
        matched = [b for b in bindings if compile_pattern(b.domain).fullmatch(normalised)]
        matched.sort(key=lambda b: not b.is_primary)
        if not matched:
            logger.debug("No subsite matches host %r", normalised)
            return DomainMatch(host=normalised)

        result = DomainMatch(
            host=normalised,
            bindings=tuple(matched),
            tenant_id=matched[0].tenant_id,
        )
        if len(result.tenant_ids) > 1:
            logger.warning(
                "Host %r matches several subsites %s; using subsite %s",
                normalised,
                result.tenant_ids,
                result.tenant_id,
            )
            result = result.model_copy(update={"ambiguous": True})
        return result

    async def resolve(self, host: str, include_private: bool = False) -> int | None:
        """Return the id of the subsite serving *host*, or ``None``."""
        return (await self.match(host, include_private)).tenant_id

    # ------------------------------------------------------------------
    # URL helpers
    # ------------------------------------------------------------------

    def guess_domain(self, pattern: str, request_host: str | None) -> str:
        """Turn a wildcard *pattern* into a concrete hostname.

        * a trailing ``.*`` becomes ``.<request host>``;
        * a leading ``*.`` becomes ``<wildcard_host_label>.``;
        * ``.www.`` collapses to ``.``.
        """
        domain = pattern.strip().lower()
        host = _PORT_RE.sub("", (request_host or "").strip().lower())
        if domain.endswith(".*") and host:
            domain = f"{domain[:-2]}.{host}"
        if domain.startswith("*."):
            domain = f"{self._config.wildcard_host_label}.{domain[2:]}"
        return domain.replace(".www.", ".")

    async def primary_binding(self, tenant_id: int) -> DomainBinding | None:
        bindings = await self._store.bindings_for(tenant_id)
        return bindings[0] if bindings else None

    async def primary_domain(self, tenant_id: int, request_host: str | None = None) -> str | None:
        """Return the concrete primary hostname of a subsite, or ``None``."""
        binding = await self.primary_binding(tenant_id)
        if binding is None:
            return None
        return self.guess_domain(binding.domain, request_host)

    async def absolute_base_url(
        self,
        tenant_id: int,
        request_host: str | None = None,
    ) -> str | None:
        """Return ``<scheme>://<primary domain><base_path>`` for a subsite."""
        domain = await self.primary_domain(tenant_id, request_host)
        if domain is None:
            return None
        return f"{self._config.url_scheme}://{domain}{self._config.base_path}"


__all__ = ["DomainMatcher", "compile_pattern", "pattern_matches"]
