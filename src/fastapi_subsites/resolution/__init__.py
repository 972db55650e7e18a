"""Hostname → subsite resolution."""

from fastapi_subsites.resolution.domain import DomainMatcher, compile_pattern, pattern_matches

__all__ = ["DomainMatcher", "compile_pattern", "pattern_matches"]
