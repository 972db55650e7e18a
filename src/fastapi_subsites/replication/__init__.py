"""Subsite duplication and template instantiation."""

from fastapi_subsites.replication.replicator import SubtreeReplicator

__all__ = ["SubtreeReplicator"]
