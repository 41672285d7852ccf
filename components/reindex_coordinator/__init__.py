"""Reindex coordinator component."""

from .coordinator import RebuildStatus, ReindexCoordinator

__all__ = ["RebuildStatus", "ReindexCoordinator"]
