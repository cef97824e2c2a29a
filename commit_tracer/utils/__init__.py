"""Utility modules for commit-tracer."""

from .locks import ReadWriteLock

__all__ = ["ReadWriteLock"]
