"""Watcher implementations used by the route virtual server agent."""

from .file import FileResourceWatcher  # noqa: F401

__all__ = ["FileResourceWatcher"]
