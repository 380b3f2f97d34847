"""
Lumen Notes - a local-first notes data engine.
This package implements the note store, its query and search semantics,
and the backup/restore subsystem that snapshots and rehydrates that store,
exposed to presentation layers through a small result-shaped API and an
MCP server.

This version uses asynchronous storage operations.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("lumen-notes")
except PackageNotFoundError:
    __version__ = "1.0.0"
