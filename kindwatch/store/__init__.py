"""Persistent resource store for kindwatch.

Submodules:
    resource_store -- SQLite table of the latest observed version of every object.
"""

from kindwatch.store.resource_store import ResourceStore, StoredResource

__all__ = ["ResourceStore", "StoredResource"]
