"""Error types shared across loaders, engine and persistence.

Lookup misses (unknown item ids, unknown names) are not errors anywhere
in this package: unknown items are never restricted.
"""

from __future__ import annotations


class DataError(ValueError):
    """The item catalog is missing, malformed or references undefined items."""


class PersistenceError(RuntimeError):
    """The key/value backend failed to read or write a value."""
