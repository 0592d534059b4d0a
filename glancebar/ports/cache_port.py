"""Cache port — read/write access to the single usage-limits cache entry."""

from __future__ import annotations

from typing import Protocol

from glancebar.data.models import CacheEntry


class CacheStore(Protocol):
    """Storage for the one CacheEntry. Absence is a normal state, not an error."""

    def load(self) -> CacheEntry | None: ...

    def save(self, entry: CacheEntry) -> None: ...
