"""
Glancebar — Usage cache storage.

The disk store keeps the same `{data, fetchedAt, ttl}` JSON layout across
versions. The in-memory store exists for tests and one-off embedding.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from glancebar.data.models import CacheEntry

logger = logging.getLogger(__name__)


class JsonFileCacheStore:
    """CacheStore backed by a single JSON file."""

    def __init__(self, path: Path | str | None = None) -> None:
        if path is None:
            from glancebar.config import get_usage_cache_path
            path = get_usage_cache_path()
        self._path = Path(path)

    def load(self) -> CacheEntry | None:
        if not self._path.exists():
            return None
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
            return CacheEntry.model_validate(raw)
        except (OSError, json.JSONDecodeError, ValidationError) as exc:
            logger.warning("Discarding unreadable usage cache %s: %s", self._path, exc)
            return None

    def save(self, entry: CacheEntry) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(
            json.dumps(entry.model_dump(by_alias=True, mode="json"), indent=2),
            encoding="utf-8",
        )
        logger.debug("Usage cache written to %s", self._path)


class InMemoryCacheStore:
    """CacheStore that lives only as long as the object."""

    def __init__(self, entry: CacheEntry | None = None) -> None:
        self.entry = entry
        self.saves = 0

    def load(self) -> CacheEntry | None:
        return self.entry

    def save(self, entry: CacheEntry) -> None:
        self.entry = entry
        self.saves += 1
