"""
Glancebar — Usage limits cache.

Wraps the quota endpoint with a single persisted entry:
  * a fresh entry (younger than the configured TTL) is served with no request;
  * otherwise one request is made, bounded by a hard timeout;
  * on success the entry is overwritten, on any failure the previous data is
    served no matter how old it is.

The quota display is advisory, so this module never raises to its caller.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from datetime import datetime

from glancebar.config import Settings
from glancebar.data.models import CacheEntry, UsageSnapshot
from glancebar.integrations.usage_api import fetch_usage_snapshot, load_access_token
from glancebar.ports.cache_port import CacheStore

logger = logging.getLogger(__name__)

FETCH_TIMEOUT_SECONDS = 5.0


def _now_ms(now: datetime | None) -> int:
    if now is None:
        return int(time.time() * 1000)
    return int(now.timestamp() * 1000)


def is_fresh(entry: CacheEntry | None, now_ms: int, ttl_ms: int) -> bool:
    return entry is not None and entry.data is not None and now_ms - entry.fetched_at < ttl_ms


class UsageLimitsCache:
    """Stale-while-revalidate access to the current UsageSnapshot."""

    def __init__(
        self,
        store: CacheStore,
        credential_reader: Callable[[], str | None] = load_access_token,
        fetch: Callable[[str | None], Awaitable[UsageSnapshot]] = fetch_usage_snapshot,
        timeout: float = FETCH_TIMEOUT_SECONDS,
    ) -> None:
        self._store = store
        self._read_credential = credential_reader
        self._fetch = fetch
        self._timeout = timeout

    async def get(self, settings: Settings, now: datetime | None = None) -> UsageSnapshot | None:
        now_ms = _now_ms(now)
        ttl_ms = settings.usage_limits_cache_ttl * 1000

        entry = self._store.load()
        if is_fresh(entry, now_ms, ttl_ms):
            logger.debug("Usage cache hit (age %d ms)", now_ms - entry.fetched_at)
            return entry.data

        previous = entry.data if entry else None
        try:
            token = self._read_credential()
            fresh = await asyncio.wait_for(self._fetch(token), timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.warning("Usage fetch timed out after %.1fs, serving cached data", self._timeout)
            return previous
        except Exception as exc:
            logger.warning("Usage fetch failed, serving cached data: %s", exc)
            return previous

        try:
            self._store.save(CacheEntry(data=fresh, fetched_at=now_ms, ttl=ttl_ms))
        except OSError as exc:
            logger.warning("Could not write usage cache: %s", exc)
        return fresh
