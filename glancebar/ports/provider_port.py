"""Provider port — abstract interface for one account on one calendar provider.

The aggregator depends on this protocol, never on a specific provider.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from glancebar.data.models import Account, CalendarEvent, Task


class ProviderError(Exception):
    """Raised when any provider operation fails."""


class ProviderClient(Protocol):
    """Read-only access to one account's events (and tasks, where supported)."""

    account: Account
    supports_tasks: bool

    async def authorize(self) -> bool:
        """Make sure usable credentials exist. False means skip this account."""
        ...

    async def fetch_events(
        self, window_start: datetime, window_end: datetime, account_index: int
    ) -> list[CalendarEvent]: ...

    async def fetch_tasks(self, now: datetime) -> list[Task]: ...
