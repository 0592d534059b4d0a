"""
Glancebar — Event and task aggregation.

Fans out one fetch per configured account, waits for all of them, and merges
the results into a single ordered list. Each account runs inside its own
failure boundary: an account that cannot authorize, times out, or returns
garbage contributes an empty list and never holds up or breaks the others.

This module is provider-agnostic: it only talks to the ProviderClient
protocol.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime, timedelta
from typing import TypeVar

from glancebar.data.models import Account, CalendarEvent, Task
from glancebar.ports.provider_port import ProviderClient

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_CONCURRENT_ACCOUNTS = 8


# ---------------------------------------------------------------------------
# Selection and ordering (pure functions)
# ---------------------------------------------------------------------------


def merge_events(per_account: Sequence[Sequence[CalendarEvent]]) -> list[CalendarEvent]:
    """Concatenate per-account lists (in account order) and stable-sort by start.

    Events sharing a start instant keep their account-order position.
    """
    merged = [event for events in per_account for event in events]
    merged.sort(key=lambda event: event.start)
    return merged


def _first_current_or_next(
    events: Sequence[CalendarEvent], now: datetime
) -> CalendarEvent | None:
    for event in events:
        if event.start <= now < event.end:
            return event
    for event in events:
        if event.start > now:
            return event
    return None


def current_or_next(events: Sequence[CalendarEvent], now: datetime) -> CalendarEvent | None:
    """Pick the event to show from a start-sorted list.

    The first in-progress event (start <= now < end) wins, even if a later
    in-progress event exists. Only when nothing is in progress does the
    first future event get picked. All-day events span the whole day, so
    timed events are tried first and a holiday does not hide the meeting at
    10:00. All-day events go through the same rule when no timed event
    qualifies.
    """
    timed = [event for event in events if not event.is_all_day]
    all_day = [event for event in events if event.is_all_day]
    return _first_current_or_next(timed, now) or _first_current_or_next(all_day, now)


def _task_sort_key(task: Task) -> tuple:
    return (
        not task.is_overdue,
        task.due_date is None,
        task.due_date.timestamp() if task.due_date else 0.0,
        task.priority_rank,
    )


def sort_tasks(tasks: Sequence[Task], limit: int | None = None) -> list[Task]:
    """Overdue first, then by due date (undated last), then High/Normal/Low.

    Truncation happens after sorting so the most urgent tasks survive.
    """
    ordered = sorted(tasks, key=_task_sort_key)
    return ordered if limit is None else ordered[:limit]


# ---------------------------------------------------------------------------
# Aggregator
# ---------------------------------------------------------------------------


class Aggregator:
    """Concurrent per-account fetches for one render.

    One ProviderClient is created per account and reused by every query in
    the same render, so events and tasks share authorization.
    """

    def __init__(
        self,
        client_factory: Callable[[Account], ProviderClient],
        max_concurrency: int = MAX_CONCURRENT_ACCOUNTS,
    ) -> None:
        self._client_factory = client_factory
        self._clients: dict[tuple[str, str], ProviderClient] = {}
        self._slots = asyncio.Semaphore(max_concurrency)

    def client_for(self, account: Account) -> ProviderClient:
        client = self._clients.get(account.key)
        if client is None:
            client = self._client_factory(account)
            self._clients[account.key] = client
        return client

    async def _isolated(
        self,
        account: Account,
        kind: str,
        fetch: Callable[[ProviderClient], Awaitable[list[T]]],
        tasks_only: bool = False,
    ) -> list[T]:
        """Run one account's fetch; any failure becomes an empty result."""
        async with self._slots:
            try:
                client = self.client_for(account)
                if tasks_only and not client.supports_tasks:
                    return []
                if not await client.authorize():
                    logger.info("[%s] Not authorized, skipping %s", account.email, kind)
                    return []
                return await fetch(client)
            except Exception as exc:
                logger.warning("[%s] %s fetch failed: %s", account.email, kind, exc)
                return []

    async def list_upcoming(
        self,
        accounts: Sequence[Account],
        now: datetime,
        lookahead_hours: float,
    ) -> list[CalendarEvent]:
        """All events in [now, now + lookahead) across accounts, sorted by start."""
        window_end = now + timedelta(hours=lookahead_hours)

        def fetcher(index: int) -> Callable[[ProviderClient], Awaitable[list[CalendarEvent]]]:
            return lambda client: client.fetch_events(now, window_end, index)

        jobs = [
            asyncio.create_task(self._isolated(account, "events", fetcher(index)))
            for index, account in enumerate(accounts)
        ]
        per_account = await asyncio.gather(*jobs)

        events = merge_events(per_account)
        logger.debug("Merged %d event(s) from %d account(s)", len(events), len(accounts))
        return events

    async def list_tasks(
        self,
        accounts: Sequence[Account],
        now: datetime,
        max_tasks: int,
    ) -> list[Task]:
        """Open tasks across task-capable accounts, sorted and truncated."""
        jobs = [
            asyncio.create_task(
                self._isolated(
                    account,
                    "tasks",
                    lambda client: client.fetch_tasks(now),
                    tasks_only=True,
                )
            )
            for account in accounts
        ]
        per_account = await asyncio.gather(*jobs)

        tasks = [task for account_tasks in per_account for task in account_tasks]
        return sort_tasks(tasks, max_tasks)
