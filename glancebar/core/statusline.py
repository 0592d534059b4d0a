"""
Glancebar — Statusline render.

One render = one line on stdout. The query families (events, tasks, usage
limits, host stats) run concurrently and are joined before anything is
formatted. Whatever goes wrong, `render_statusline` still returns exactly
one line.
"""

from __future__ import annotations

import asyncio
import json
import logging
import random
from collections.abc import Callable
from datetime import datetime
from typing import TypeVar

from pydantic import ValidationError

from glancebar.adapters.provider_factory import ProviderClientFactory, configured_accounts
from glancebar.config import Settings, load_settings
from glancebar.core.aggregator import Aggregator, current_or_next
from glancebar.core.formatter import (
    NO_ACCOUNTS,
    NO_EVENTS,
    SEPARATOR,
    format_event,
    format_session_info,
    format_system_stats,
    format_tasks,
    format_usage_limits,
    meeting_warning,
    pick_reminder,
)
from glancebar.core.usage_cache import UsageLimitsCache
from glancebar.data.cache_store import JsonFileCacheStore
from glancebar.data.models import SessionStatus, SystemStats
from glancebar.integrations.system_stats import read_system_stats

logger = logging.getLogger(__name__)

FALLBACK_LINE = "Calendar unavailable"

T = TypeVar("T")


async def _resolved(value: T) -> T:
    return value


async def _system_stats(
    settings: Settings, reader: Callable[[bool, bool], SystemStats]
) -> SystemStats | None:
    """Host stats read in a worker thread; a failed read drops the segments."""
    try:
        return await asyncio.to_thread(
            reader, settings.show_cpu_usage, settings.show_memory_usage
        )
    except Exception as exc:
        logger.warning("System stats unavailable: %s", exc)
        return None


def parse_session_status(text: str | None) -> SessionStatus | None:
    """Decode the JSON piped on stdin. Empty or invalid input means no session."""
    if not text or not text.strip():
        return None
    try:
        return SessionStatus.model_validate(json.loads(text))
    except (json.JSONDecodeError, ValidationError) as exc:
        logger.debug("Ignoring unparseable session status: %s", exc)
        return None


async def render(
    settings: Settings,
    status: SessionStatus | None = None,
    now: datetime | None = None,
    aggregator: Aggregator | None = None,
    usage_cache: UsageLimitsCache | None = None,
    rng: random.Random | None = None,
    stats_reader: Callable[[bool, bool], SystemStats] = read_system_stats,
) -> str:
    """Build the statusline for one invocation."""
    now = now or datetime.now().astimezone()
    accounts = configured_accounts(settings)
    aggregator = aggregator or Aggregator(ProviderClientFactory())
    usage_cache = usage_cache or UsageLimitsCache(JsonFileCacheStore())

    wants_stats = settings.show_cpu_usage or settings.show_memory_usage

    events, tasks, usage, stats = await asyncio.gather(
        aggregator.list_upcoming(accounts, now, settings.lookahead_hours)
        if accounts else _resolved([]),
        aggregator.list_tasks(accounts, now, settings.max_tasks_to_show)
        if accounts and settings.show_zoho_tasks else _resolved([]),
        usage_cache.get(settings, now)
        if settings.show_usage_limits else _resolved(None),
        _system_stats(settings, stats_reader)
        if wants_stats else _resolved(None),
    )

    parts: list[str] = []

    if status is not None:
        info = format_session_info(status)
        if info:
            parts.append(info)

    if usage is not None:
        limits = format_usage_limits(usage, settings)
        if limits:
            parts.append(limits)

    if stats is not None:
        parts.extend(format_system_stats(stats))

    reminder = pick_reminder(settings, rng)
    if reminder:
        parts.append(reminder)

    if accounts:
        event = current_or_next(events, now)

        warning = meeting_warning(event, now)
        if warning:
            parts.append(warning)

        task_line = format_tasks(tasks)
        if task_line:
            parts.append(task_line)

        if event is not None:
            parts.append(format_event(event, settings, now))
        elif not parts:
            parts.append(NO_EVENTS)
    elif not parts:
        parts.append(NO_ACCOUNTS)

    return SEPARATOR.join(parts)


def render_statusline(stdin_text: str | None = None) -> str:
    """Top-level guard: any uncaught failure becomes the fallback line."""
    try:
        settings = load_settings()
        status = parse_session_status(stdin_text)
        return asyncio.run(render(settings, status))
    except Exception as exc:
        logger.error("Statusline render failed: %s", exc)
        return FALLBACK_LINE
