"""Zoho adapter — implements ProviderClient for Zoho Calendar and Zoho Mail tasks.

Zoho encodes timestamps compactly ("20260109T163000+0530", "20260109T163000Z",
"20260109T163000", or "20260109" for all-day). Everything is converted to an
aware datetime here so cross-provider sorting compares real instants.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from datetime import datetime, timedelta, timezone
from urllib.parse import quote

import httpx

from glancebar.data.models import ZOHO, Account, CalendarEvent, Task
from glancebar.data.token_store import TokenStore
from glancebar.integrations.zoho_auth import datacenter_urls, ensure_valid
from glancebar.ports.provider_port import ProviderError

logger = logging.getLogger(__name__)

_TIMEOUT_SECONDS = 10
TASK_LIMIT = 10

_ZOHO_DATETIME = re.compile(
    r"^(\d{4})(\d{2})(\d{2})T(\d{2})(\d{2})(\d{2})(Z|([+-])(\d{2})(\d{2}))?$"
)
_ZOHO_DATE = re.compile(r"^(\d{4})(\d{2})(\d{2})")


def parse_zoho_datetime(value: str) -> datetime:
    """Decode a Zoho timed value into an aware datetime.

    "Z" means UTC, "+HHMM"/"-HHMM" is a fixed offset from UTC, and a value
    with no zone marker is local wall time.
    """
    match = _ZOHO_DATETIME.match(value)
    if match is None:
        parsed = datetime.fromisoformat(value)
        return parsed if parsed.tzinfo else parsed.astimezone()

    year, month, day, hour, minute, second, zone, sign, tz_hour, tz_min = match.groups()
    wall = datetime(int(year), int(month), int(day), int(hour), int(minute), int(second))
    if zone == "Z":
        return wall.replace(tzinfo=timezone.utc)
    if sign:
        offset = timedelta(hours=int(tz_hour), minutes=int(tz_min))
        if sign == "-":
            offset = -offset
        return wall.replace(tzinfo=timezone(offset))
    return wall.astimezone()


def parse_zoho_all_day(value: str) -> datetime:
    """Local midnight of the date a Zoho all-day value starts with."""
    match = _ZOHO_DATE.match(value)
    if match is None:
        raise ValueError(f"Unrecognized Zoho date: {value!r}")
    year, month, day = (int(part) for part in match.groups())
    return datetime(year, month, day).astimezone()


def parse_due_date(value: str | None) -> datetime | None:
    """Parse a Zoho task due date in DD/MM/YYYY order (local midnight).

    The field order is taken as day/month/year unconditionally; a
    month-first string will parse as a different date or not at all.
    """
    if not value:
        return None
    parts = value.split("/")
    if len(parts) != 3:
        return None
    try:
        day, month, year = (int(part) for part in parts)
        return datetime(year, month, day).astimezone()
    except ValueError:
        logger.debug("Unparseable Zoho due date %r", value)
        return None


def _range_stamp(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def _is_all_day(raw: dict) -> bool:
    flag = raw.get("isallday")
    return flag is True or flag == "true"


def parse_zoho_event(raw: dict, account: Account, account_index: int) -> CalendarEvent:
    """Normalize a Zoho Calendar event into a CalendarEvent."""
    times = raw.get("dateandtime") or raw
    is_all_day = _is_all_day(raw)
    parse = parse_zoho_all_day if is_all_day else parse_zoho_datetime
    return CalendarEvent(
        id=raw.get("uid", ""),
        title=raw.get("title") or "(No title)",
        start=parse(times["start"]),
        end=parse(times["end"]),
        is_all_day=is_all_day,
        provider=ZOHO,
        account=account.label,
        account_email=account.email,
        account_index=account_index,
    )


def parse_zoho_task(raw: dict, account: Account, now: datetime) -> Task | None:
    """Normalize a Zoho Mail task. Completed tasks map to None."""
    status = raw.get("status") or "Open"
    if str(status).lower() == "completed":
        return None
    due_date = parse_due_date(raw.get("dueDate"))
    return Task(
        id=str(raw.get("id", "")),
        title=raw.get("title") or "(No title)",
        description=raw.get("description") or "",
        due_date=due_date,
        priority=raw.get("priority") or "Normal",
        status=status,
        is_overdue=due_date is not None and due_date < now,
        account_email=account.email,
    )


class ZohoCalendarAdapter:
    """Zoho implementation of ProviderClient."""

    supports_tasks = True

    def __init__(self, account: Account, store: TokenStore) -> None:
        self.account = account
        self._store = store
        self._token: dict | None = None
        self._checked = False
        self._lock = asyncio.Lock()

    async def authorize(self) -> bool:
        # Events and tasks authorize concurrently; only one refresh may run
        async with self._lock:
            if not self._checked:
                self._token = await ensure_valid(self.account, self._store)
                self._checked = True
        return self._token is not None

    async def _client(self) -> httpx.AsyncClient:
        if not await self.authorize():
            raise ProviderError(f"{self.account.email} is not authorized")
        return httpx.AsyncClient(
            timeout=_TIMEOUT_SECONDS,
            headers={
                "Authorization": f"Zoho-oauthtoken {self._token['access_token']}",
                "Accept": "application/json",
            },
        )

    async def fetch_events(
        self, window_start: datetime, window_end: datetime, account_index: int
    ) -> list[CalendarEvent]:
        base = datacenter_urls(self.account)["calendar"]
        try:
            async with await self._client() as client:
                resp = await client.get(f"{base}/api/v1/calendars", params={"category": "own"})
                resp.raise_for_status()
                calendars = resp.json().get("calendars") or []
                if not calendars:
                    logger.info("[%s] No Zoho calendars found", self.account.email)
                    return []

                primary = next((c for c in calendars if c.get("isdefault")), calendars[0])
                date_range = json.dumps(
                    {"start": _range_stamp(window_start), "end": _range_stamp(window_end)},
                    separators=(",", ":"),
                )
                resp = await client.get(
                    f"{base}/api/v1/calendars/{quote(primary['uid'], safe='')}/events",
                    params={"range": date_range},
                )
                resp.raise_for_status()
                raw_events = resp.json().get("events") or []

            events = [parse_zoho_event(raw, self.account, account_index) for raw in raw_events]
        except ProviderError:
            raise
        except Exception as exc:
            logger.error("[%s] Zoho Calendar API error: %s", self.account.email, exc)
            raise ProviderError(f"Failed to list events: {exc}") from exc

        logger.debug("[%s] %d Zoho event(s)", self.account.email, len(events))
        return events

    async def fetch_tasks(self, now: datetime) -> list[Task]:
        base = datacenter_urls(self.account)["mail"]
        try:
            async with await self._client() as client:
                resp = await client.get(
                    f"{base}/api/tasks/",
                    params={
                        "view": "assignedtome",
                        "action": "view",
                        "limit": TASK_LIMIT,
                        "from": 0,
                    },
                )
                resp.raise_for_status()
                raw_tasks = (resp.json().get("data") or {}).get("tasks") or []

            tasks = [parse_zoho_task(raw, self.account, now) for raw in raw_tasks]
        except ProviderError:
            raise
        except Exception as exc:
            logger.error("[%s] Zoho Tasks API error: %s", self.account.email, exc)
            raise ProviderError(f"Failed to list tasks: {exc}") from exc

        return [task for task in tasks if task is not None]
