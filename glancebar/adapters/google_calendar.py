"""Google Calendar adapter — implements ProviderClient for Google Calendar API.

All Google-specific logic lives here. The aggregator never imports this
directly; it depends on the ProviderClient protocol.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, time

from googleapiclient.discovery import build

from glancebar.data.models import GOOGLE, Account, CalendarEvent, Task
from glancebar.integrations.google_auth import GoogleAuthProvider
from glancebar.ports.provider_port import ProviderError

logger = logging.getLogger(__name__)

MAX_RESULTS = 10


def _parse_google_time(value: dict) -> tuple[datetime, bool]:
    """Decode a Google `start`/`end` object into (instant, is_all_day)."""
    if value.get("dateTime"):
        raw = value["dateTime"]
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        parsed = datetime.fromisoformat(raw)
        if parsed.tzinfo is None:
            # No offset given: local wall time
            parsed = parsed.astimezone()
        return parsed, False
    if value.get("date"):
        day = date.fromisoformat(value["date"])
        return datetime.combine(day, time()).astimezone(), True
    raise ValueError(f"Event time has neither dateTime nor date: {value!r}")


def parse_google_event(item: dict, account: Account, account_index: int) -> CalendarEvent:
    """Normalize a Google API event resource into a CalendarEvent."""
    start, is_all_day = _parse_google_time(item.get("start") or {})
    end, _ = _parse_google_time(item.get("end") or {})
    return CalendarEvent(
        id=item.get("id", ""),
        title=item.get("summary") or "(No title)",
        start=start,
        end=end,
        is_all_day=is_all_day,
        provider=GOOGLE,
        account=account.label,
        account_email=account.email,
        account_index=account_index,
    )


class GoogleCalendarAdapter:
    """Google Calendar implementation of ProviderClient."""

    supports_tasks = False

    def __init__(self, account: Account, auth: GoogleAuthProvider) -> None:
        self.account = account
        self._auth = auth
        self._creds = None

    async def authorize(self) -> bool:
        if self._creds is None:
            self._creds = self._auth.get_credentials(self.account)
        return self._creds is not None

    def _list_events(self, window_start: datetime, window_end: datetime) -> dict:
        service = build("calendar", "v3", credentials=self._creds, cache_discovery=False)
        return (
            service.events()
            .list(
                calendarId="primary",
                timeMin=window_start.isoformat(),
                timeMax=window_end.isoformat(),
                maxResults=MAX_RESULTS,
                singleEvents=True,
                orderBy="startTime",
            )
            .execute()
        )

    async def fetch_events(
        self, window_start: datetime, window_end: datetime, account_index: int
    ) -> list[CalendarEvent]:
        if self._creds is None and not await self.authorize():
            raise ProviderError(f"{self.account.email} is not authorized")

        creds = self._creds
        previous_token = creds.token
        previous_refresh = creds.refresh_token
        try:
            result = await asyncio.to_thread(self._list_events, window_start, window_end)
        except Exception as exc:
            logger.error("[%s] Google Calendar API error: %s", self.account.email, exc)
            raise ProviderError(f"Failed to list events: {exc}") from exc
        finally:
            # A refresh may have happened even if the list call then failed
            try:
                self._auth.persist_rotation(
                    self.account, creds, previous_token, previous_refresh
                )
            except OSError as exc:
                logger.warning("[%s] Could not persist rotated token: %s", self.account.email, exc)

        try:
            events = [
                parse_google_event(item, self.account, account_index)
                for item in result.get("items", [])
            ]
        except (ValueError, TypeError, AttributeError) as exc:
            raise ProviderError(f"Malformed Google event: {exc}") from exc

        logger.debug("[%s] %d Google event(s)", self.account.email, len(events))
        return events

    async def fetch_tasks(self, now: datetime) -> list[Task]:
        return []
