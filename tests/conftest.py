"""Shared test fixtures and configuration.

Every test gets its own GLANCEBAR_HOME and Claude credentials path under
tmp_path, so nothing reads or writes the real ~/.glancebar.
"""

from datetime import datetime, timedelta, timezone

import pytest

from glancebar.data.models import GOOGLE, ZOHO, Account, CalendarEvent, Task

UTC = timezone.utc


@pytest.fixture(autouse=True)
def glancebar_home(tmp_path, monkeypatch):
    """Point all config paths at a temp directory."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("GLANCEBAR_HOME", str(home))
    monkeypatch.setenv("CLAUDE_CREDENTIALS_PATH", str(tmp_path / "claude_credentials.json"))
    return home


@pytest.fixture
def token_store(tmp_path):
    """Return a TokenStore backed by a temp directory."""
    from glancebar.data.token_store import TokenStore
    return TokenStore(tmp_path / "tokens")


@pytest.fixture
def google_account():
    return Account(provider=GOOGLE, email="alice@gmail.com")


@pytest.fixture
def zoho_account():
    return Account(provider=ZOHO, email="bob@acme.com", datacenter="com")


def make_event(
    title="Event",
    start=datetime(2026, 1, 9, 10, 0, tzinfo=UTC),
    minutes=30,
    account_index=0,
    account="alice",
    is_all_day=False,
    provider=GOOGLE,
):
    """Build a CalendarEvent starting at `start` and lasting `minutes`."""
    return CalendarEvent(
        id=f"{title}-{account_index}",
        title=title,
        start=start,
        end=start + timedelta(minutes=minutes),
        is_all_day=is_all_day,
        provider=provider,
        account=account,
        account_email=f"{account}@example.com",
        account_index=account_index,
    )


def make_task(title="Task", due=None, priority="Normal", overdue=False, status="Open"):
    return Task(
        id=title,
        title=title,
        description="",
        due_date=due,
        priority=priority,
        status=status,
        is_overdue=overdue,
    )
