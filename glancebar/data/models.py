"""
Glancebar — Data Models.

Everything here is rebuilt from scratch on each render, except CacheEntry,
which round-trips through usage_limits_cache.json.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

GOOGLE = "google"
ZOHO = "zoho"

PRIORITY_RANK = {"High": 0, "Normal": 1, "Low": 2}


def extract_account_name(email: str) -> str:
    """Short label for an account: the gmail username, else the domain's first label."""
    local, sep, domain = email.partition("@")
    if not sep:
        return email
    if domain == "gmail.com":
        return local
    return domain.split(".")[0]


@dataclass(frozen=True)
class Account:
    """A configured calendar account. Identity is (provider, email)."""

    provider: str
    email: str
    datacenter: str | None = None  # Zoho only

    @property
    def key(self) -> tuple[str, str]:
        return (self.provider, self.email)

    @property
    def label(self) -> str:
        return extract_account_name(self.email)


@dataclass(frozen=True)
class CalendarEvent:
    """A calendar event normalized to absolute (timezone-aware) instants."""

    id: str
    title: str
    start: datetime
    end: datetime
    is_all_day: bool
    provider: str
    account: str           # short label, e.g. "work"
    account_email: str
    account_index: int     # position in the Google-then-Zoho account list

    def is_in_progress(self, now: datetime) -> bool:
        return self.start <= now < self.end


@dataclass(frozen=True)
class Task:
    """An open task assigned to the account owner."""

    id: str
    title: str
    description: str
    due_date: datetime | None
    priority: str          # "High" | "Normal" | "Low"
    status: str
    is_overdue: bool
    account_email: str = ""

    @property
    def priority_rank(self) -> int:
        return PRIORITY_RANK.get(self.priority, PRIORITY_RANK["Normal"])


# ---------------------------------------------------------------------------
# Usage limits: shared JSON contract with the quota endpoint and the cache file
# ---------------------------------------------------------------------------


class UsageWindow(BaseModel):
    """Utilization of one rate-limit window.

    JSON example:
    {"utilization": 42.0, "resets_at": "2026-01-09T18:00:00Z"}
    """

    utilization: float = 0
    resets_at: str = ""

    @field_validator("utilization", mode="before")
    @classmethod
    def null_utilization(cls, v: object) -> object:
        return 0 if v is None else v

    @field_validator("resets_at", mode="before")
    @classmethod
    def null_resets_at(cls, v: object) -> object:
        return "" if v is None else v


class UsageSnapshot(BaseModel):
    """Five-hour and seven-day quota utilization."""

    five_hour: UsageWindow
    seven_day: UsageWindow


class CacheEntry(BaseModel):
    """The single persisted usage snapshot.

    JSON example (times in epoch milliseconds):
    {"data": {...}, "fetchedAt": 1767978000000, "ttl": 120000}
    """

    model_config = ConfigDict(populate_by_name=True)

    data: UsageSnapshot | None = None
    fetched_at: int = Field(0, alias="fetchedAt")
    ttl: int = 120_000


# ---------------------------------------------------------------------------
# Host stats
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MemoryUsage:
    used: int  # bytes, total minus available
    total: int  # bytes

    @property
    def percent(self) -> float:
        return self.used / self.total * 100 if self.total else 0.0


@dataclass(frozen=True)
class SystemStats:
    """One reading per enabled counter; None when off or unreadable."""

    cpu_percent: float | None = None
    memory: MemoryUsage | None = None


# ---------------------------------------------------------------------------
# Session status: the JSON object the host editor pipes to the statusline
# ---------------------------------------------------------------------------


class ModelInfo(BaseModel):
    display_name: str | None = None


class CostInfo(BaseModel):
    total_cost_usd: float | None = None
    total_lines_added: int | None = None
    total_lines_removed: int | None = None


class Workspace(BaseModel):
    project_dir: str | None = None


class ContextUsage(BaseModel):
    input_tokens: int | None = None
    output_tokens: int | None = None
    cache_creation_input_tokens: int | None = None
    cache_read_input_tokens: int | None = None

    @property
    def total(self) -> int:
        return (
            (self.input_tokens or 0)
            + (self.output_tokens or 0)
            + (self.cache_creation_input_tokens or 0)
            + (self.cache_read_input_tokens or 0)
        )


class ContextWindow(BaseModel):
    context_window_size: int | None = None
    current_usage: ContextUsage | None = None


class SessionStatus(BaseModel):
    """Session details read from stdin. Every field is optional.

    JSON example:
    {"model": {"display_name": "Opus"}, "cwd": "/src/app",
     "workspace": {"project_dir": "/src/app"},
     "cost": {"total_cost_usd": 0.42, "total_lines_added": 10, "total_lines_removed": 2},
     "context_window": {"context_window_size": 200000,
                        "current_usage": {"input_tokens": 1200, "output_tokens": 300}}}
    """

    model: ModelInfo | None = None
    cost: CostInfo | None = None
    cwd: str | None = None
    workspace: Workspace | None = None
    context_window: ContextWindow | None = None
