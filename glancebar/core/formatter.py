"""
Glancebar — Statusline formatting.

Turns events, tasks, usage limits, host stats and session details into
ANSI-colored segments. Every function takes `now` explicitly; nothing here
does I/O except `git_branch`, which shells out to git.
"""

from __future__ import annotations

import logging
import math
import random
import subprocess
from collections.abc import Callable, Sequence
from datetime import datetime
from pathlib import PurePath

from glancebar.config import Settings
from glancebar.data.models import (
    CalendarEvent,
    MemoryUsage,
    SessionStatus,
    SystemStats,
    Task,
    UsageSnapshot,
)

logger = logging.getLogger(__name__)

COLORS: dict[str, str] = {
    "reset": "\x1b[0m",
    "red": "\x1b[31m",
    "green": "\x1b[32m",
    "yellow": "\x1b[33m",
    "blue": "\x1b[34m",
    "magenta": "\x1b[35m",
    "cyan": "\x1b[36m",
    "white": "\x1b[37m",
    "brightRed": "\x1b[91m",
    "brightGreen": "\x1b[92m",
    "brightYellow": "\x1b[93m",
    "brightBlue": "\x1b[94m",
    "brightMagenta": "\x1b[95m",
    "brightCyan": "\x1b[96m",
    "orange": "\x1b[38;5;208m",
    "pink": "\x1b[38;5;213m",
    "purple": "\x1b[38;5;141m",
}

# Indexed by accountIndex modulo length
ACCOUNT_COLORS = [
    "cyan",
    "magenta",
    "brightGreen",
    "orange",
    "brightBlue",
    "pink",
    "yellow",
    "purple",
]

SEPARATOR = " | "
NO_EVENTS = "No upcoming events"
NO_ACCOUNTS = "No accounts configured"

MEETING_WARNING_MINUTES = 5
TASK_TITLE_LIMIT = 25
REMINDER_PROBABILITY = 0.05
_GIT_TIMEOUT_SECONDS = 2
_GIB = 1024 ** 3

WATER_REMINDERS = [
    "Stay hydrated! Drink some water",
    "Time for a water break!",
    "Hydration check! Grab some water",
    "Your body needs water. Drink up!",
    "Water break! Stay refreshed",
    "Don't forget to drink water!",
    "Hydrate yourself! Take a sip",
    "Quick reminder: Drink water!",
]

STRETCH_REMINDERS = [
    "Time to stretch! Stand up and move",
    "Stretch break! Roll your shoulders",
    "Stand up and stretch your legs",
    "Posture check! Sit up straight",
    "Take a quick stretch break",
    "Move your body! Quick stretch",
    "Stretch your neck and shoulders",
    "Stand up! Your body will thank you",
]

EYE_REMINDERS = [
    "Eye break! Look 20ft away for 20s",
    "Rest your eyes - look at something distant",
    "20-20-20: Look away from screen",
    "Give your eyes a break!",
    "Look away from the screen for a moment",
    "Eye rest time! Focus on something far",
]


def colorize(text: str, color: str) -> str:
    return f"{COLORS.get(color, COLORS['white'])}{text}{COLORS['reset']}"


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def _level_color(percent: float) -> str:
    """green below 50, yellow below 80, red from 80 up."""
    if percent >= 80:
        return "red"
    if percent >= 50:
        return "yellow"
    return "green"


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


def minutes_until(event: CalendarEvent, now: datetime) -> int:
    return _round_half_up((event.start - now).total_seconds() / 60)


def format_countdown(minutes: int) -> str:
    if minutes < 60:
        return f"In {minutes}m"
    hours, mins = divmod(minutes, 60)
    return f"In {hours}h" if mins == 0 else f"In {hours}h{mins}m"


def format_time(moment: datetime) -> str:
    """12-hour wall clock of `moment` in its own timezone, e.g. "2:05 PM"."""
    hour12 = moment.hour % 12 or 12
    suffix = "PM" if moment.hour >= 12 else "AM"
    return f"{hour12}:{moment.minute:02d} {suffix}"


def truncate_title(title: str, max_length: int) -> str:
    if len(title) <= max_length:
        return title
    return title[: max_length - 1] + "…"


def account_color(account_index: int) -> str:
    return ACCOUNT_COLORS[account_index % len(ACCOUNT_COLORS)]


def format_event(event: CalendarEvent, settings: Settings, now: datetime) -> str:
    minutes = minutes_until(event, now)
    if event.is_in_progress(now):
        when = "Now"
    elif 0 < minutes <= settings.countdown_threshold_minutes:
        when = format_countdown(minutes)
    else:
        when = format_time(event.start.astimezone())

    text = f"{when}: {truncate_title(event.title, settings.max_title_length)}"
    if settings.show_calendar_name:
        text += f" ({event.account})"
    return colorize(text, account_color(event.account_index))


def meeting_warning(event: CalendarEvent | None, now: datetime) -> str | None:
    if event is None:
        return None
    minutes = minutes_until(event, now)
    if 0 < minutes <= MEETING_WARNING_MINUTES:
        return colorize(f"Meeting in {minutes}m - wrap up!", "brightRed")
    return None


# ---------------------------------------------------------------------------
# Tasks, usage limits and host stats
# ---------------------------------------------------------------------------


def _task_color(task: Task) -> str:
    if task.is_overdue:
        return "red"
    if task.priority == "High":
        return "yellow"
    return "white"


def format_tasks(tasks: Sequence[Task]) -> str | None:
    if not tasks:
        return None
    titles = []
    for task in tasks:
        title = task.title
        if len(title) > TASK_TITLE_LIMIT:
            title = title[: TASK_TITLE_LIMIT - 1] + "…"
        titles.append(colorize(title, _task_color(task)))
    return f"{colorize('Tasks:', 'cyan')} {', '.join(titles)}"


def format_usage_limits(usage: UsageSnapshot, settings: Settings) -> str | None:
    parts = []
    if settings.show_5_hour_limit:
        pct = usage.five_hour.utilization
        parts.append(colorize(f"5h: {_round_half_up(pct)}%", _level_color(pct)))
    if settings.show_7_day_limit:
        pct = usage.seven_day.utilization
        parts.append(colorize(f"7d: {_round_half_up(pct)}%", _level_color(pct)))
    return SEPARATOR.join(parts) if parts else None


def format_cpu(percent: float) -> str:
    usage = _round_half_up(percent)
    return colorize(f"CPU {usage}%", _level_color(usage))


def format_memory(memory: MemoryUsage) -> str:
    used_gb = memory.used / _GIB
    total_gb = memory.total / _GIB
    return colorize(
        f"Mem {used_gb:.1f}/{total_gb:.1f}GB", _level_color(_round_half_up(memory.percent))
    )


def format_system_stats(stats: SystemStats) -> list[str]:
    parts = []
    if stats.cpu_percent is not None:
        parts.append(format_cpu(stats.cpu_percent))
    if stats.memory is not None and stats.memory.total > 0:
        parts.append(format_memory(stats.memory))
    return parts


# ---------------------------------------------------------------------------
# Health reminders
# ---------------------------------------------------------------------------


def pick_reminder(settings: Settings, rng: random.Random | None = None) -> str | None:
    """With ~5% probability, one random reminder from the enabled families."""
    rng = rng or random.Random()
    families = []
    if settings.water_reminder_enabled:
        families.append((WATER_REMINDERS, "brightCyan"))
    if settings.stretch_reminder_enabled:
        families.append((STRETCH_REMINDERS, "brightGreen"))
    if settings.eye_reminder_enabled:
        families.append((EYE_REMINDERS, "brightMagenta"))

    if not families or rng.random() >= REMINDER_PROBABILITY:
        return None
    messages, color = rng.choice(families)
    return colorize(rng.choice(messages), color)


# ---------------------------------------------------------------------------
# Session info
# ---------------------------------------------------------------------------


def project_name(project_dir: str | None) -> str | None:
    if not project_dir:
        return None
    return PurePath(project_dir.replace("\\", "/")).name or None


def _git(args: list[str], cwd: str | None) -> str | None:
    try:
        result = subprocess.run(
            ["git", *args],
            cwd=cwd or None,
            capture_output=True,
            text=True,
            timeout=_GIT_TIMEOUT_SECONDS,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        logger.debug("git %s failed: %s", args[0], exc)
        return None
    if result.returncode != 0:
        return None
    return result.stdout.strip()


def git_branch(cwd: str | None) -> str | None:
    """Current branch name, with a trailing "*" when the work tree is dirty."""
    branch = _git(["rev-parse", "--abbrev-ref", "HEAD"], cwd)
    if not branch:
        return None
    dirty = _git(["status", "--porcelain"], cwd)
    return f"{branch}*" if dirty else branch


def format_session_info(
    status: SessionStatus,
    branch_reader: Callable[[str | None], str | None] = git_branch,
) -> str:
    parts = []
    project_dir = status.workspace.project_dir if status.workspace else None

    name = project_name(project_dir)
    if name:
        parts.append(colorize(name, "brightBlue"))

    branch = branch_reader(status.cwd or project_dir)
    if branch:
        parts.append(colorize(branch, "magenta"))

    if status.model and status.model.display_name:
        parts.append(colorize(status.model.display_name, "brightYellow"))

    cost = status.cost
    if cost and cost.total_cost_usd is not None:
        amount = cost.total_cost_usd
        text = f"${amount:.4f}" if amount < 0.01 else f"${amount:.2f}"
        parts.append(colorize(text, "green"))

    added = (cost.total_lines_added if cost else None) or 0
    removed = (cost.total_lines_removed if cost else None) or 0
    if added > 0 or removed > 0:
        parts.append(f"{colorize(f'+{added}', 'green')} {colorize(f'-{removed}', 'red')}")

    window = status.context_window
    if window and window.current_usage and window.context_window_size:
        used = window.current_usage.total
        size = window.context_window_size
        pct = _round_half_up(used / size * 100)
        text = f"{used / 1000:.1f}k/{_round_half_up(size / 1000)}k ({pct}%)"
        parts.append(colorize(text, _level_color(pct)))

    return SEPARATOR.join(parts)
