"""
Glancebar — Centralized configuration.

Loads the user's config.json (camelCase keys, defaults for anything missing)
and resolves every on-disk location the rest of the package reads or writes.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

logger = logging.getLogger(__name__)

# Load .env from project root (one level up from glancebar/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)

ZOHO_DATACENTERS: dict[str, dict[str, str]] = {
    "com": {
        "accounts": "https://accounts.zoho.com",
        "calendar": "https://calendar.zoho.com",
        "mail": "https://mail.zoho.com",
    },
    "eu": {
        "accounts": "https://accounts.zoho.eu",
        "calendar": "https://calendar.zoho.eu",
        "mail": "https://mail.zoho.eu",
    },
    "in": {
        "accounts": "https://accounts.zoho.in",
        "calendar": "https://calendar.zoho.in",
        "mail": "https://mail.zoho.in",
    },
    "com.au": {
        "accounts": "https://accounts.zoho.com.au",
        "calendar": "https://calendar.zoho.com.au",
        "mail": "https://mail.zoho.com.au",
    },
    "com.cn": {
        "accounts": "https://accounts.zoho.com.cn",
        "calendar": "https://calendar.zoho.com.cn",
        "mail": "https://mail.zoho.com.cn",
    },
    "jp": {
        "accounts": "https://accounts.zoho.jp",
        "calendar": "https://calendar.zoho.jp",
        "mail": "https://mail.zoho.jp",
    },
    "zohocloud.ca": {
        "accounts": "https://accounts.zohocloud.ca",
        "calendar": "https://calendar.zohocloud.ca",
        "mail": "https://mail.zohocloud.ca",
    },
}


class ConfigurationMissing(FileNotFoundError):
    """Raised when a provider's client credential file is absent."""


class InvalidConfiguration(ValueError):
    """Raised by a strict load when config.json cannot be read or validated."""


class ZohoAccountConfig(BaseModel):
    """One configured Zoho account."""

    email: str
    datacenter: str = "com"

    @field_validator("datacenter")
    @classmethod
    def known_datacenter(cls, v: str) -> str:
        if v not in ZOHO_DATACENTERS:
            raise ValueError(
                f"Invalid datacenter: {v}. "
                f"Valid options: {', '.join(ZOHO_DATACENTERS)}"
            )
        return v


class Settings(BaseModel):
    """User settings stored in config.json."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    # Accounts. `accounts` is the pre-Zoho key, kept for migration
    accounts: list[str] = Field(default_factory=list)
    gmail_accounts: list[str] = Field(default_factory=list, alias="gmailAccounts")
    zoho_accounts: list[ZohoAccountConfig] = Field(
        default_factory=list, alias="zohoAccounts"
    )

    # Calendar display
    lookahead_hours: float = Field(8, alias="lookaheadHours")
    show_calendar_name: bool = Field(True, alias="showCalendarName")
    countdown_threshold_minutes: int = Field(60, alias="countdownThresholdMinutes")
    max_title_length: int = Field(120, alias="maxTitleLength")

    # Reminders
    water_reminder_enabled: bool = Field(True, alias="waterReminderEnabled")
    stretch_reminder_enabled: bool = Field(True, alias="stretchReminderEnabled")
    eye_reminder_enabled: bool = Field(True, alias="eyeReminderEnabled")

    # Tasks
    show_zoho_tasks: bool = Field(True, alias="showZohoTasks")
    max_tasks_to_show: int = Field(3, alias="maxTasksToShow")

    # Usage limits
    show_usage_limits: bool = Field(True, alias="showUsageLimits")
    show_5_hour_limit: bool = Field(True, alias="show5HourLimit")
    show_7_day_limit: bool = Field(True, alias="show7DayLimit")
    usage_limits_cache_ttl: int = Field(120, alias="usageLimitsCacheTTL")  # seconds

    # Host stats
    show_cpu_usage: bool = Field(False, alias="showCpuUsage")
    show_memory_usage: bool = Field(False, alias="showMemoryUsage")

    @field_validator("lookahead_hours", "max_title_length", "max_tasks_to_show")
    @classmethod
    def positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be a positive number")
        return v

    @field_validator("countdown_threshold_minutes", "usage_limits_cache_ttl")
    @classmethod
    def non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("must not be negative")
        return v

    @model_validator(mode="after")
    def migrate_legacy_accounts(self) -> Settings:
        if self.accounts and not self.gmail_accounts:
            self.gmail_accounts = list(self.accounts)
        return self

    def has_accounts(self) -> bool:
        return bool(self.gmail_accounts or self.zoho_accounts)

    def to_json_dict(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------


def get_config_dir() -> Path:
    """Return the glancebar home directory ($GLANCEBAR_HOME or ~/.glancebar)."""
    override = os.getenv("GLANCEBAR_HOME", "")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".glancebar"


def get_config_path() -> Path:
    return get_config_dir() / "config.json"


def get_tokens_dir() -> Path:
    return get_config_dir() / "tokens"


def get_google_credentials_path() -> Path:
    return get_config_dir() / "credentials.json"


def get_zoho_credentials_path() -> Path:
    return get_config_dir() / "zoho_credentials.json"


def get_usage_cache_path() -> Path:
    return get_config_dir() / "usage_limits_cache.json"


def get_claude_credentials_path() -> Path:
    override = os.getenv("CLAUDE_CREDENTIALS_PATH", "")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".claude" / ".credentials.json"


# ---------------------------------------------------------------------------
# config.json
# ---------------------------------------------------------------------------


def load_settings(path: Path | None = None, strict: bool = False) -> Settings:
    """Load settings from config.json, falling back to defaults.

    A missing file is the normal first-run state. An unreadable or invalid
    file is logged and also yields defaults, so rendering never fails on it.
    With `strict=True` such a file raises InvalidConfiguration instead;
    callers that save settings back must use it, or the defaults would
    overwrite the user's accounts.
    """
    config_path = path or get_config_path()
    if not config_path.exists():
        return Settings()

    try:
        raw = json.loads(config_path.read_text(encoding="utf-8"))
        return Settings.model_validate(raw)
    except Exception as exc:
        if strict:
            raise InvalidConfiguration(
                f"{config_path} is invalid and was left unchanged. "
                f"Fix it or run 'glancebar config --reset' (accounts are kept).\n{exc}"
            ) from exc
        logger.warning("Ignoring unreadable config %s: %s", config_path, exc)
        return Settings()


def recover_accounts(path: Path | None = None) -> Settings:
    """Default settings carrying every account entry that still validates.

    Used to reset a config.json that fails validation as a whole. Invalid
    account entries are dropped and logged; a file that is not a JSON object
    yields plain defaults.
    """
    config_path = path or get_config_path()
    try:
        raw = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning("Nothing to recover from %s: %s", config_path, exc)
        return Settings()
    if not isinstance(raw, dict):
        return Settings()

    def emails(key: str) -> list[str]:
        values = raw.get(key)
        if not isinstance(values, list):
            return []
        return [v for v in values if isinstance(v, str)]

    zoho_accounts = []
    entries = raw.get("zohoAccounts")
    for entry in entries if isinstance(entries, list) else []:
        try:
            zoho_accounts.append(ZohoAccountConfig.model_validate(entry))
        except ValidationError as exc:
            logger.warning("Dropping invalid Zoho account %r: %s", entry, exc)

    return Settings(
        accounts=emails("accounts"),
        gmail_accounts=emails("gmailAccounts"),
        zoho_accounts=zoho_accounts,
    )


def save_settings(settings: Settings, path: Path | None = None) -> None:
    config_path = path or get_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(
        json.dumps(settings.to_json_dict(), indent=2), encoding="utf-8"
    )
    logger.debug("Config saved to %s", config_path)


# ---------------------------------------------------------------------------
# Client credential files
# ---------------------------------------------------------------------------


def load_google_client_config() -> dict:
    """Return the Google OAuth client block (`installed` or `web`)."""
    cred_path = get_google_credentials_path()
    if not cred_path.exists():
        raise ConfigurationMissing(
            f"credentials.json not found at {cred_path}\n\n"
            "Please download OAuth credentials from Google Cloud Console and save to:\n"
            f"{cred_path}\n\n"
            "Run 'glancebar setup' for detailed instructions."
        )
    data = json.loads(cred_path.read_text(encoding="utf-8"))
    block = data.get("installed") or data.get("web")
    if not block or "client_id" not in block or "client_secret" not in block:
        raise ValueError(f"{cred_path} has no 'installed' or 'web' client block")
    return block


def load_zoho_client_config() -> dict:
    """Return `{client_id, client_secret}` for the Zoho API console client."""
    cred_path = get_zoho_credentials_path()
    if not cred_path.exists():
        raise ConfigurationMissing(
            f"zoho_credentials.json not found at {cred_path}\n\n"
            "Please create OAuth credentials in Zoho API Console and save to:\n"
            f"{cred_path}\n\n"
            "Run 'glancebar setup' for detailed instructions."
        )
    data = json.loads(cred_path.read_text(encoding="utf-8"))
    if "client_id" not in data or "client_secret" not in data:
        raise ValueError(f"{cred_path} must contain client_id and client_secret")
    return data
