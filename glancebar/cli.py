"""
Glancebar — Command-line interface.

`glancebar` with no command prints the statusline (session JSON may be piped
on stdin). `auth`, `config` and `setup` manage accounts and settings.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from collections.abc import Callable

from glancebar.config import (
    ZOHO_DATACENTERS,
    ConfigurationMissing,
    InvalidConfiguration,
    Settings,
    ZohoAccountConfig,
    get_config_dir,
    get_google_credentials_path,
    get_zoho_credentials_path,
    load_settings,
    recover_accounts,
    save_settings,
)
from glancebar.data.models import GOOGLE, ZOHO, Account
from glancebar.data.token_store import TokenStore

logger = logging.getLogger(__name__)

VERSION = "1.0.0"

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

DATACENTER_LABELS = {
    "com": "United States",
    "eu": "Europe",
    "in": "India",
    "com.au": "Australia",
    "com.cn": "China",
    "jp": "Japan",
    "zohocloud.ca": "Canada",
}

Prompt = Callable[[str], str]


class CliError(Exception):
    """A user-facing command failure; printed as "Error: ..." with exit code 1."""


def configure_logging() -> None:
    """Log to stderr so stdout carries only the statusline."""
    level_name = os.getenv("GLANCEBAR_LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.WARNING),
        format=LOG_FORMAT,
        stream=sys.stderr,
    )


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def _bool_arg(value: str) -> bool:
    lowered = value.lower()
    if lowered not in ("true", "false"):
        raise argparse.ArgumentTypeError("must be 'true' or 'false'")
    return lowered == "true"


def _int_in_range(low: int, high: int) -> Callable[[str], int]:
    def parse(value: str) -> int:
        try:
            number = int(value)
        except ValueError:
            raise argparse.ArgumentTypeError(f"must be between {low} and {high}") from None
        if not low <= number <= high:
            raise argparse.ArgumentTypeError(f"must be between {low} and {high}")
        return number

    return parse


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="glancebar",
        description="A customizable statusline: calendar events, tasks, and more at a glance.",
        epilog=f"Config location: {get_config_dir()}",
    )
    parser.add_argument("--version", "-v", action="version", version=f"glancebar v{VERSION}")
    subparsers = parser.add_subparsers(dest="command")

    auth = subparsers.add_parser("auth", help="Authenticate or manage calendar accounts")
    action = auth.add_mutually_exclusive_group()
    action.add_argument("--add", metavar="EMAIL", help="Add and authenticate an account")
    action.add_argument("--remove", metavar="EMAIL", help="Remove an account")
    action.add_argument("--list", action="store_true", help="List configured accounts")
    auth.add_argument("--provider", choices=[GOOGLE, ZOHO], help="Skip the provider prompt")
    auth.add_argument(
        "--datacenter", choices=list(ZOHO_DATACENTERS), help="Zoho datacenter (skips the prompt)"
    )

    config = subparsers.add_parser("config", help="Show or change settings")
    config.add_argument("--lookahead", type=_int_in_range(1, 168), metavar="HOURS")
    config.add_argument("--countdown-threshold", type=_int_in_range(0, 1440), metavar="MINS")
    config.add_argument("--max-title", type=_int_in_range(10, 500), metavar="LENGTH")
    config.add_argument("--show-calendar", type=_bool_arg, metavar="true|false")
    config.add_argument("--water-reminder", type=_bool_arg, metavar="true|false")
    config.add_argument("--stretch-reminder", type=_bool_arg, metavar="true|false")
    config.add_argument("--eye-reminder", type=_bool_arg, metavar="true|false")
    config.add_argument("--zoho-tasks", type=_bool_arg, metavar="true|false")
    config.add_argument("--max-tasks", type=_int_in_range(1, 10), metavar="N")
    config.add_argument("--show-usage-limits", type=_bool_arg, metavar="true|false")
    config.add_argument("--show-5hour-limit", type=_bool_arg, metavar="true|false")
    config.add_argument("--show-7day-limit", type=_bool_arg, metavar="true|false")
    config.add_argument("--usage-cache-ttl", type=_int_in_range(60, 3600), metavar="SECONDS")
    config.add_argument("--cpu-usage", type=_bool_arg, metavar="true|false")
    config.add_argument("--memory-usage", type=_bool_arg, metavar="true|false")
    config.add_argument("--reset", action="store_true", help="Reset settings, keeping accounts")

    subparsers.add_parser("setup", help="Show setup instructions")
    return parser


# ---------------------------------------------------------------------------
# auth
# ---------------------------------------------------------------------------


def _authorize(account: Account, store: TokenStore) -> None:
    if account.provider == ZOHO:
        from glancebar.integrations.zoho_auth import authorize_zoho_account

        authorize_zoho_account(account, store)
    else:
        from glancebar.integrations.google_auth import authorize_google_account

        authorize_google_account(account, store)
    print(f"Token saved for {account.email}")


def _choose_provider(prompt: Prompt) -> str:
    print("\nSelect calendar provider:")
    print("  1. Google Calendar")
    print("  2. Zoho Calendar")
    choice = prompt("\nEnter choice (1 or 2): ").strip()
    if choice == "1":
        return GOOGLE
    if choice == "2":
        return ZOHO
    raise CliError("Invalid choice. Please enter 1 or 2.")


def _choose_datacenter(prompt: Prompt) -> str:
    print("\nSelect Zoho datacenter:")
    codes = list(ZOHO_DATACENTERS)
    for number, code in enumerate(codes, start=1):
        print(f"  {number}. {code:<8} - {DATACENTER_LABELS.get(code, code)}")
    choice = prompt(f"\nEnter choice (1-{len(codes)}): ").strip()
    if not choice.isdigit() or not 1 <= int(choice) <= len(codes):
        raise CliError("Invalid datacenter choice")
    return codes[int(choice) - 1]


def list_accounts(settings: Settings, store: TokenStore) -> None:
    if not settings.has_accounts():
        print("No accounts configured.")
        return

    if settings.gmail_accounts:
        print("\nGoogle Calendar accounts:")
        for number, email in enumerate(settings.gmail_accounts, start=1):
            authed = store.exists(Account(GOOGLE, email))
            print(f"  {number}. {email} ({'authenticated' if authed else 'not authenticated'})")

    if settings.zoho_accounts:
        print("\nZoho Calendar accounts:")
        for number, zoho in enumerate(settings.zoho_accounts, start=1):
            authed = store.exists(Account(ZOHO, zoho.email, zoho.datacenter))
            status = "authenticated" if authed else "not authenticated"
            print(f"  {number}. {zoho.email} [{zoho.datacenter}] ({status})")


def add_account(
    email: str,
    store: TokenStore,
    prompt: Prompt = input,
    provider: str | None = None,
    datacenter: str | None = None,
) -> Account:
    if "@" not in email:
        raise CliError("Invalid email address")

    provider = provider or _choose_provider(prompt)
    settings = load_settings(strict=True)

    if provider == GOOGLE:
        if email in settings.gmail_accounts:
            print(f"\nGoogle account {email} already exists. Re-authenticating...")
        else:
            settings.gmail_accounts.append(email)
            save_settings(settings)
            print(f"\nAdded {email} to Google accounts.")
        account = Account(GOOGLE, email)
    else:
        datacenter = datacenter or _choose_datacenter(prompt)
        existing = next((z for z in settings.zoho_accounts if z.email == email), None)
        if existing is not None:
            print(f"\nZoho account {email} already exists. Re-authenticating...")
            existing.datacenter = datacenter
        else:
            settings.zoho_accounts.append(ZohoAccountConfig(email=email, datacenter=datacenter))
            print(f"\nAdded {email} to Zoho accounts.")
        save_settings(settings)
        account = Account(ZOHO, email, datacenter)

    _authorize(account, store)
    print("\nDone!")
    return account


def remove_account(email: str, store: TokenStore) -> Account:
    settings = load_settings(strict=True)

    if email in settings.gmail_accounts:
        settings.gmail_accounts.remove(email)
        if email in settings.accounts:
            settings.accounts.remove(email)
        save_settings(settings)
        account = Account(GOOGLE, email)
        store.delete(account)
        print(f"Removed Google account {email}.")
        return account

    for zoho in settings.zoho_accounts:
        if zoho.email == email:
            settings.zoho_accounts.remove(zoho)
            save_settings(settings)
            account = Account(ZOHO, email, zoho.datacenter)
            store.delete(account)
            print(f"Removed Zoho account {email}.")
            return account

    raise CliError(f"Account {email} not found.")


def authorize_all(store: TokenStore, prompt: Prompt = input) -> None:
    from glancebar.adapters.provider_factory import configured_accounts

    accounts = configured_accounts(load_settings(strict=True))
    if not accounts:
        print("No accounts configured.\n")
        print("Add an account using:")
        print("  glancebar auth --add your-email@gmail.com\n")
        return

    print("Glancebar - Calendar Authentication")
    print("====================================\n")
    for account in accounts:
        if store.exists(account):
            where = f" [{account.datacenter}]" if account.datacenter else ""
            print(f"{account.provider.title()}: {account.email}{where} - Already authenticated")
            if prompt("Re-authenticate? (y/N): ").strip().lower() != "y":
                continue
        _authorize(account, store)
    print("\nAll accounts authenticated!")


def cmd_auth(args: argparse.Namespace, prompt: Prompt = input) -> None:
    store = TokenStore()
    if args.list:
        list_accounts(load_settings(strict=True), store)
    elif args.add:
        add_account(args.add, store, prompt, args.provider, args.datacenter)
    elif args.remove:
        remove_account(args.remove, store)
    else:
        authorize_all(store, prompt)


# ---------------------------------------------------------------------------
# config
# ---------------------------------------------------------------------------

# argparse dest -> (Settings field, description)
_CONFIG_OPTIONS = {
    "lookahead": ("lookahead_hours", "Lookahead hours"),
    "countdown_threshold": ("countdown_threshold_minutes", "Countdown threshold (minutes)"),
    "max_title": ("max_title_length", "Max title length"),
    "show_calendar": ("show_calendar_name", "Show calendar name"),
    "water_reminder": ("water_reminder_enabled", "Water reminder"),
    "stretch_reminder": ("stretch_reminder_enabled", "Stretch reminder"),
    "eye_reminder": ("eye_reminder_enabled", "Eye break reminder"),
    "zoho_tasks": ("show_zoho_tasks", "Zoho tasks display"),
    "max_tasks": ("max_tasks_to_show", "Max tasks to show"),
    "show_usage_limits": ("show_usage_limits", "Usage limits display"),
    "show_5hour_limit": ("show_5_hour_limit", "5-hour limit display"),
    "show_7day_limit": ("show_7_day_limit", "7-day limit display"),
    "usage_cache_ttl": ("usage_limits_cache_ttl", "API cache TTL (seconds)"),
    "cpu_usage": ("show_cpu_usage", "CPU usage display"),
    "memory_usage": ("show_memory_usage", "Memory usage display"),
}


def _describe(value: object) -> str:
    if isinstance(value, bool):
        return "enabled" if value else "disabled"
    return str(value)


def show_config(settings: Settings) -> None:
    google = ", ".join(settings.gmail_accounts) or "(none)"
    zoho = ", ".join(f"{z.email} [{z.datacenter}]" for z in settings.zoho_accounts) or "(none)"
    print(
        f"""
Glancebar Configuration
=======================
Config directory:    {get_config_dir()}

Accounts:
  Google Calendar:   {google}
  Zoho Calendar:     {zoho}

Calendar Settings:
  Lookahead hours:     {settings.lookahead_hours:g}
  Countdown threshold: {settings.countdown_threshold_minutes} minutes
  Max title length:    {settings.max_title_length}
  Show calendar name:  {str(settings.show_calendar_name).lower()}

Reminders:
  Water reminder:      {_describe(settings.water_reminder_enabled)}
  Stretch reminder:    {_describe(settings.stretch_reminder_enabled)}
  Eye break reminder:  {_describe(settings.eye_reminder_enabled)}

Zoho Tasks:
  Show tasks:          {_describe(settings.show_zoho_tasks)}
  Max tasks to show:   {settings.max_tasks_to_show}

Usage Limits:
  Show usage limits:   {_describe(settings.show_usage_limits)}
  Show 5-hour limit:   {_describe(settings.show_5_hour_limit)}
  Show 7-day limit:    {_describe(settings.show_7_day_limit)}
  Cache TTL:           {settings.usage_limits_cache_ttl} seconds

System Stats:
  CPU usage:           {_describe(settings.show_cpu_usage)}
  Memory usage:        {_describe(settings.show_memory_usage)}
"""
    )


def cmd_config(args: argparse.Namespace) -> None:
    if args.reset:
        try:
            settings = load_settings(strict=True)
        except InvalidConfiguration as exc:
            logger.warning("Resetting an invalid config: %s", exc)
            settings = recover_accounts()
        fresh = Settings(
            accounts=settings.accounts,
            gmail_accounts=settings.gmail_accounts,
            zoho_accounts=settings.zoho_accounts,
        )
        save_settings(fresh)
        print("Configuration reset to defaults (accounts preserved).")
        return

    settings = load_settings(strict=True)
    changes = {
        field: (label, getattr(args, dest))
        for dest, (field, label) in _CONFIG_OPTIONS.items()
        if getattr(args, dest) is not None
    }
    if not changes:
        show_config(settings)
        return

    updated = settings.model_copy(update={field: value for field, (_, value) in changes.items()})
    save_settings(updated)
    for label, value in changes.values():
        print(f"{label} set to {_describe(value)}")


# ---------------------------------------------------------------------------
# setup
# ---------------------------------------------------------------------------


def cmd_setup() -> None:
    print(
        f"""
Glancebar - Setup Instructions
==============================

GOOGLE CALENDAR SETUP
---------------------
1. Create a project at https://console.cloud.google.com/
2. Enable the Google Calendar API ("APIs & Services" > "Library")
3. Create an OAuth client ID of type "Desktop app" and download the JSON
4. Save it as: {get_google_credentials_path()}

ZOHO CALENDAR SETUP
-------------------
1. Register a "Server-based Application" at https://api-console.zoho.com/
2. Set the Authorized Redirect URI to: http://localhost:3000/
3. Save the client credentials as: {get_zoho_credentials_path()}
     {{"client_id": "YOUR_CLIENT_ID", "client_secret": "YOUR_CLIENT_SECRET"}}

ADDING ACCOUNTS
---------------
   glancebar auth --add your-email@gmail.com
   # Select "Google" or "Zoho" when prompted
   # For Zoho, select your datacenter region

STATUSLINE COMMAND
------------------
   Point your editor's statusline command at: glancebar
"""
    )


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def _read_stdin() -> str | None:
    try:
        if sys.stdin is None or sys.stdin.isatty():
            return None
        return sys.stdin.read()
    except (OSError, ValueError) as exc:
        logger.debug("stdin unavailable: %s", exc)
        return None


def main(argv: list[str] | None = None) -> int:
    configure_logging()
    args = build_parser().parse_args(argv)

    if args.command is None:
        from glancebar.core.statusline import render_statusline

        print(render_statusline(_read_stdin()))
        return 0

    try:
        if args.command == "auth":
            cmd_auth(args)
        elif args.command == "config":
            cmd_config(args)
        elif args.command == "setup":
            cmd_setup()
    except (
        CliError,
        ConfigurationMissing,
        InvalidConfiguration,
        ValueError,
        RuntimeError,
    ) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
