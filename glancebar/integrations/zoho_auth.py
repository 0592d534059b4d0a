"""
Glancebar — Zoho OAuth.

Zoho access tokens live for an hour and are never refreshed by a client
library, so `ensure_valid` decides on every render whether the stored token
is still usable or must be exchanged for a new one.

Interactive authorization (run from `glancebar auth`) reuses
google-auth-oauthlib's local-server flow, pointed at the Zoho endpoints of the
account's datacenter.
"""

from __future__ import annotations

import logging
import time
from datetime import datetime

import httpx
from google_auth_oauthlib.flow import InstalledAppFlow

from glancebar.config import ZOHO_DATACENTERS, load_zoho_client_config
from glancebar.data.models import Account
from glancebar.data.token_store import TokenStore

logger = logging.getLogger(__name__)

ZOHO_SCOPES = [
    "ZohoCalendar.calendar.READ",
    "ZohoCalendar.event.READ",
    "ZohoMail.tasks.READ",
]
REDIRECT_PORT = 3000

# A token expiring within this window is refreshed before use
REFRESH_BUFFER_MS = 5 * 60 * 1000
_TIMEOUT_SECONDS = 10


def _epoch_ms(now: datetime | None = None) -> int:
    if now is None:
        return int(time.time() * 1000)
    return int(now.timestamp() * 1000)


def datacenter_urls(account: Account) -> dict[str, str]:
    """Return the accounts/calendar/mail base URLs for the account's datacenter."""
    dc = ZOHO_DATACENTERS.get(account.datacenter or "")
    if dc is None:
        raise ValueError(
            f"Invalid datacenter: {account.datacenter}. "
            f"Valid options: {', '.join(ZOHO_DATACENTERS)}"
        )
    return dc


def needs_refresh(token: dict, now: datetime | None = None) -> bool:
    """True unless the token stays valid for more than the refresh buffer."""
    try:
        expires_at = int(token.get("expires_at", 0))
    except (TypeError, ValueError):
        return True
    return expires_at <= _epoch_ms(now) + REFRESH_BUFFER_MS


async def ensure_valid(
    account: Account,
    store: TokenStore,
    now: datetime | None = None,
) -> dict | None:
    """Return a usable token record for a Zoho account, or None.

    Flow:
    1. No stored token -> None (account not authorized yet).
    2. Token valid beyond the 5-minute buffer -> returned as-is, no network.
    3. Otherwise one refresh-token exchange. On success only access_token and
       expires_at change (the stored refresh_token is kept) and the record is
       persisted. On any failure -> None; the next render tries again.
    """
    token = store.load(account)
    if token is None:
        logger.info("[%s] No Zoho token stored, skipping", account.email)
        return None

    if not needs_refresh(token, now):
        return token

    logger.info("[%s] Zoho access token expiring, refreshing...", account.email)
    try:
        client_config = load_zoho_client_config()
        dc = datacenter_urls(account)
        async with httpx.AsyncClient(timeout=_TIMEOUT_SECONDS) as client:
            resp = await client.post(
                f"{dc['accounts']}/oauth/v2/token",
                data={
                    "grant_type": "refresh_token",
                    "client_id": client_config["client_id"],
                    "client_secret": client_config["client_secret"],
                    "refresh_token": token["refresh_token"],
                },
            )
            resp.raise_for_status()
            data = resp.json()

        access_token = data["access_token"]
        expires_in = int(data["expires_in"])
    except Exception as exc:
        logger.warning("[%s] Zoho token refresh failed: %s", account.email, exc)
        return None

    updated = {
        **token,
        "access_token": access_token,
        "expires_at": _epoch_ms(now) + expires_in * 1000,
    }
    try:
        store.save(account, updated)
    except OSError as exc:
        # The fresh token is still good for this render
        logger.warning("[%s] Could not persist refreshed Zoho token: %s", account.email, exc)
    return updated


# ---------------------------------------------------------------------------
# Interactive authorization
# ---------------------------------------------------------------------------


class _ZohoFlow(InstalledAppFlow):
    """InstalledAppFlow that sends client credentials in the token request body."""

    def fetch_token(self, **kwargs):
        kwargs.setdefault("include_client_id", True)
        return super().fetch_token(**kwargs)


def build_zoho_flow(account: Account) -> InstalledAppFlow:
    client = load_zoho_client_config()
    dc = datacenter_urls(account)
    client_config = {
        "installed": {
            "client_id": client["client_id"],
            "client_secret": client["client_secret"],
            "auth_uri": f"{dc['accounts']}/oauth/v2/auth",
            "token_uri": f"{dc['accounts']}/oauth/v2/token",
            "redirect_uris": [f"http://localhost:{REDIRECT_PORT}/"],
        }
    }
    # Zoho expects comma-separated scopes, so they travel as one string
    return _ZohoFlow.from_client_config(client_config, scopes=[",".join(ZOHO_SCOPES)])


def token_record_from_oauth(token: dict, account: Account) -> dict:
    """Convert an OAuth token response into the stored Zoho record."""
    if "expires_at" in token:
        expires_at = int(float(token["expires_at"]) * 1000)
    else:
        expires_at = _epoch_ms() + int(token.get("expires_in", 3600)) * 1000
    return {
        "access_token": token["access_token"],
        "refresh_token": token.get("refresh_token", ""),
        "expires_at": expires_at,
        "api_domain": token.get("api_domain") or datacenter_urls(account)["calendar"],
    }


def authorize_zoho_account(account: Account, store: TokenStore) -> dict:
    """Run the browser consent flow for a Zoho account and store the token."""
    flow = build_zoho_flow(account)
    logger.info("Starting Zoho consent flow for %s (%s)", account.email, account.datacenter)
    flow.run_local_server(
        port=REDIRECT_PORT,
        access_type="offline",
        prompt="consent",
        success_message="Authentication successful! You can close this window.",
    )
    record = token_record_from_oauth(dict(flow.oauth2session.token), account)
    if not record["refresh_token"]:
        raise RuntimeError(
            "Zoho did not return a refresh token. Revoke the app's access and try again."
        )
    store.save(account, record)
    return record
