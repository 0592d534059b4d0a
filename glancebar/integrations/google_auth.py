"""
Glancebar — Google Calendar Authentication.

Google credentials refresh themselves inside the API client whenever the
access token has expired. Nothing is written at that moment; instead the
adapter compares the credentials before and after a call and hands any
rotated fields to `TokenStore.apply_rotation`.

Stored record layout (kept compatible with earlier glancebar releases):
{
    "access_token": "...",
    "refresh_token": "...",
    "scope": "https://www.googleapis.com/auth/calendar.readonly",
    "token_type": "Bearer",
    "expiry_date": 1767978000000      # epoch milliseconds
}
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow

from glancebar.config import get_google_credentials_path, load_google_client_config
from glancebar.data.models import Account
from glancebar.data.token_store import TokenStore

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/calendar.readonly"]
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"
REDIRECT_PORT = 3000


def _expiry_from_ms(expiry_ms: object) -> datetime | None:
    """google-auth wants naive UTC datetimes for expiry."""
    if not expiry_ms:
        return None
    try:
        aware = datetime.fromtimestamp(int(expiry_ms) / 1000, tz=timezone.utc)
    except (TypeError, ValueError, OverflowError):
        return None
    return aware.replace(tzinfo=None)


def _expiry_to_ms(expiry: datetime | None) -> int | None:
    if expiry is None:
        return None
    return int(expiry.replace(tzinfo=timezone.utc).timestamp() * 1000)


def credentials_from_record(record: dict, client_config: dict) -> Credentials:
    """Build google-auth Credentials from a stored token record."""
    scope = record.get("scope")
    return Credentials(
        token=record.get("access_token"),
        refresh_token=record.get("refresh_token"),
        token_uri=client_config.get("token_uri", GOOGLE_TOKEN_URI),
        client_id=client_config["client_id"],
        client_secret=client_config["client_secret"],
        scopes=scope.split() if scope else SCOPES,
        expiry=_expiry_from_ms(record.get("expiry_date")),
    )


def record_from_credentials(creds: Credentials) -> dict:
    """Serialize Credentials into the stored record layout."""
    return {
        "access_token": creds.token,
        "refresh_token": creds.refresh_token,
        "scope": " ".join(creds.scopes or SCOPES),
        "token_type": "Bearer",
        "expiry_date": _expiry_to_ms(creds.expiry),
    }


def rotated_fields(
    creds: Credentials, previous_token: str | None, previous_refresh: str | None
) -> dict:
    """Fields that changed since the credentials were loaded (empty if none)."""
    if creds.token == previous_token:
        return {}
    rotated = {
        "access_token": creds.token,
        "expiry_date": _expiry_to_ms(creds.expiry),
    }
    if creds.refresh_token and creds.refresh_token != previous_refresh:
        rotated["refresh_token"] = creds.refresh_token
    return rotated


class GoogleAuthProvider:
    """Hands out credentials per Google account and persists their rotations."""

    def __init__(self, store: TokenStore, client_config: dict | None = None) -> None:
        self._store = store
        self._client_config = client_config

    def _client(self) -> dict:
        if self._client_config is None:
            self._client_config = load_google_client_config()
        return self._client_config

    def get_credentials(self, account: Account) -> Credentials | None:
        """Return credentials for the account, or None if it was never authorized.

        Raises ConfigurationMissing when credentials.json is absent.
        """
        record = self._store.load(account)
        if record is None:
            logger.info("[%s] No Google token stored, skipping", account.email)
            return None
        return credentials_from_record(record, self._client())

    def persist_rotation(
        self,
        account: Account,
        creds: Credentials,
        previous_token: str | None,
        previous_refresh: str | None,
    ) -> bool:
        """Persist rotated fields, if any. Returns True when something was written."""
        rotated = rotated_fields(creds, previous_token, previous_refresh)
        if not rotated:
            return False
        self._store.apply_rotation(account, rotated)
        return True


# ---------------------------------------------------------------------------
# Interactive authorization
# ---------------------------------------------------------------------------


def authorize_google_account(account: Account, store: TokenStore) -> dict:
    """Run the browser consent flow for a Google account and store the token."""
    load_google_client_config()  # fail early with the setup hint
    flow = InstalledAppFlow.from_client_secrets_file(
        str(get_google_credentials_path()), SCOPES
    )
    logger.info("Starting Google consent flow for %s", account.email)
    creds = flow.run_local_server(
        port=REDIRECT_PORT,
        access_type="offline",
        prompt="consent",
        login_hint=account.email,
        success_message="Authentication successful! You can close this window.",
    )
    record = record_from_credentials(creds)
    store.save(account, record)
    return record
