"""Provider client factory — builds the right adapter for each configured account."""

from __future__ import annotations

from glancebar.config import Settings
from glancebar.data.models import GOOGLE, ZOHO, Account
from glancebar.data.token_store import TokenStore
from glancebar.integrations.google_auth import GoogleAuthProvider
from glancebar.ports.provider_port import ProviderClient


def configured_accounts(settings: Settings) -> list[Account]:
    """All accounts in display order: Google accounts first, then Zoho.

    A position in this list is the account's accountIndex for this render.
    """
    accounts = [Account(provider=GOOGLE, email=email) for email in settings.gmail_accounts]
    accounts.extend(
        Account(provider=ZOHO, email=z.email, datacenter=z.datacenter)
        for z in settings.zoho_accounts
    )
    return accounts


class ProviderClientFactory:
    """Creates ProviderClient instances sharing one token store."""

    def __init__(
        self,
        store: TokenStore | None = None,
        google_auth: GoogleAuthProvider | None = None,
    ) -> None:
        self._store = store or TokenStore()
        self._google_auth = google_auth or GoogleAuthProvider(self._store)

    def __call__(self, account: Account) -> ProviderClient:
        provider = account.provider.lower()

        if provider == GOOGLE:
            from glancebar.adapters.google_calendar import GoogleCalendarAdapter

            return GoogleCalendarAdapter(account, self._google_auth)

        if provider == ZOHO:
            from glancebar.adapters.zoho_calendar import ZohoCalendarAdapter

            return ZohoCalendarAdapter(account, self._store)

        raise ValueError(f"Unknown provider: {account.provider!r}")
