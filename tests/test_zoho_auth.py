"""Tests for glancebar.integrations.zoho_auth — token validity and refresh."""

import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from glancebar.data.models import ZOHO, Account
from glancebar.integrations.zoho_auth import (
    REFRESH_BUFFER_MS,
    build_zoho_flow,
    datacenter_urls,
    ensure_valid,
    needs_refresh,
    token_record_from_oauth,
)

NOW = datetime(2026, 1, 9, 10, 0, tzinfo=timezone.utc)
NOW_MS = int(NOW.timestamp() * 1000)

_PATCH_CLIENT = "glancebar.integrations.zoho_auth.httpx.AsyncClient"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _mock_client(json_body=None, error=None):
    mock_resp = MagicMock()
    mock_resp.json.return_value = json_body
    mock_resp.raise_for_status = MagicMock()

    mock_client = AsyncMock()
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    if error is not None:
        mock_client.post = AsyncMock(side_effect=error)
    else:
        mock_client.post = AsyncMock(return_value=mock_resp)
    return mock_client


@pytest.fixture
def zoho_credentials(glancebar_home):
    (glancebar_home / "zoho_credentials.json").write_text(
        json.dumps({"client_id": "cid", "client_secret": "csecret"})
    )


# ---------------------------------------------------------------------------
# needs_refresh / datacenter_urls
# ---------------------------------------------------------------------------


class TestNeedsRefresh:
    def test_far_expiry_is_valid(self):
        token = {"expires_at": NOW_MS + REFRESH_BUFFER_MS + 1000}
        assert not needs_refresh(token, NOW)

    def test_expiry_inside_buffer(self):
        token = {"expires_at": NOW_MS + REFRESH_BUFFER_MS - 1000}
        assert needs_refresh(token, NOW)

    def test_exactly_at_buffer_refreshes(self):
        assert needs_refresh({"expires_at": NOW_MS + REFRESH_BUFFER_MS}, NOW)

    def test_missing_or_bad_expiry(self):
        assert needs_refresh({}, NOW)
        assert needs_refresh({"expires_at": "soon"}, NOW)


class TestDatacenterUrls:
    def test_known_datacenter(self):
        urls = datacenter_urls(Account(ZOHO, "z@x.com", "eu"))
        assert urls["accounts"] == "https://accounts.zoho.eu"
        assert urls["mail"] == "https://mail.zoho.eu"

    def test_unknown_datacenter(self):
        with pytest.raises(ValueError, match="Invalid datacenter"):
            datacenter_urls(Account(ZOHO, "z@x.com", "mars"))


# ---------------------------------------------------------------------------
# ensure_valid
# ---------------------------------------------------------------------------


class TestEnsureValid:
    @pytest.mark.asyncio
    async def test_no_token_returns_none(self, token_store, zoho_account):
        with patch(_PATCH_CLIENT) as client_cls:
            assert await ensure_valid(zoho_account, token_store, NOW) is None
        client_cls.assert_not_called()

    @pytest.mark.asyncio
    async def test_valid_token_makes_no_network_call(self, token_store, zoho_account):
        record = {
            "access_token": "still-good",
            "refresh_token": "r",
            "expires_at": NOW_MS + 30 * 60 * 1000,
        }
        token_store.save(zoho_account, record)
        with patch(_PATCH_CLIENT) as client_cls:
            result = await ensure_valid(zoho_account, token_store, NOW)
        assert result == record
        client_cls.assert_not_called()

    @pytest.mark.asyncio
    async def test_expiring_token_refreshed_once(
        self, token_store, zoho_account, zoho_credentials
    ):
        token_store.save(
            zoho_account,
            {
                "access_token": "old",
                "refresh_token": "refresh-1",
                "expires_at": NOW_MS + 60 * 1000,
                "api_domain": "https://www.zohoapis.com",
            },
        )
        client = _mock_client({"access_token": "fresh", "expires_in": 3600})
        with patch(_PATCH_CLIENT, return_value=client):
            result = await ensure_valid(zoho_account, token_store, NOW)

        assert client.post.await_count == 1
        url = client.post.call_args.args[0]
        assert url == "https://accounts.zoho.com/oauth/v2/token"
        form = client.post.call_args.kwargs["data"]
        assert form["grant_type"] == "refresh_token"
        assert form["refresh_token"] == "refresh-1"
        assert form["client_id"] == "cid"

        assert result["access_token"] == "fresh"
        assert result["refresh_token"] == "refresh-1"
        assert result["expires_at"] == NOW_MS + 3600 * 1000
        assert result["api_domain"] == "https://www.zohoapis.com"
        assert token_store.load(zoho_account) == result

    @pytest.mark.asyncio
    async def test_new_refresh_token_in_response_is_ignored(
        self, token_store, zoho_account, zoho_credentials
    ):
        token_store.save(
            zoho_account, {"access_token": "old", "refresh_token": "keep", "expires_at": 0}
        )
        client = _mock_client(
            {"access_token": "fresh", "expires_in": 3600, "refresh_token": "other"}
        )
        with patch(_PATCH_CLIENT, return_value=client):
            result = await ensure_valid(zoho_account, token_store, NOW)
        assert result["refresh_token"] == "keep"

    @pytest.mark.asyncio
    async def test_network_error_returns_none_and_keeps_record(
        self, token_store, zoho_account, zoho_credentials
    ):
        stale = {"access_token": "old", "refresh_token": "r", "expires_at": 0}
        token_store.save(zoho_account, stale)
        client = _mock_client(error=Exception("connection reset"))
        with patch(_PATCH_CLIENT, return_value=client):
            assert await ensure_valid(zoho_account, token_store, NOW) is None
        assert token_store.load(zoho_account) == stale

    @pytest.mark.asyncio
    async def test_malformed_body_returns_none(
        self, token_store, zoho_account, zoho_credentials
    ):
        token_store.save(zoho_account, {"access_token": "old", "refresh_token": "r", "expires_at": 0})
        client = _mock_client({"error": "invalid_code"})
        with patch(_PATCH_CLIENT, return_value=client):
            assert await ensure_valid(zoho_account, token_store, NOW) is None

    @pytest.mark.asyncio
    async def test_missing_client_credentials_returns_none(self, token_store, zoho_account):
        token_store.save(zoho_account, {"access_token": "old", "refresh_token": "r", "expires_at": 0})
        with patch(_PATCH_CLIENT) as client_cls:
            assert await ensure_valid(zoho_account, token_store, NOW) is None
        client_cls.assert_not_called()

    @pytest.mark.asyncio
    async def test_save_failure_still_returns_token(
        self, token_store, zoho_account, zoho_credentials
    ):
        token_store.save(zoho_account, {"access_token": "old", "refresh_token": "r", "expires_at": 0})
        client = _mock_client({"access_token": "fresh", "expires_in": 3600})
        with patch(_PATCH_CLIENT, return_value=client), \
             patch.object(token_store, "save", side_effect=OSError("disk full")):
            result = await ensure_valid(zoho_account, token_store, NOW)
        assert result["access_token"] == "fresh"


# ---------------------------------------------------------------------------
# Interactive authorization helpers
# ---------------------------------------------------------------------------


class TestTokenRecordFromOAuth:
    def test_expires_at_seconds_converted_to_ms(self, zoho_account):
        record = token_record_from_oauth(
            {"access_token": "a", "refresh_token": "r", "expires_at": 1767952800.0},
            zoho_account,
        )
        assert record["expires_at"] == 1767952800000
        assert record["api_domain"] == "https://calendar.zoho.com"

    def test_api_domain_from_response(self, zoho_account):
        record = token_record_from_oauth(
            {"access_token": "a", "expires_in": 3600, "api_domain": "https://www.zohoapis.eu"},
            zoho_account,
        )
        assert record["api_domain"] == "https://www.zohoapis.eu"
        assert record["refresh_token"] == ""


class TestBuildZohoFlow:
    def test_flow_points_at_datacenter(self, zoho_credentials):
        flow = build_zoho_flow(Account(ZOHO, "z@x.com", "in"))
        assert flow.client_config["auth_uri"] == "https://accounts.zoho.in/oauth/v2/auth"
        assert flow.client_config["token_uri"] == "https://accounts.zoho.in/oauth/v2/token"
        assert flow.oauth2session.scope == [
            "ZohoCalendar.calendar.READ,ZohoCalendar.event.READ,ZohoMail.tasks.READ"
        ]
