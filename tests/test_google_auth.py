"""Tests for glancebar.integrations.google_auth — credentials and rotation."""

import json
from datetime import datetime

import pytest

from glancebar.config import ConfigurationMissing
from glancebar.integrations.google_auth import (
    SCOPES,
    GoogleAuthProvider,
    credentials_from_record,
    record_from_credentials,
    rotated_fields,
)

CLIENT = {"client_id": "cid", "client_secret": "csecret"}

RECORD = {
    "access_token": "tok-1",
    "refresh_token": "ref-1",
    "scope": "https://www.googleapis.com/auth/calendar.readonly",
    "token_type": "Bearer",
    "expiry_date": 1767952800000,  # 2026-01-09T10:00:00Z
}


class TestCredentialsFromRecord:
    def test_fields_mapped(self):
        creds = credentials_from_record(RECORD, CLIENT)
        assert creds.token == "tok-1"
        assert creds.refresh_token == "ref-1"
        assert creds.client_id == "cid"
        assert creds.token_uri == "https://oauth2.googleapis.com/token"
        assert creds.scopes == SCOPES

    def test_expiry_is_naive_utc(self):
        creds = credentials_from_record(RECORD, CLIENT)
        assert creds.expiry == datetime(2026, 1, 9, 10, 0)

    def test_missing_expiry(self):
        record = {k: v for k, v in RECORD.items() if k != "expiry_date"}
        assert credentials_from_record(record, CLIENT).expiry is None

    def test_roundtrip_record(self):
        creds = credentials_from_record(RECORD, CLIENT)
        assert record_from_credentials(creds) == RECORD


class TestRotatedFields:
    def test_nothing_changed(self):
        creds = credentials_from_record(RECORD, CLIENT)
        assert rotated_fields(creds, "tok-1", "ref-1") == {}

    def test_access_token_rotated_without_refresh_token(self):
        creds = credentials_from_record(RECORD, CLIENT)
        creds.token = "tok-2"
        rotated = rotated_fields(creds, "tok-1", "ref-1")
        assert rotated == {"access_token": "tok-2", "expiry_date": 1767952800000}
        assert "refresh_token" not in rotated

    def test_refresh_token_rotated(self):
        creds = credentials_from_record(RECORD, CLIENT)
        creds.token = "tok-2"
        creds._refresh_token = "ref-2"
        assert rotated_fields(creds, "tok-1", "ref-1")["refresh_token"] == "ref-2"


class TestGoogleAuthProvider:
    def test_no_record_returns_none(self, token_store, google_account):
        provider = GoogleAuthProvider(token_store, CLIENT)
        assert provider.get_credentials(google_account) is None

    def test_record_returns_credentials(self, token_store, google_account):
        token_store.save(google_account, RECORD)
        creds = GoogleAuthProvider(token_store, CLIENT).get_credentials(google_account)
        assert creds.token == "tok-1"

    def test_missing_client_file_raises(self, token_store, google_account):
        token_store.save(google_account, RECORD)
        with pytest.raises(ConfigurationMissing):
            GoogleAuthProvider(token_store).get_credentials(google_account)

    def test_client_config_loaded_from_file(self, token_store, google_account, glancebar_home):
        (glancebar_home / "credentials.json").write_text(json.dumps({"installed": CLIENT}))
        token_store.save(google_account, RECORD)
        creds = GoogleAuthProvider(token_store).get_credentials(google_account)
        assert creds.client_secret == "csecret"

    def test_persist_rotation_merges(self, token_store, google_account):
        token_store.save(google_account, RECORD)
        provider = GoogleAuthProvider(token_store, CLIENT)
        creds = provider.get_credentials(google_account)
        creds.token = "tok-2"

        assert provider.persist_rotation(google_account, creds, "tok-1", "ref-1") is True
        stored = token_store.load(google_account)
        assert stored["access_token"] == "tok-2"
        assert stored["refresh_token"] == "ref-1"
        assert stored["token_type"] == "Bearer"

    def test_persist_rotation_noop(self, token_store, google_account):
        token_store.save(google_account, RECORD)
        provider = GoogleAuthProvider(token_store, CLIENT)
        creds = provider.get_credentials(google_account)
        assert provider.persist_rotation(google_account, creds, "tok-1", "ref-1") is False
