"""Tests for glancebar.data.token_store."""

import json
import os
import stat

from glancebar.data.models import GOOGLE, ZOHO, Account
from glancebar.data.token_store import TokenStore, safe_account_name


class TestSafeAccountName:
    def test_keeps_allowed_chars(self):
        assert safe_account_name("a.b-c@x.com") == "a.b-c@x.com"

    def test_replaces_others(self):
        assert safe_account_name("a+b c/d@x.com") == "a_b_c_d@x.com"


class TestTokenPaths:
    def test_provider_prefix(self, token_store, google_account, zoho_account):
        assert token_store.token_path(google_account).name == "google_alice@gmail.com.json"
        assert token_store.token_path(zoho_account).name == "zoho_bob@acme.com.json"

    def test_same_email_two_providers(self, token_store):
        g = Account(GOOGLE, "x@acme.com")
        z = Account(ZOHO, "x@acme.com", "com")
        token_store.save(g, {"access_token": "g"})
        token_store.save(z, {"access_token": "z"})
        assert token_store.load(g)["access_token"] == "g"
        assert token_store.load(z)["access_token"] == "z"

    def test_default_dir_under_config_home(self, glancebar_home):
        assert TokenStore().tokens_dir == glancebar_home / "tokens"


class TestLoadSave:
    def test_missing_returns_none(self, token_store, google_account):
        assert token_store.load(google_account) is None
        assert not token_store.exists(google_account)

    def test_save_then_load(self, token_store, zoho_account):
        record = {"access_token": "a", "refresh_token": "r", "expires_at": 123}
        path = token_store.save(zoho_account, record)
        assert token_store.load(zoho_account) == record
        assert token_store.exists(zoho_account)
        assert stat.S_IMODE(os.stat(path).st_mode) == 0o600

    def test_save_leaves_no_temp_files(self, token_store, zoho_account):
        token_store.save(zoho_account, {"access_token": "a"})
        token_store.save(zoho_account, {"access_token": "b"})
        names = [p.name for p in token_store.tokens_dir.iterdir()]
        assert names == ["zoho_bob@acme.com.json"]

    def test_corrupt_file_returns_none(self, token_store, zoho_account):
        path = token_store.token_path(zoho_account)
        path.parent.mkdir(parents=True)
        path.write_text("{broken")
        assert token_store.load(zoho_account) is None

    def test_non_object_returns_none(self, token_store, zoho_account):
        path = token_store.token_path(zoho_account)
        path.parent.mkdir(parents=True)
        path.write_text("[1, 2]")
        assert token_store.load(zoho_account) is None


class TestLegacyGooglePath:
    def test_legacy_file_is_read(self, token_store, google_account):
        legacy = token_store.legacy_token_path(google_account)
        legacy.parent.mkdir(parents=True)
        legacy.write_text(json.dumps({"access_token": "old"}))
        assert token_store.load(google_account) == {"access_token": "old"}

    def test_legacy_file_keeps_being_written(self, token_store, google_account):
        legacy = token_store.legacy_token_path(google_account)
        legacy.parent.mkdir(parents=True)
        legacy.write_text(json.dumps({"access_token": "old"}))
        path = token_store.save(google_account, {"access_token": "new"})
        assert path == legacy
        assert not token_store.token_path(google_account).exists()

    def test_zoho_never_uses_legacy(self, token_store, zoho_account):
        legacy = token_store.legacy_token_path(zoho_account)
        legacy.parent.mkdir(parents=True)
        legacy.write_text(json.dumps({"access_token": "stray"}))
        assert token_store.load(zoho_account) is None


class TestApplyRotation:
    def test_merges_over_stored_record(self, token_store, google_account):
        token_store.save(
            google_account,
            {"access_token": "old", "refresh_token": "keep-me", "scope": "cal"},
        )
        updated = token_store.apply_rotation(
            google_account, {"access_token": "new", "expiry_date": 99}
        )
        assert updated == {
            "access_token": "new",
            "refresh_token": "keep-me",
            "scope": "cal",
            "expiry_date": 99,
        }
        assert token_store.load(google_account) == updated

    def test_none_values_do_not_erase(self, token_store, google_account):
        token_store.save(google_account, {"access_token": "a", "refresh_token": "r"})
        updated = token_store.apply_rotation(
            google_account, {"access_token": "b", "refresh_token": None}
        )
        assert updated["refresh_token"] == "r"

    def test_rotation_without_stored_record(self, token_store, google_account):
        updated = token_store.apply_rotation(google_account, {"access_token": "b"})
        assert updated == {"access_token": "b"}


class TestDelete:
    def test_delete_removes_both_google_paths(self, token_store, google_account):
        token_store.save(google_account, {"access_token": "a"})
        legacy = token_store.legacy_token_path(google_account)
        legacy.write_text("{}")
        assert token_store.delete(google_account) is True
        assert not token_store.exists(google_account)

    def test_delete_missing(self, token_store, zoho_account):
        assert token_store.delete(zoho_account) is False
