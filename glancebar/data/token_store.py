"""
Glancebar — Token Store.

One JSON file per (provider, account) under the tokens directory. Files are
rewritten atomically (temp file + rename) so an interrupted write never
leaves a half-written token behind.

Two refresh styles share this store:
- Zoho: the caller checks expiry and writes the refreshed record itself.
- Google: the client library refreshes on its own; rotated fields are handed
  back through `apply_rotation`, which merges them over what is on disk.
"""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from pathlib import Path

from glancebar.data.models import GOOGLE, Account

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9@.-]")


def safe_account_name(email: str) -> str:
    """Filesystem-safe form of an email address."""
    return _UNSAFE_CHARS.sub("_", email)


class TokenStore:
    """File-backed storage for per-account OAuth token records."""

    def __init__(self, tokens_dir: Path | str | None = None) -> None:
        if tokens_dir is None:
            from glancebar.config import get_tokens_dir
            tokens_dir = get_tokens_dir()
        self._tokens_dir = Path(tokens_dir)

    @property
    def tokens_dir(self) -> Path:
        return self._tokens_dir

    def token_path(self, account: Account) -> Path:
        return self._tokens_dir / f"{account.provider}_{safe_account_name(account.email)}.json"

    def legacy_token_path(self, account: Account) -> Path:
        """Pre-Zoho location of Google tokens (no provider prefix)."""
        return self._tokens_dir / f"{safe_account_name(account.email)}.json"

    def _existing_path(self, account: Account) -> Path | None:
        path = self.token_path(account)
        if path.exists():
            return path
        if account.provider == GOOGLE:
            legacy = self.legacy_token_path(account)
            if legacy.exists():
                return legacy
        return None

    def exists(self, account: Account) -> bool:
        return self._existing_path(account) is not None

    def load(self, account: Account) -> dict | None:
        """Return the stored record, or None if the account was never authorized."""
        path = self._existing_path(account)
        if path is None:
            return None
        try:
            record = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("[%s] Unreadable token file %s: %s", account.email, path, exc)
            return None
        if not isinstance(record, dict):
            logger.warning("[%s] Token file %s is not a JSON object", account.email, path)
            return None
        return record

    def save(self, account: Account, record: dict) -> Path:
        """Write the full record atomically and return its path.

        An account still on a legacy path keeps being written there.
        """
        path = self._existing_path(account) or self.token_path(account)
        path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=".tmp_", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(record, f, indent=2)
            os.chmod(tmp_path, 0o600)
            os.replace(tmp_path, path)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise

        logger.debug("[%s] Token saved to %s", account.email, path)
        return path

    def apply_rotation(self, account: Account, rotated: dict) -> dict:
        """Merge rotated token fields over the currently persisted record.

        Only keys present in `rotated` change. A rotation that omits
        refresh_token keeps the stored one.
        """
        current = self.load(account) or {}
        updated = {**current, **{k: v for k, v in rotated.items() if v is not None}}
        self.save(account, updated)
        logger.info("[%s] Rotated token persisted (%s)", account.email, ", ".join(sorted(rotated)))
        return updated

    def delete(self, account: Account) -> bool:
        """Remove every token file for the account. Returns True if any existed."""
        removed = False
        paths = [self.token_path(account)]
        if account.provider == GOOGLE:
            paths.append(self.legacy_token_path(account))
        for path in paths:
            if path.exists():
                path.unlink()
                removed = True
        return removed
