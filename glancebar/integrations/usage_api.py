"""Claude usage limits API — five-hour and seven-day utilization.

Reads the local OAuth access token written by the Claude CLI and queries the
usage endpoint with it. Failures raise `UsageFetchError`; deciding what to
show instead is the cache's job.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import httpx
from pydantic import ValidationError

from glancebar.data.models import UsageSnapshot

logger = logging.getLogger(__name__)

USAGE_URL = "https://api.anthropic.com/api/oauth/usage"
_BETA_HEADER = "oauth-2025-04-20"
_TIMEOUT_SECONDS = 5


class UsageFetchError(Exception):
    """Raised when a usage snapshot cannot be obtained."""


def load_access_token(path: Path | None = None) -> str | None:
    """Return claudeAiOauth.accessToken from the local credentials file, or None."""
    if path is None:
        from glancebar.config import get_claude_credentials_path
        path = get_claude_credentials_path()

    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Unreadable Claude credentials at %s: %s", path, exc)
        return None
    return (data.get("claudeAiOauth") or {}).get("accessToken") or None


def parse_usage(payload: object) -> UsageSnapshot:
    """Validate a usage response body. Both windows must be present."""
    if not isinstance(payload, dict):
        raise UsageFetchError("Usage response is not a JSON object")
    if not payload.get("five_hour") or not payload.get("seven_day"):
        raise UsageFetchError("Usage response missing five_hour or seven_day")
    try:
        return UsageSnapshot.model_validate(
            {"five_hour": payload["five_hour"], "seven_day": payload["seven_day"]}
        )
    except ValidationError as exc:
        raise UsageFetchError(f"Malformed usage response: {exc}") from exc


async def fetch_usage_snapshot(
    access_token: str | None, timeout: float = _TIMEOUT_SECONDS
) -> UsageSnapshot:
    """GET the usage endpoint with a bearer token."""
    if not access_token:
        raise UsageFetchError("No Claude access token available")

    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            resp = await client.get(
                USAGE_URL,
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "anthropic-beta": _BETA_HEADER,
                },
            )
            resp.raise_for_status()
            payload = resp.json()
    except (httpx.HTTPError, ValueError) as exc:
        raise UsageFetchError(f"Usage request failed: {exc}") from exc

    return parse_usage(payload)
