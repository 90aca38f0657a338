"""Test helper functions shared by the BenchBoost test suites."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

# HS256 secret the test app verifies tokens with (set in conftest).
TEST_JWT_SECRET = "benchboost-test-secret-0123456789abcdef"
TEST_AUDIENCE = "authenticated"


def create_test_token(
    sub: str,
    email: str = "user@example.com",
    secret: str = TEST_JWT_SECRET,
    expired: bool = False,
    audience: str | None = TEST_AUDIENCE,
) -> str:
    """Create an HS256 access token shaped like the backend's."""
    now = datetime.now(timezone.utc)
    expiry_time = now - timedelta(hours=1) if expired else now + timedelta(hours=1)

    payload: dict[str, Any] = {
        "sub": sub,
        "email": email,
        "role": "authenticated",
        "iat": int(now.timestamp()) - (7200 if expired else 0),
        "exp": int(expiry_time.timestamp()),
    }
    if audience is not None:
        payload["aud"] = audience
    return jwt.encode(payload, secret, algorithm="HS256")


class _FakeResponse:
    """
    Minimal stand-in for :class:`requests.Response`.

    Provides ``status_code``, ``headers`` and ``json()``, which is all the
    backend client inspects.
    """

    def __init__(self, status_code: int, payload: Any = None, headers: dict | None = None):
        self.status_code = status_code
        self._payload = payload
        self.headers = headers or {}

    def json(self):
        """Return the pre-configured JSON payload, or fail like requests does."""
        if self._payload is None:
            raise ValueError("No JSON body")
        return self._payload
