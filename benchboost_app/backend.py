"""
HTTP client for the hosted backend.

BenchBoost never touches a database. Rows live behind a PostgREST table
API (``/rest/v1/<table>``) and identities behind a GoTrue auth API
(``/auth/v1``). ``BackendClient`` is the only place that knows those wire
details: URL layout, the ``apikey`` header, PostgREST filter syntax,
``Prefer`` headers and the shape of error bodies.

Every call is a single request with the configured timeout. Nothing is
retried. ``requests.Timeout`` and ``requests.RequestException`` propagate
to the caller unchanged so that route handlers can tell the user whether
the backend was slow or unreachable.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

import requests
from flask import current_app

logger = logging.getLogger(__name__)


class BackendError(Exception):
    """A backend call returned a non-success status."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class SessionExpiredError(BackendError):
    """The backend rejected the caller's access token."""


# =====================================================================
# PostgREST filter helpers
# =====================================================================


def eq(value: Any) -> str:
    """Equality filter value, e.g. ``{"id": eq(task_id)}``."""
    return f"eq.{value}"


def is_null() -> str:
    """``IS NULL`` filter value."""
    return "is.null"


def in_(values: Iterable[Any]) -> str:
    """Membership filter value, e.g. ``{"user_id": in_(ids)}``."""
    return "in.(" + ",".join(str(value) for value in values) + ")"


def any_of(*conditions: str) -> str:
    """
    Value for the ``or`` filter key.

    Each condition is written ``column.operator.value``, for example
    ``{"or": any_of("assigned_to.is.null", f"assigned_to.eq.{user_id}")}``.
    """
    return "(" + ",".join(conditions) + ")"


def _error_message(response: requests.Response, default: str) -> str:
    """
    Extract a human-readable error message from a backend response.

    PostgREST reports ``message``; GoTrue uses ``msg``,
    ``error_description`` or ``error`` depending on the endpoint.
    """
    try:
        payload = response.json()
    except ValueError:
        return default
    if not isinstance(payload, dict):
        return default
    for key in ("message", "msg", "error_description", "error"):
        message = payload.get(key)
        if isinstance(message, str) and message.strip():
            return message
    return default


def _total_from_content_range(header: str | None) -> int:
    """Parse the total from a ``Content-Range`` header such as ``0-24/57``."""
    if not header or "/" not in header:
        return 0
    total = header.rsplit("/", 1)[1]
    if total == "*":
        return 0
    try:
        return int(total)
    except ValueError:
        return 0


class BackendClient:
    """
    Table and auth client for the hosted backend.

    Args:
        base_url: Project URL, e.g. ``https://xyz.supabase.co``.
        api_key: Public (anon) API key sent as the ``apikey`` header.
        timeout: Per-request timeout in seconds.
    """

    def __init__(self, base_url: str, api_key: str, timeout: float = 5):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "BackendClient":
        return cls(
            base_url=config["BACKEND_URL"],
            api_key=config["BACKEND_ANON_KEY"],
            timeout=config["BACKEND_TIMEOUT"],
        )

    # -----------------------------------------------------------------
    # Transport
    # -----------------------------------------------------------------

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def _headers(self, token: str | None, extra: Mapping[str, str] | None = None) -> dict[str, str]:
        headers = {"apikey": self.api_key}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        if extra:
            headers.update(extra)
        return headers

    def _send(
        self,
        method: str,
        path: str,
        *,
        token: str | None = None,
        headers: Mapping[str, str] | None = None,
        **kwargs,
    ) -> requests.Response:
        return requests.request(
            method=method,
            url=self._url(path),
            headers=self._headers(token, headers),
            timeout=self.timeout,
            **kwargs,
        )

    def _table_request(
        self,
        method: str,
        table: str,
        token: str,
        *,
        default_error: str,
        **kwargs,
    ) -> requests.Response:
        response = self._send(method, f"/rest/v1/{table}", token=token, **kwargs)
        if response.status_code == 401:
            raise SessionExpiredError(
                _error_message(response, "Session expired"), response.status_code
            )
        if response.status_code >= 400:
            message = _error_message(response, default_error)
            logger.warning(
                "%s %s failed with %s: %s", method, table, response.status_code, message
            )
            raise BackendError(message, response.status_code)
        return response

    # -----------------------------------------------------------------
    # Auth API
    # -----------------------------------------------------------------

    def _auth_request(self, method: str, path: str, *, default_error: str, **kwargs) -> Any:
        response = self._send(method, f"/auth/v1/{path.lstrip('/')}", **kwargs)
        if response.status_code >= 400:
            raise BackendError(_error_message(response, default_error), response.status_code)
        if response.status_code == 204:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise BackendError("Invalid response from auth service", response.status_code) from exc

    def sign_in(self, email: str, password: str) -> dict[str, Any]:
        """
        Exchange email and password for a session.

        Returns:
            The session payload with ``access_token``, ``refresh_token``
            and ``user``.
        """
        return self._auth_request(
            "POST",
            "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
            default_error="Sign in failed",
        )

    def sign_up(self, email: str, password: str, *, full_name: str) -> dict[str, Any]:
        """
        Register a new account.

        ``full_name`` travels as user metadata; the backend creates the
        matching ``profiles`` row. The payload contains an
        ``access_token`` only when email confirmation is disabled.
        """
        return self._auth_request(
            "POST",
            "/signup",
            json={"email": email, "password": password, "data": {"full_name": full_name}},
            default_error="Sign up failed",
        )

    def refresh(self, refresh_token: str) -> dict[str, Any]:
        """Trade a refresh token for a new session."""
        return self._auth_request(
            "POST",
            "/token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": refresh_token},
            default_error="Session refresh failed",
        )

    def sign_out(self, token: str) -> None:
        """Revoke the session behind ``token``."""
        self._auth_request("POST", "/logout", token=token, default_error="Sign out failed")

    # -----------------------------------------------------------------
    # Table API
    # -----------------------------------------------------------------

    def select(
        self,
        table: str,
        token: str,
        *,
        columns: str = "*",
        filters: Mapping[str, str] | None = None,
        order: str | None = None,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """
        Read rows from ``table``.

        Args:
            columns: PostgREST ``select`` expression (may embed relations).
            filters: Column to filter-value mapping, built with :func:`eq`,
                :func:`is_null`, :func:`in_` and :func:`any_of`.
            order: ``column.asc`` or ``column.desc``.
            limit: Maximum number of rows.
        """
        params: dict[str, Any] = {"select": columns, **(filters or {})}
        if order:
            params["order"] = order
        if limit is not None:
            params["limit"] = limit
        response = self._table_request(
            "GET", table, token, params=params, default_error=f"Failed to fetch {table}"
        )
        return response.json()

    def select_one(
        self,
        table: str,
        token: str,
        *,
        columns: str = "*",
        filters: Mapping[str, str] | None = None,
    ) -> dict[str, Any] | None:
        """Return the first matching row, or ``None`` when nothing matches."""
        rows = self.select(table, token, columns=columns, filters=filters, limit=1)
        return rows[0] if rows else None

    def count(self, table: str, token: str, *, filters: Mapping[str, str] | None = None) -> int:
        """Exact row count without transferring rows."""
        response = self._table_request(
            "HEAD",
            table,
            token,
            params={"select": "*", **(filters or {})},
            headers={"Prefer": "count=exact"},
            default_error=f"Failed to count {table}",
        )
        return _total_from_content_range(response.headers.get("Content-Range"))

    def insert(
        self, table: str, token: str, rows: dict[str, Any] | list[dict[str, Any]]
    ) -> list[dict[str, Any]]:
        """Insert one or more rows and return them as stored."""
        response = self._table_request(
            "POST",
            table,
            token,
            json=rows,
            headers={"Prefer": "return=representation"},
            default_error=f"Failed to insert into {table}",
        )
        return response.json()

    def update(
        self,
        table: str,
        token: str,
        values: dict[str, Any],
        *,
        filters: Mapping[str, str],
    ) -> list[dict[str, Any]]:
        """
        Update matching rows and return them as stored.

        An empty result means no row satisfied the filters.

        Raises:
            ValueError: If ``filters`` is empty.
        """
        if not filters:
            raise ValueError("Refusing to update without filters")
        response = self._table_request(
            "PATCH",
            table,
            token,
            params=dict(filters),
            json=values,
            headers={"Prefer": "return=representation"},
            default_error=f"Failed to update {table}",
        )
        return response.json()

    def delete(self, table: str, token: str, *, filters: Mapping[str, str]) -> list[dict[str, Any]]:
        """
        Delete matching rows and return them.

        Raises:
            ValueError: If ``filters`` is empty.
        """
        if not filters:
            raise ValueError("Refusing to delete without filters")
        response = self._table_request(
            "DELETE",
            table,
            token,
            params=dict(filters),
            headers={"Prefer": "return=representation"},
            default_error=f"Failed to delete from {table}",
        )
        return response.json()


def get_backend() -> BackendClient:
    """Return the client bound to the current application."""
    return current_app.extensions["backend"]
