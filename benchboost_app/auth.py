"""
Session verification and access control.

Access tokens are issued by the backend's auth API and stored in the
Flask session cookie. The dashboard verifies them locally with the
project's JWT secret (PyJWT) instead of asking the backend on every page,
then looks up the user's role and profile so views and templates can use
``g.role`` and ``g.profile``.

Key pieces:
- ``verify_token`` -- signature, expiry, audience and required-claim checks
- ``login_required`` -- resolves the signed-in identity, refreshing an
  expired access token once when a refresh token is available
- ``access_required`` -- role gate for pages listed in ``ROUTE_ACCESS``
"""

from __future__ import annotations

import logging
from functools import wraps
from typing import Any

import jwt
import requests
from flask import current_app, g, redirect, render_template, session, url_for

from .backend import BackendError, get_backend
from .rules import can_access
from .users import fetch_profile, fetch_role

logger = logging.getLogger(__name__)

DEFAULT_ALLOWED_ALGORITHMS = ["HS256"]
REQUIRED_TOKEN_CLAIMS = ["sub", "iat", "exp"]


def verify_token(
    token: str,
    secret: str,
    algorithms: list[str] | None = None,
    audience: str | None = "authenticated",
) -> dict[str, Any] | None:
    """
    Decode and validate a backend access token.

    Args:
        token: The raw compact-JWS token string.
        secret: The project's JWT secret.
        algorithms: Allowed signing algorithms. Defaults to ``["HS256"]``.
        audience: Expected ``aud`` claim; ``None`` skips the check.

    Returns:
        The decoded payload on success, or ``None`` if the token is
        expired, malformed, signed with another key, or missing a
        subject.
    """
    try:
        decoded = jwt.decode(
            token,
            secret,
            algorithms=algorithms or DEFAULT_ALLOWED_ALGORITHMS,
            audience=audience,
            options={"require": REQUIRED_TOKEN_CLAIMS, "verify_aud": audience is not None},
            leeway=int(current_app.config.get("JWT_CLOCK_SKEW_SECONDS", 30)),
        )
    except jwt.InvalidTokenError:
        return None

    subject = decoded.get("sub")
    if not isinstance(subject, str) or not subject.strip():
        return None
    return decoded


def _verify(token: str | None) -> dict[str, Any] | None:
    if not token:
        return None
    return verify_token(
        token,
        current_app.config["BACKEND_JWT_SECRET"],
        algorithms=current_app.config["BACKEND_JWT_ALGORITHMS"],
        audience=current_app.config["BACKEND_JWT_AUDIENCE"] or None,
    )


def store_session(payload: dict[str, Any]) -> None:
    """Keep the tokens from an auth API session payload in the cookie."""
    session["access_token"] = payload["access_token"]
    refresh_token = payload.get("refresh_token")
    if refresh_token:
        session["refresh_token"] = refresh_token
    else:
        session.pop("refresh_token", None)


def clear_session() -> None:
    session.pop("access_token", None)
    session.pop("refresh_token", None)


def _refresh_session() -> dict[str, Any] | None:
    """Swap the stored refresh token for a new access token, once."""
    refresh_token = session.get("refresh_token")
    if not refresh_token:
        return None
    try:
        payload = get_backend().refresh(refresh_token)
    except (BackendError, requests.RequestException) as error:
        logger.warning("Session refresh failed: %s", error)
        return None
    if not payload or not payload.get("access_token"):
        return None
    store_session(payload)
    return _verify(payload["access_token"])


def current_claims() -> dict[str, Any] | None:
    """Verified claims for the session token, refreshing it when expired."""
    claims = _verify(session.get("access_token"))
    if claims is None:
        claims = _refresh_session()
    return claims


def login_required(view_func):
    """
    Decorator that requires a signed-in user.

    On success the identity is placed on ``g``: ``user_id``, ``email``,
    ``token``, ``role`` (bench employee when no role row exists) and
    ``profile``. On failure the session is cleared and the user is sent
    to the sign-in page.

    Role and profile lookups go to the backend; a
    :class:`~benchboost_app.backend.SessionExpiredError` raised there is
    handled by the application error handler.
    """

    @wraps(view_func)
    def wrapper(*args, **kwargs):
        claims = current_claims()
        if claims is None:
            clear_session()
            return redirect(url_for("auth.auth_page"))

        g.user_id = claims["sub"]
        g.email = claims.get("email") or ""
        g.token = session["access_token"]

        backend = get_backend()
        g.role = fetch_role(backend, g.token, g.user_id)
        g.profile = fetch_profile(backend, g.token, g.user_id)
        return view_func(*args, **kwargs)

    return wrapper


def access_required(route: str):
    """
    Decorator factory gating a page by role.

    Must be applied below ``login_required`` so that ``g.role`` is set.
    Users without access get the "Access Denied" page with a 403.
    """

    def decorator(view_func):
        @wraps(view_func)
        def wrapper(*args, **kwargs):
            if not can_access(g.role, route):
                logger.info("Denied %s to user %s (%s)", route, g.user_id, g.role.value)
                return render_template("access_denied.html"), 403
            return view_func(*args, **kwargs)

        return wrapper

    return decorator
