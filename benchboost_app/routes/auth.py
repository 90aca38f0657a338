"""
Landing and authentication routes.

Sign-in and sign-up forms post to the backend's auth API; on success the
returned access token (and refresh token) are kept in the Flask session
cookie. The dashboard never sees or stores passwords beyond forwarding
them once.
"""

from __future__ import annotations

import logging

import requests
from flask import Blueprint, flash, redirect, render_template, request, session, url_for

from ..auth import clear_session, current_claims, store_session
from ..backend import BackendError, get_backend

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__)

MIN_PASSWORD_LENGTH = 6


def _render_auth(mode: str = "sign-in", status_code: int = 200):
    return (
        render_template(
            "auth.html",
            mode=mode,
            email=request.form.get("email", ""),
            full_name=request.form.get("full_name", ""),
            min_password_length=MIN_PASSWORD_LENGTH,
        ),
        status_code,
    )


@auth_bp.route("/health", methods=["GET"])
def health_check():
    """Public liveness probe."""
    return {"status": "healthy", "service": "benchboost"}, 200


@auth_bp.route("/")
def landing():
    """Landing page; signed-in users go straight to the dashboard."""
    if current_claims() is not None:
        return redirect(url_for("views.dashboard"))
    return render_template("landing.html")


@auth_bp.route("/auth", methods=["GET"])
def auth_page():
    """Render the sign-in / sign-up page."""
    if current_claims() is not None:
        return redirect(url_for("views.dashboard"))
    mode = request.args.get("mode", "sign-in")
    return _render_auth("sign-up" if mode == "sign-up" else "sign-in")


@auth_bp.route("/auth/sign-in", methods=["POST"])
def sign_in():
    """
    Handle sign-in form submission.

    Returns:
        A redirect to the dashboard on success, or the re-rendered auth
        page with a flash message on failure.
    """
    email = request.form.get("email", "").strip()
    password = request.form.get("password", "")
    if not email or not password:
        flash("Email and password are required.", "error")
        return _render_auth("sign-in", 400)

    try:
        payload = get_backend().sign_in(email, password)
    except requests.Timeout:
        flash("Sign-in service timed out. Please try again.", "error")
        return _render_auth("sign-in", 503)
    except requests.RequestException:
        flash("Sign-in service unavailable. Please try again later.", "error")
        return _render_auth("sign-in", 503)
    except BackendError as error:
        if error.status_code in {400, 401}:
            flash("Invalid email or password.", "error")
            return _render_auth("sign-in", 401)
        flash(error.message, "error")
        return _render_auth("sign-in", 502)

    if not payload or not payload.get("access_token"):
        flash("Invalid sign-in response received.", "error")
        return _render_auth("sign-in", 502)

    store_session(payload)
    logger.info("User %s signed in", email)
    flash("Signed in successfully.", "success")
    return redirect(url_for("views.dashboard"))


@auth_bp.route("/auth/sign-up", methods=["POST"])
def sign_up():
    """
    Handle sign-up form submission.

    When the backend returns a session straight away (email confirmation
    disabled) the user is signed in; otherwise they are asked to confirm
    their email first.
    """
    full_name = request.form.get("full_name", "").strip()
    email = request.form.get("email", "").strip()
    password = request.form.get("password", "")

    if not full_name or not email or not password:
        flash("Full name, email, and password are required.", "error")
        return _render_auth("sign-up", 400)
    if len(password) < MIN_PASSWORD_LENGTH:
        flash(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.", "error")
        return _render_auth("sign-up", 400)

    try:
        payload = get_backend().sign_up(email, password, full_name=full_name)
    except requests.Timeout:
        flash("Sign-up service timed out. Please try again.", "error")
        return _render_auth("sign-up", 503)
    except requests.RequestException:
        flash("Sign-up service unavailable. Please try again later.", "error")
        return _render_auth("sign-up", 503)
    except BackendError as error:
        flash(error.message, "error")
        status_code = error.status_code if error.status_code in {400, 422, 429} else 502
        return _render_auth("sign-up", status_code)

    if payload and payload.get("access_token"):
        store_session(payload)
        flash("Account created. Welcome to BenchBoost!", "success")
        return redirect(url_for("views.dashboard"))

    flash("Account created. Check your email to confirm it, then sign in.", "success")
    return redirect(url_for("auth.auth_page"))


@auth_bp.route("/auth/sign-out", methods=["POST"])
def sign_out():
    """Revoke the backend session (best effort) and clear the cookie."""
    token = session.get("access_token")
    if token:
        try:
            get_backend().sign_out(token)
        except (BackendError, requests.RequestException) as error:
            # The cookie is cleared regardless; the token simply expires.
            logger.warning("Backend sign-out failed: %s", error)
    clear_session()
    flash("Signed out.", "success")
    return redirect(url_for("auth.auth_page"))
