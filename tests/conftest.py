"""
Shared pytest fixtures for the BenchBoost test suite.

The dashboard keeps no database of its own, so instead of a database
session these fixtures provide an in-memory fake of the hosted backend
(see ``tests/fakes.py``) swapped into the application for each test.
Signed-in users are simulated by placing an HS256 token, signed with the
test secret, into the session cookie.

Key Concepts Demonstrated:
- Fixture scopes (session for the app, function for backend state)
- Environment variable overrides before the app is imported
- Factory fixtures built on Faker for users and tasks
"""

from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
from faker import Faker

from tests.helpers import TEST_JWT_SECRET, create_test_token

# Set testing environment before importing app
os.environ["FLASK_ENV"] = "testing"
os.environ["TEST_BACKEND_JWT_SECRET"] = TEST_JWT_SECRET

from benchboost_app import create_app

from tests.fakes import FakeBackend

fake = Faker()


# -----------------------------------------------------------------------------
# Application Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture(scope="session")
def app():
    """
    Create application instance for the test session.

    Yields:
        Flask application instance configured for testing.
    """
    application = create_app("testing")
    yield application


@pytest.fixture(scope="function")
def fake_backend(app, monkeypatch):
    """
    Replace the application's backend client with a fresh in-memory fake.

    Yields:
        The :class:`~tests.fakes.FakeBackend` the routes will talk to.
    """
    backend = FakeBackend()
    monkeypatch.setitem(app.extensions, "backend", backend)
    yield backend


@pytest.fixture(scope="function")
def client(app, fake_backend):
    """
    Create a test client backed by the fake backend.

    A fresh client per test keeps cookies and session state isolated.
    """
    with app.test_client() as test_client:
        yield test_client


# -----------------------------------------------------------------------------
# Test Data Factory Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture
def user_factory(fake_backend):
    """
    Factory fixture for seeding users (profile plus role row).

    Example:
        def test_something(user_factory):
            lead = user_factory(role="team_lead")
    """

    def _create_user(role: str | None = "bench_employee", **overrides: Any) -> dict[str, Any]:
        return fake_backend.add_user(
            email=overrides.pop("email", fake.unique.email()),
            full_name=overrides.pop("full_name", fake.name()),
            role=role,
            **overrides,
        )

    return _create_user


@pytest.fixture
def task_factory(fake_backend):
    """Factory fixture for seeding task rows with realistic defaults."""

    def _create_task(created_by: str, **fields: Any) -> dict[str, Any]:
        fields.setdefault("title", fake.sentence(nb_words=4).rstrip("."))
        fields.setdefault("description", fake.paragraph())
        fields.setdefault("points", fake.random_int(min=5, max=50))
        fields.setdefault(
            "due_date", (datetime.now(timezone.utc) + timedelta(days=7)).isoformat()
        )
        return fake_backend.add_task(created_by=created_by, **fields)

    return _create_task


# -----------------------------------------------------------------------------
# Session Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture
def sign_in_as(client, user_factory):
    """
    Seed a user with ``role`` and put a valid access token in the session.

    Returns:
        Function returning the seeded profile row.
    """

    def _sign_in(role: str | None = "bench_employee", **overrides: Any) -> dict[str, Any]:
        profile = user_factory(role=role, **overrides)
        with client.session_transaction() as sess:
            sess["access_token"] = create_test_token(sub=profile["user_id"], email=profile["email"])
            sess["refresh_token"] = f"refresh-{profile['user_id']}"
        return profile

    return _sign_in


@pytest.fixture
def employee(sign_in_as):
    return sign_in_as("bench_employee")


@pytest.fixture
def team_lead(sign_in_as):
    return sign_in_as("team_lead")


@pytest.fixture
def admin(sign_in_as):
    return sign_in_as("admin")
