"""
Profile and role queries.

Thin functions over :class:`~benchboost_app.backend.BackendClient` for the
``profiles`` and ``user_roles`` tables. Callers pass the signed-in user's
access token so the backend applies its row-level security.
"""

from __future__ import annotations

import logging
from typing import Any

from .backend import BackendClient, eq, in_
from .models import PROFILES_TABLE, USER_ROLES_TABLE, Role, deserialize_profile
from .rules import resolve_role

logger = logging.getLogger(__name__)


def fetch_role(client: BackendClient, token: str, user_id: str) -> Role:
    """Look up a user's role; users without a role row are bench employees."""
    row = client.select_one(
        USER_ROLES_TABLE, token, columns="role", filters={"user_id": eq(user_id)}
    )
    return resolve_role(row.get("role") if row else None)


def fetch_profile(client: BackendClient, token: str, user_id: str) -> dict[str, Any] | None:
    row = client.select_one(PROFILES_TABLE, token, filters={"user_id": eq(user_id)})
    return deserialize_profile(row) if row else None


def fetch_profiles(client: BackendClient, token: str) -> list[dict[str, Any]]:
    """Every profile, newest first."""
    rows = client.select(PROFILES_TABLE, token, order="created_at.desc")
    return [deserialize_profile(row) for row in rows]


def fetch_role_map(
    client: BackendClient, token: str, user_ids: list[str] | None = None
) -> dict[str, Role]:
    """``user_id`` to role for ``user_ids`` (or everyone when omitted)."""
    if user_ids is not None and not user_ids:
        return {}
    filters = {"user_id": in_(user_ids)} if user_ids else None
    rows = client.select(USER_ROLES_TABLE, token, columns="user_id,role", filters=filters)
    return {row["user_id"]: resolve_role(row.get("role")) for row in rows}


def fetch_users_with_roles(client: BackendClient, token: str) -> list[dict[str, Any]]:
    """
    Profiles merged with their role for the user management table.

    One ``user_roles`` query covers every profile; missing roles fall back
    to bench employee.
    """
    profiles = fetch_profiles(client, token)
    roles = fetch_role_map(client, token, [profile["user_id"] for profile in profiles])
    return [
        {**profile, "role": roles.get(profile["user_id"], resolve_role(None))}
        for profile in profiles
    ]


def set_role(client: BackendClient, token: str, user_id: str, role: Role) -> None:
    """Update the user's role row, inserting one when absent."""
    existing = client.select_one(
        USER_ROLES_TABLE, token, columns="user_id", filters={"user_id": eq(user_id)}
    )
    if existing:
        client.update(USER_ROLES_TABLE, token, {"role": role.value}, filters={"user_id": eq(user_id)})
    else:
        client.insert(USER_ROLES_TABLE, token, {"user_id": user_id, "role": role.value})
    logger.info("Role for user %s set to %s", user_id, role.value)


def count_profiles(client: BackendClient, token: str) -> int:
    return client.count(PROFILES_TABLE, token)


def update_profile(
    client: BackendClient,
    token: str,
    user_id: str,
    *,
    full_name: str,
    avatar_url: str | None,
) -> dict[str, Any] | None:
    rows = client.update(
        PROFILES_TABLE,
        token,
        {"full_name": full_name, "avatar_url": avatar_url or None},
        filters={"user_id": eq(user_id)},
    )
    return deserialize_profile(rows[0]) if rows else None


def award_points(client: BackendClient, token: str, user_id: str, points: int) -> int:
    """
    Add ``points`` to a user's running total and return the new total.

    Read-then-write; concurrent awards to the same user can overwrite
    each other.
    """
    profile = fetch_profile(client, token, user_id)
    if profile is None:
        logger.warning("No profile for user %s; %s points not credited", user_id, points)
        return 0
    new_total = profile["total_points"] + points
    client.update(
        PROFILES_TABLE, token, {"total_points": new_total}, filters={"user_id": eq(user_id)}
    )
    return new_total


def fetch_leaderboard(client: BackendClient, token: str, limit: int = 50) -> list[dict[str, Any]]:
    rows = client.select(
        PROFILES_TABLE,
        token,
        columns="user_id,full_name,avatar_url,total_points",
        order="total_points.desc",
        limit=limit,
    )
    return [deserialize_profile(row) for row in rows]
