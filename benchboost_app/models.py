"""
BenchBoost data contract.

The backend owns the schema; this module only names what the dashboard
relies on: table names, the role and status vocabularies, the sort keys
offered on the task list, and helpers that turn raw JSON rows into
template-friendly dictionaries.

The enums inherit from ``str`` as well as ``Enum`` so that their values
serialise naturally to JSON and compare directly against the plain strings
returned by the backend without explicit ``.value`` access.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

PROFILES_TABLE = "profiles"
TASKS_TABLE = "tasks"
USER_ROLES_TABLE = "user_roles"

# Embeds the creator's display name into task rows.
TASK_COLUMNS_WITH_CREATOR = "*,profiles:created_by(full_name)"

STATUS_FILTER_ALL = "all"


class Role(str, Enum):
    """
    Application roles stored in the ``user_roles`` table.

    Attributes:
        ADMIN: Manages users and roles, sees every task.
        TEAM_LEAD: Creates and verifies tasks.
        BENCH_EMPLOYEE: Browses, claims and completes tasks.
    """

    ADMIN = "admin"
    TEAM_LEAD = "team_lead"
    BENCH_EMPLOYEE = "bench_employee"


class TaskStatus(str, Enum):
    """
    Task lifecycle statuses.

    pending -> in_progress (claim) -> completed (assignee) -> verified
    (team lead or admin).
    """

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    VERIFIED = "verified"


class TaskSort(str, Enum):
    """Sort keys offered on the task list page."""

    CREATED_AT = "created_at"
    DUE_DATE = "due_date"
    POINTS = "points"


ROLE_LABELS = {
    Role.ADMIN: "Admin",
    Role.TEAM_LEAD: "Team Lead",
    Role.BENCH_EMPLOYEE: "Bench Employee",
}

SORT_LABELS = {
    TaskSort.CREATED_AT: "Newest First",
    TaskSort.DUE_DATE: "Due Date",
    TaskSort.POINTS: "Points (High to Low)",
}


def parse_iso_datetime(iso_string: str | None) -> datetime | None:
    """
    Parse an ISO-8601 timestamp returned by the backend.

    Handles the ``Z`` suffix by replacing it with the equivalent
    ``+00:00`` offset that :meth:`datetime.fromisoformat` understands.

    Returns:
        A :class:`datetime`, or ``None`` if the input was empty or could
        not be parsed.
    """
    if not iso_string:
        return None
    if isinstance(iso_string, datetime):
        return iso_string
    try:
        return datetime.fromisoformat(iso_string.replace("Z", "+00:00"))
    except ValueError:
        return None


def deserialize_task(data: dict[str, Any]) -> dict[str, Any]:
    """
    Convert a raw ``tasks`` row into a template-friendly dictionary.

    Timestamps become :class:`datetime` objects, ``points`` becomes an
    int, and the embedded creator profile is flattened into
    ``creator_name``.
    """
    task = dict(data)
    task["due_date"] = parse_iso_datetime(task.get("due_date"))
    task["created_at"] = parse_iso_datetime(task.get("created_at"))
    task["completed_at"] = parse_iso_datetime(task.get("completed_at"))
    task["points"] = int(task.get("points") or 0)
    task["description"] = task.get("description") or ""
    creator = task.get("profiles") or {}
    task["creator_name"] = creator.get("full_name") or "Unknown"
    return task


def deserialize_profile(data: dict[str, Any]) -> dict[str, Any]:
    """Convert a raw ``profiles`` row into a template-friendly dictionary."""
    profile = dict(data)
    profile["created_at"] = parse_iso_datetime(profile.get("created_at"))
    profile["total_points"] = int(profile.get("total_points") or 0)
    return profile
