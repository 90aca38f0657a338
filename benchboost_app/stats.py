"""
Aggregations behind the dashboard, progress, leaderboard, reports and
analytics pages.

All functions are pure: they take rows already fetched (and deserialised)
from the backend and return plain dictionaries for the templates.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from typing import Any

from .models import Role, TaskStatus
from .rules import as_aware, is_overdue, resolve_role

DONE_STATUSES = frozenset({TaskStatus.COMPLETED, TaskStatus.VERIFIED})
OPEN_STATUSES = frozenset({TaskStatus.PENDING, TaskStatus.IN_PROGRESS})


def _rate(part: int, whole: int) -> float:
    if whole <= 0:
        return 0.0
    return round(100.0 * part / whole, 1)


def _newest_first(tasks: Iterable[Mapping[str, Any]]) -> list[Mapping[str, Any]]:
    floor = datetime.min.replace(tzinfo=timezone.utc)
    return sorted(tasks, key=lambda task: as_aware(task.get("created_at"), floor), reverse=True)


def dashboard_stats(
    tasks: list[Mapping[str, Any]],
    role: str | Role | None,
    profile: Mapping[str, Any] | None,
    total_users: int = 0,
    recent_limit: int = 5,
) -> dict[str, Any]:
    """
    Headline numbers for the dashboard.

    ``tasks`` is the caller's visible task set. ``total_users`` is only
    reported for admins.
    """
    role = resolve_role(role)
    return {
        "total_tasks": len(tasks),
        "completed_tasks": sum(1 for task in tasks if task.get("status") in DONE_STATUSES),
        "pending_tasks": sum(1 for task in tasks if task.get("status") in OPEN_STATUSES),
        "total_points": int((profile or {}).get("total_points") or 0),
        "total_users": total_users if role is Role.ADMIN else None,
        "recent_tasks": _newest_first(tasks)[:recent_limit],
    }


def progress_summary(
    tasks: Iterable[Mapping[str, Any]],
    user_id: str,
    profile: Mapping[str, Any] | None,
) -> dict[str, Any]:
    """Personal progress for a bench employee over the tasks assigned to them."""
    mine = [task for task in tasks if task.get("assigned_to") == user_id]
    by_status = Counter(task.get("status") for task in mine)
    verified = [task for task in mine if task.get("status") == TaskStatus.VERIFIED]
    awaiting = [task for task in mine if task.get("status") == TaskStatus.COMPLETED]
    return {
        "assigned": len(mine),
        "status_counts": {status.value: by_status.get(status.value, 0) for status in TaskStatus},
        "verified_points": sum(int(task.get("points") or 0) for task in verified),
        "pending_points": sum(int(task.get("points") or 0) for task in awaiting),
        "total_points": int((profile or {}).get("total_points") or 0),
        "completion_rate": _rate(len(verified) + len(awaiting), len(mine)),
        "active_tasks": [task for task in mine if task.get("status") == TaskStatus.IN_PROGRESS],
        "history": _newest_first(verified + awaiting),
    }


def rank_leaderboard(profiles: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
    """
    Rank profiles by points using standard competition ranking.

    Equal point totals share a rank and the next rank skips accordingly
    (1, 2, 2, 4). Ties are listed alphabetically by name.
    """
    ordered = sorted(
        profiles,
        key=lambda profile: (
            -int(profile.get("total_points") or 0),
            (profile.get("full_name") or "").lower(),
        ),
    )
    ranked = []
    previous_points = None
    rank = 0
    for position, profile in enumerate(ordered, start=1):
        points = int(profile.get("total_points") or 0)
        if points != previous_points:
            rank = position
            previous_points = points
        ranked.append({**profile, "rank": rank, "total_points": points})
    return ranked


def build_reports(
    tasks: Iterable[Mapping[str, Any]],
    members: Iterable[Mapping[str, Any]],
    now: datetime | None = None,
) -> list[dict[str, Any]]:
    """
    Per-assignee performance rows.

    Args:
        tasks: The reporting scope (all tasks for admins, own tasks for
            team leads).
        members: Profiles used to name assignees.

    Returns:
        One row per assignee present in ``tasks``, busiest first.
    """
    names = {member.get("user_id"): member.get("full_name") or member.get("email") for member in members}
    rows: dict[str, dict[str, Any]] = {}
    for task in tasks:
        assignee = task.get("assigned_to")
        if not assignee:
            continue
        row = rows.setdefault(
            assignee,
            {
                "user_id": assignee,
                "name": names.get(assignee) or "Unknown",
                "assigned": 0,
                "in_progress": 0,
                "completed": 0,
                "verified": 0,
                "overdue": 0,
                "points_earned": 0,
            },
        )
        status = task.get("status")
        row["assigned"] += 1
        if status == TaskStatus.IN_PROGRESS:
            row["in_progress"] += 1
        elif status == TaskStatus.COMPLETED:
            row["completed"] += 1
        elif status == TaskStatus.VERIFIED:
            row["verified"] += 1
            row["points_earned"] += int(task.get("points") or 0)
        if is_overdue(task, now):
            row["overdue"] += 1

    for row in rows.values():
        row["completion_rate"] = _rate(row["completed"] + row["verified"], row["assigned"])
    return sorted(rows.values(), key=lambda row: (-row["assigned"], row["name"].lower()))


def analytics_summary(
    tasks: list[Mapping[str, Any]],
    profiles: list[Mapping[str, Any]],
    roles: Mapping[str, str | Role],
    top_limit: int = 5,
) -> dict[str, Any]:
    """
    Organisation-wide analytics for admins.

    Args:
        tasks: Every task.
        profiles: Every profile.
        roles: ``user_id`` to role mapping; users without an entry count
            as bench employees.
    """
    status_counts = Counter(task.get("status") for task in tasks)
    role_counts = Counter(resolve_role(roles.get(profile.get("user_id"))) for profile in profiles)

    per_month: Counter[str] = Counter()
    for task in tasks:
        created_at = task.get("created_at")
        if created_at is not None:
            per_month[created_at.strftime("%Y-%m")] += 1

    verified = [task for task in tasks if task.get("status") == TaskStatus.VERIFIED]
    done = sum(1 for task in tasks if task.get("status") in DONE_STATUSES)
    return {
        "total_tasks": len(tasks),
        "total_users": len(profiles),
        "status_counts": {status.value: status_counts.get(status.value, 0) for status in TaskStatus},
        "role_counts": {role.value: role_counts.get(role, 0) for role in Role},
        "points_awarded": sum(int(task.get("points") or 0) for task in verified),
        "completion_rate": _rate(done, len(tasks)),
        "tasks_per_month": sorted(per_month.items()),
        "top_contributors": rank_leaderboard(profiles)[:top_limit],
    }
