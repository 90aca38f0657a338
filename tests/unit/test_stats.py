"""
Unit tests for dashboard, progress, leaderboard, report and analytics
aggregations.
"""

from datetime import datetime, timedelta, timezone

import pytest

from benchboost_app.models import Role
from benchboost_app.stats import (
    analytics_summary,
    build_reports,
    dashboard_stats,
    progress_summary,
    rank_leaderboard,
)

pytestmark = pytest.mark.unit

NOW = datetime(2026, 3, 1, tzinfo=timezone.utc)


def _task(task_id, status, assigned_to=None, points=10, days_ago=0, **fields):
    task = {
        "id": task_id,
        "status": status,
        "assigned_to": assigned_to,
        "points": points,
        "created_at": NOW - timedelta(days=days_ago),
        "due_date": NOW + timedelta(days=5),
    }
    task.update(fields)
    return task


def test_dashboard_counts_done_and_open_tasks():
    tasks = [
        _task("1", "pending"),
        _task("2", "in_progress"),
        _task("3", "completed"),
        _task("4", "verified"),
    ]

    stats = dashboard_stats(tasks, Role.TEAM_LEAD, {"total_points": 0}, total_users=9)

    assert stats["total_tasks"] == 4
    assert stats["completed_tasks"] == 2
    assert stats["pending_tasks"] == 2
    assert stats["total_users"] is None


def test_dashboard_reports_users_for_admin_and_limits_recent_tasks():
    tasks = [_task(str(index), "pending", days_ago=index) for index in range(8)]

    stats = dashboard_stats(tasks, Role.ADMIN, None, total_users=3, recent_limit=5)

    assert stats["total_users"] == 3
    assert stats["total_points"] == 0
    assert [task["id"] for task in stats["recent_tasks"]] == ["0", "1", "2", "3", "4"]


def test_progress_summary_splits_points_by_status():
    tasks = [
        _task("1", "verified", "emp-1", points=20),
        _task("2", "completed", "emp-1", points=5),
        _task("3", "in_progress", "emp-1"),
        _task("4", "verified", "emp-2", points=99),
    ]

    summary = progress_summary(tasks, "emp-1", {"total_points": 20})

    assert summary["assigned"] == 3
    assert summary["verified_points"] == 20
    assert summary["pending_points"] == 5
    assert summary["total_points"] == 20
    assert summary["completion_rate"] == pytest.approx(66.7)
    assert summary["status_counts"] == {
        "pending": 0,
        "in_progress": 1,
        "completed": 1,
        "verified": 1,
    }
    assert [task["id"] for task in summary["active_tasks"]] == ["3"]


def test_progress_summary_with_no_tasks():
    summary = progress_summary([], "emp-1", None)

    assert summary["assigned"] == 0
    assert summary["completion_rate"] == 0.0


def test_leaderboard_uses_competition_ranking():
    profiles = [
        {"user_id": "a", "full_name": "Zoe", "total_points": 50},
        {"user_id": "b", "full_name": "amy", "total_points": 30},
        {"user_id": "c", "full_name": "Bob", "total_points": 30},
        {"user_id": "d", "full_name": "Cat", "total_points": 10},
    ]

    ranked = rank_leaderboard(profiles)

    assert [(entry["user_id"], entry["rank"]) for entry in ranked] == [
        ("a", 1),
        ("b", 2),
        ("c", 2),
        ("d", 4),
    ]


def test_reports_group_by_assignee():
    tasks = [
        _task("1", "verified", "emp-1", points=20),
        _task("2", "in_progress", "emp-1", due_date=NOW - timedelta(days=1)),
        _task("3", "completed", "emp-2"),
        _task("4", "pending"),
    ]
    members = [
        {"user_id": "emp-1", "full_name": "Ada"},
        {"user_id": "emp-2", "full_name": None, "email": "bo@example.com"},
    ]

    rows = build_reports(tasks, members, now=NOW)

    assert [row["user_id"] for row in rows] == ["emp-1", "emp-2"]
    ada, bo = rows
    assert ada["name"] == "Ada"
    assert ada["assigned"] == 2
    assert ada["verified"] == 1
    assert ada["in_progress"] == 1
    assert ada["overdue"] == 1
    assert ada["points_earned"] == 20
    assert ada["completion_rate"] == 50.0
    assert bo["name"] == "bo@example.com"
    assert bo["completion_rate"] == 100.0


def test_analytics_summary_counts_roles_and_months():
    tasks = [
        _task("1", "verified", "emp-1", points=15, created_at=datetime(2026, 1, 3, tzinfo=timezone.utc)),
        _task("2", "pending", created_at=datetime(2026, 2, 1, tzinfo=timezone.utc)),
        _task("3", "completed", "emp-1", created_at=datetime(2026, 2, 9, tzinfo=timezone.utc)),
    ]
    profiles = [
        {"user_id": "adm", "full_name": "Admin", "total_points": 0},
        {"user_id": "emp-1", "full_name": "Ada", "total_points": 15},
        {"user_id": "new", "full_name": "Newbie", "total_points": 0},
    ]
    roles = {"adm": Role.ADMIN, "emp-1": "bench_employee"}

    summary = analytics_summary(tasks, profiles, roles)

    assert summary["total_tasks"] == 3
    assert summary["total_users"] == 3
    assert summary["role_counts"] == {"admin": 1, "team_lead": 0, "bench_employee": 2}
    assert summary["points_awarded"] == 15
    assert summary["completion_rate"] == pytest.approx(66.7)
    assert summary["tasks_per_month"] == [("2026-01", 1), ("2026-02", 2)]
    assert summary["top_contributors"][0]["user_id"] == "emp-1"


def test_recent_tasks_accept_naive_timestamps():
    tasks = [
        _task("aware", "pending", created_at=NOW - timedelta(days=1)),
        _task("naive", "pending", created_at=datetime(2026, 3, 1, 6, 0)),
        _task("undated", "pending", created_at=None),
    ]

    stats = dashboard_stats(tasks, Role.BENCH_EMPLOYEE, None)

    assert [task["id"] for task in stats["recent_tasks"]] == ["naive", "aware", "undated"]
