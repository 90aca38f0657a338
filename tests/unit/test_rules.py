"""
Unit tests for the pure business rules.

Covers role resolution, sidebar menus, page access, task visibility,
transition permissions, task-list filtering and sorting, and task form
validation. None of these touch Flask or the backend.
"""

from datetime import datetime, timedelta, timezone

import pytest

from benchboost_app.models import Role, TaskStatus
from benchboost_app.rules import (
    can_access,
    can_claim,
    can_complete,
    can_delete,
    can_edit,
    can_verify,
    filter_and_sort_tasks,
    is_overdue,
    is_visible,
    menu_for_role,
    resolve_role,
    validate_task_form,
    visibility_filters,
)

pytestmark = pytest.mark.unit

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _task(**fields):
    task = {
        "id": "t-1",
        "title": "Write onboarding guide",
        "description": "Document the local setup",
        "points": 10,
        "status": TaskStatus.PENDING.value,
        "assigned_to": None,
        "created_by": "lead-1",
        "created_at": NOW,
        "due_date": NOW + timedelta(days=3),
    }
    task.update(fields)
    return task


# =============================================================================
# Roles, menus, access
# =============================================================================

@pytest.mark.parametrize("stored", [None, "", "superuser"])
def test_unknown_role_falls_back_to_bench_employee(stored):
    assert resolve_role(stored) is Role.BENCH_EMPLOYEE


def test_known_role_string_is_resolved():
    assert resolve_role("team_lead") is Role.TEAM_LEAD


def test_each_role_gets_its_own_menu():
    admin_urls = [item["url"] for item in menu_for_role(Role.ADMIN)]
    lead_urls = [item["url"] for item in menu_for_role(Role.TEAM_LEAD)]
    employee_urls = [item["url"] for item in menu_for_role(Role.BENCH_EMPLOYEE)]

    assert "/users" in admin_urls and "/analytics" in admin_urls
    assert "/create-task" in lead_urls and "/verify-tasks" in lead_urls
    assert "/progress" in employee_urls and "/leaderboard" in employee_urls
    assert "/users" not in lead_urls
    assert "/create-task" not in employee_urls


@pytest.mark.parametrize(
    "role,allowed",
    [
        (Role.ADMIN, True),
        (Role.TEAM_LEAD, True),
        (Role.BENCH_EMPLOYEE, False),
    ],
)
def test_only_leadership_can_open_create_task(role, allowed):
    assert can_access(role, "create-task") is allowed


@pytest.mark.parametrize(
    "role,allowed",
    [
        (Role.ADMIN, True),
        (Role.TEAM_LEAD, False),
        (Role.BENCH_EMPLOYEE, False),
    ],
)
def test_only_admin_can_open_users(role, allowed):
    assert can_access(role, "/users") is allowed


@pytest.mark.parametrize(
    "role,allowed",
    [
        (Role.ADMIN, True),
        (Role.TEAM_LEAD, True),
        (Role.BENCH_EMPLOYEE, False),
    ],
)
def test_only_leadership_can_delete_tasks(role, allowed):
    assert can_access(role, "delete-task") is allowed


def test_unlisted_routes_are_open_to_everyone():
    assert can_access(Role.BENCH_EMPLOYEE, "dashboard")
    assert can_access(Role.BENCH_EMPLOYEE, "leaderboard")


# =============================================================================
# Visibility
# =============================================================================

def test_employee_visibility_filter_covers_unassigned_and_own():
    filters = visibility_filters(Role.BENCH_EMPLOYEE, "emp-1")

    assert filters == {"or": "(assigned_to.is.null,assigned_to.eq.emp-1)"}


def test_team_lead_sees_only_own_tasks_and_admin_sees_all():
    assert visibility_filters(Role.TEAM_LEAD, "lead-1") == {"created_by": "eq.lead-1"}
    assert visibility_filters(Role.ADMIN, "admin-1") == {}


def test_is_visible_matches_filters():
    unassigned = _task()
    someone_elses = _task(assigned_to="emp-2")

    assert is_visible(unassigned, Role.BENCH_EMPLOYEE, "emp-1")
    assert not is_visible(someone_elses, Role.BENCH_EMPLOYEE, "emp-1")
    assert not is_visible(unassigned, Role.TEAM_LEAD, "lead-2")
    assert is_visible(someone_elses, Role.ADMIN, "admin-1")


# =============================================================================
# Transitions
# =============================================================================

def test_employee_can_claim_unassigned_pending_task():
    assert can_claim(Role.BENCH_EMPLOYEE, _task())


def test_employee_cannot_claim_assigned_task():
    task = _task(assigned_to="emp-2")

    assert not can_claim(Role.BENCH_EMPLOYEE, task)


def test_claim_requires_pending_status_and_employee_role():
    assert not can_claim(Role.BENCH_EMPLOYEE, _task(status=TaskStatus.COMPLETED.value))
    assert not can_claim(Role.TEAM_LEAD, _task())


def test_only_assignee_can_complete_in_progress_task():
    task = _task(status=TaskStatus.IN_PROGRESS.value, assigned_to="emp-1")

    assert can_complete(Role.BENCH_EMPLOYEE, task, "emp-1")
    assert not can_complete(Role.BENCH_EMPLOYEE, task, "emp-2")
    assert not can_complete(Role.BENCH_EMPLOYEE, _task(assigned_to="emp-1"), "emp-1")


def test_team_lead_verifies_only_own_completed_tasks():
    completed = _task(status=TaskStatus.COMPLETED.value, assigned_to="emp-1")

    assert can_verify(Role.TEAM_LEAD, completed, "lead-1")
    assert not can_verify(Role.TEAM_LEAD, completed, "lead-2")
    assert can_verify(Role.ADMIN, completed, "admin-1")
    assert not can_verify(Role.ADMIN, _task(), "admin-1")
    assert not can_verify(Role.BENCH_EMPLOYEE, completed, "emp-1")


def test_edit_and_delete_follow_task_ownership():
    task = _task()
    verified = _task(status=TaskStatus.VERIFIED.value)

    assert can_edit(Role.TEAM_LEAD, task, "lead-1")
    assert not can_edit(Role.TEAM_LEAD, task, "lead-2")
    assert not can_edit(Role.BENCH_EMPLOYEE, task, "lead-1")
    assert can_delete(Role.ADMIN, task, "admin-1")
    assert not can_delete(Role.ADMIN, verified, "admin-1")


# =============================================================================
# Filtering & sorting
# =============================================================================

@pytest.fixture
def task_set():
    return [
        _task(id="a", title="Fix login bug", points=5, status="pending",
              created_at=NOW - timedelta(days=2), due_date=NOW + timedelta(days=5)),
        _task(id="b", title="Review PR", description="Check the LOGIN flow", points=30,
              status="in_progress", created_at=NOW, due_date=None),
        _task(id="c", title="Update docs", points=15, status="completed",
              created_at=NOW - timedelta(days=1), due_date=NOW + timedelta(days=1)),
    ]


def test_search_is_case_insensitive_over_title_and_description(task_set):
    result = filter_and_sort_tasks(task_set, search_term="login")

    assert {task["id"] for task in result} == {"a", "b"}


def test_status_filter_keeps_only_matching_status(task_set):
    result = filter_and_sort_tasks(task_set, status_filter="completed")

    assert [task["id"] for task in result] == ["c"]


def test_unknown_status_filter_behaves_like_all(task_set):
    assert len(filter_and_sort_tasks(task_set, status_filter="archived")) == 3


def test_default_sort_is_newest_first(task_set):
    assert [task["id"] for task in filter_and_sort_tasks(task_set)] == ["b", "c", "a"]


def test_points_sort_is_high_to_low(task_set):
    result = filter_and_sort_tasks(task_set, sort_by="points")

    assert [task["id"] for task in result] == ["b", "c", "a"]


def test_due_date_sort_puts_undated_tasks_last(task_set):
    result = filter_and_sort_tasks(task_set, sort_by="due_date")

    assert [task["id"] for task in result] == ["c", "a", "b"]


def test_filtering_is_pure(task_set):
    snapshot = [dict(task) for task in task_set]

    first = filter_and_sort_tasks(task_set, "o", "all", "points")
    second = filter_and_sort_tasks(task_set, "o", "all", "points")

    assert first == second
    assert task_set == snapshot


def test_overdue_until_verified():
    late = _task(due_date=NOW - timedelta(hours=1))

    assert is_overdue(late, NOW)
    assert not is_overdue({**late, "status": TaskStatus.VERIFIED.value}, NOW)
    assert not is_overdue(_task(due_date=None), NOW)


# =============================================================================
# Form validation
# =============================================================================

def test_valid_form_is_normalised():
    data, error = validate_task_form(
        {"title": "  Ship it ", "description": "Deploy", "points": "25", "due_date": "2026-04-01"}
    )

    assert error is None
    assert data == {
        "title": "Ship it",
        "description": "Deploy",
        "points": 25,
        "due_date": "2026-04-01T00:00:00+00:00",
    }


@pytest.mark.parametrize("missing", ["title", "description", "points", "due_date"])
def test_missing_field_is_rejected(missing):
    form = {"title": "T", "description": "D", "points": "5", "due_date": "2026-04-01"}
    form[missing] = ""

    data, error = validate_task_form(form)

    assert data is None
    assert error == "Please fill in all fields with valid values"


@pytest.mark.parametrize("points", ["0", "-3", "abc", "2.5"])
def test_points_must_be_positive_integer(points):
    data, error = validate_task_form(
        {"title": "T", "description": "D", "points": points, "due_date": "2026-04-01"}
    )

    assert data is None
    assert "Points" in error


def test_title_longer_than_limit_is_rejected():
    _, error = validate_task_form(
        {"title": "x" * 201, "description": "D", "points": "5", "due_date": "2026-04-01"}
    )

    assert error == "Title must be 200 characters or less"


def test_invalid_due_date_is_rejected():
    _, error = validate_task_form(
        {"title": "T", "description": "D", "points": "5", "due_date": "next week"}
    )

    assert error == "Invalid due date"
