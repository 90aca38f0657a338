"""
Business rules for BenchBoost.

Everything in this module is a pure function of its arguments: role
resolution, which tasks a role may see, which transitions a user may
trigger, which pages a role may open, the sidebar menu, task-list
filtering and sorting, and task form validation. Route handlers call these
before talking to the backend; the backend's own row-level security
remains the authority.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import date, datetime, time, timezone
from typing import Any

from .backend import any_of, eq
from .models import STATUS_FILTER_ALL, Role, TaskSort, TaskStatus

DEFAULT_ROLE = Role.BENCH_EMPLOYEE
MAX_TITLE_LENGTH = 200

LEADERSHIP_ROLES = frozenset({Role.ADMIN, Role.TEAM_LEAD})


def resolve_role(value: str | Role | None) -> Role:
    """Map a stored role to :class:`Role`, falling back to bench employee."""
    if isinstance(value, Role):
        return value
    try:
        return Role(value)
    except ValueError:
        return DEFAULT_ROLE


# =====================================================================
# Navigation & route access
# =====================================================================

ROLE_MENUS: dict[Role, list[dict[str, str]]] = {
    Role.ADMIN: [
        {"title": "Dashboard", "url": "/dashboard"},
        {"title": "Manage Users", "url": "/users"},
        {"title": "All Tasks", "url": "/tasks"},
        {"title": "Analytics", "url": "/analytics"},
        {"title": "Reports", "url": "/reports"},
    ],
    Role.TEAM_LEAD: [
        {"title": "Dashboard", "url": "/dashboard"},
        {"title": "My Tasks", "url": "/tasks"},
        {"title": "Create Task", "url": "/create-task"},
        {"title": "Verify Tasks", "url": "/verify-tasks"},
        {"title": "Team Reports", "url": "/reports"},
    ],
    Role.BENCH_EMPLOYEE: [
        {"title": "Dashboard", "url": "/dashboard"},
        {"title": "Browse Tasks", "url": "/tasks"},
        {"title": "My Progress", "url": "/progress"},
        {"title": "Leaderboard", "url": "/leaderboard"},
    ],
}

SETTINGS_MENU_ITEM = {"title": "Settings", "url": "/settings"}

# Routes missing from this table are open to every signed-in role.
ROUTE_ACCESS: dict[str, frozenset[Role]] = {
    "create-task": LEADERSHIP_ROLES,
    "delete-task": LEADERSHIP_ROLES,
    "verify-tasks": LEADERSHIP_ROLES,
    "reports": LEADERSHIP_ROLES,
    "users": frozenset({Role.ADMIN}),
    "analytics": frozenset({Role.ADMIN}),
    "progress": frozenset({Role.BENCH_EMPLOYEE}),
}


def menu_for_role(role: str | Role | None) -> list[dict[str, str]]:
    """Sidebar items for ``role``; unknown roles get the employee menu."""
    return ROLE_MENUS[resolve_role(role)]


def can_access(role: str | Role | None, route: str) -> bool:
    """Return True when ``role`` may open the page named ``route``."""
    allowed = ROUTE_ACCESS.get(route.strip("/"))
    if allowed is None:
        return True
    return resolve_role(role) in allowed


# =====================================================================
# Visibility
# =====================================================================


def visibility_filters(role: str | Role | None, user_id: str) -> dict[str, str]:
    """
    Backend filters selecting the tasks ``role`` may see.

    Bench employees see unassigned tasks plus their own; team leads see
    the tasks they created; admins see everything.
    """
    role = resolve_role(role)
    if role is Role.BENCH_EMPLOYEE:
        return {"or": any_of("assigned_to.is.null", f"assigned_to.eq.{user_id}")}
    if role is Role.TEAM_LEAD:
        return {"created_by": eq(user_id)}
    return {}


def is_visible(task: Mapping[str, Any], role: str | Role | None, user_id: str) -> bool:
    """Predicate equivalent of :func:`visibility_filters` for a single row."""
    role = resolve_role(role)
    if role is Role.BENCH_EMPLOYEE:
        return task.get("assigned_to") in (None, user_id)
    if role is Role.TEAM_LEAD:
        return task.get("created_by") == user_id
    return True


# =====================================================================
# Transitions
# =====================================================================


def can_claim(role: str | Role | None, task: Mapping[str, Any]) -> bool:
    """Only bench employees claim, and only pending unassigned tasks."""
    return (
        resolve_role(role) is Role.BENCH_EMPLOYEE
        and task.get("status") == TaskStatus.PENDING
        and not task.get("assigned_to")
    )


def can_complete(role: str | Role | None, task: Mapping[str, Any], user_id: str) -> bool:
    """Only the assignee completes, and only from in_progress."""
    return (
        resolve_role(role) is Role.BENCH_EMPLOYEE
        and task.get("status") == TaskStatus.IN_PROGRESS
        and task.get("assigned_to") == user_id
    )


def _manages(role: Role, task: Mapping[str, Any], user_id: str) -> bool:
    if role is Role.ADMIN:
        return True
    return role is Role.TEAM_LEAD and task.get("created_by") == user_id


def can_verify(role: str | Role | None, task: Mapping[str, Any], user_id: str) -> bool:
    """Admins verify any completed task; team leads only their own."""
    return task.get("status") == TaskStatus.COMPLETED and _manages(resolve_role(role), task, user_id)


def can_edit(role: str | Role | None, task: Mapping[str, Any], user_id: str) -> bool:
    return _manages(resolve_role(role), task, user_id)


def can_delete(role: str | Role | None, task: Mapping[str, Any], user_id: str) -> bool:
    # Verified tasks carry awarded points and stay for the record.
    return task.get("status") != TaskStatus.VERIFIED and _manages(resolve_role(role), task, user_id)


# =====================================================================
# Listing
# =====================================================================

_FAR_FUTURE = datetime.max.replace(tzinfo=timezone.utc)
_FAR_PAST = datetime.min.replace(tzinfo=timezone.utc)


def as_aware(value: datetime | None, fallback: datetime) -> datetime:
    """Treat naive timestamps as UTC; ``None`` becomes ``fallback``."""
    if value is None:
        return fallback
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def filter_and_sort_tasks(
    tasks: Iterable[Mapping[str, Any]],
    search_term: str = "",
    status_filter: str = STATUS_FILTER_ALL,
    sort_by: str = TaskSort.CREATED_AT.value,
) -> list[Mapping[str, Any]]:
    """
    Apply the task-list search, status filter and sort order.

    Args:
        tasks: The unfiltered task set (deserialised rows).
        search_term: Case-insensitive substring matched against title and
            description. Blank matches everything.
        status_filter: ``"all"`` or a :class:`TaskStatus` value. Unknown
            values behave like ``"all"``.
        sort_by: A :class:`TaskSort` value. ``points`` sorts high to low,
            ``due_date`` soonest first with undated tasks last, anything
            else newest first by ``created_at``.

    Returns:
        A new list; the input is not modified.
    """
    needle = (search_term or "").strip().lower()
    statuses = {status.value for status in TaskStatus}

    selected = []
    for task in tasks:
        if needle:
            haystack = f"{task.get('title') or ''}\n{task.get('description') or ''}".lower()
            if needle not in haystack:
                continue
        if status_filter in statuses and task.get("status") != status_filter:
            continue
        selected.append(task)

    if sort_by == TaskSort.POINTS:
        selected.sort(key=lambda task: int(task.get("points") or 0), reverse=True)
    elif sort_by == TaskSort.DUE_DATE:
        selected.sort(key=lambda task: as_aware(task.get("due_date"), _FAR_FUTURE))
    else:
        selected.sort(key=lambda task: as_aware(task.get("created_at"), _FAR_PAST), reverse=True)
    return selected


def is_overdue(task: Mapping[str, Any], now: datetime | None = None) -> bool:
    """A task is overdue once its due date passes, until it is verified."""
    due_date = task.get("due_date")
    if due_date is None or task.get("status") == TaskStatus.VERIFIED:
        return False
    now = now or datetime.now(timezone.utc)
    return as_aware(due_date, _FAR_FUTURE) < as_aware(now, now)


# =====================================================================
# Validation
# =====================================================================


def _parse_due_date(value: str) -> datetime:
    """Accept ``YYYY-MM-DD`` or a full ISO timestamp; return aware UTC."""
    value = value.strip()
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        parsed = datetime.combine(date.fromisoformat(value), time.min)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def validate_task_form(form: Mapping[str, Any]) -> tuple[dict[str, Any] | None, str | None]:
    """
    Validate task form fields.

    Args:
        form: Submitted ``title``, ``description``, ``points`` and
            ``due_date`` values.

    Returns:
        Tuple of (task_data, error_message). ``task_data`` is ready to be
        written to the backend; exactly one element is ``None``.
    """
    title = (form.get("title") or "").strip()
    description = (form.get("description") or "").strip()
    points_raw = str(form.get("points") or "").strip()
    due_date_raw = str(form.get("due_date") or "").strip()

    if not title or not description or not points_raw or not due_date_raw:
        return None, "Please fill in all fields with valid values"
    if len(title) > MAX_TITLE_LENGTH:
        return None, f"Title must be {MAX_TITLE_LENGTH} characters or less"

    try:
        points = int(points_raw)
    except ValueError:
        return None, "Points must be a whole number"
    if points <= 0:
        return None, "Points must be a positive number"

    try:
        due_date = _parse_due_date(due_date_raw)
    except ValueError:
        return None, "Invalid due date"

    return {
        "title": title,
        "description": description,
        "points": points,
        "due_date": due_date.isoformat(),
    }, None
