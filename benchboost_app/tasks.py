"""
Task queries and lifecycle transitions.

Each transition is a single conditional update against the ``tasks``
table. The guard columns (current status, assignee) travel as filters and
the backend returns the rows it actually changed, so an empty result means
the guard no longer held. That is reported as :class:`TaskTransitionError`;
there is no locking or retry, and two employees racing for the same task
are arbitrated only by whichever update the backend applies first.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

import requests

from .backend import BackendClient, BackendError, eq, is_null
from .models import TASK_COLUMNS_WITH_CREATOR, TASKS_TABLE, Role, TaskStatus, deserialize_task
from .rules import can_claim, can_complete, can_verify, resolve_role, visibility_filters
from .users import award_points

logger = logging.getLogger(__name__)


class TaskTransitionError(Exception):
    """A task could not move to the requested status."""


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def fetch_visible_tasks(
    client: BackendClient, token: str, role: Role | str, user_id: str
) -> list[dict[str, Any]]:
    """Tasks ``role`` may see, newest first, with the creator's name embedded."""
    rows = client.select(
        TASKS_TABLE,
        token,
        columns=TASK_COLUMNS_WITH_CREATOR,
        filters=visibility_filters(role, user_id),
        order="created_at.desc",
    )
    return [deserialize_task(row) for row in rows]


def fetch_task(client: BackendClient, token: str, task_id: str) -> dict[str, Any] | None:
    row = client.select_one(
        TASKS_TABLE, token, columns=TASK_COLUMNS_WITH_CREATOR, filters={"id": eq(task_id)}
    )
    return deserialize_task(row) if row else None


def fetch_assigned_tasks(client: BackendClient, token: str, user_id: str) -> list[dict[str, Any]]:
    rows = client.select(
        TASKS_TABLE,
        token,
        columns=TASK_COLUMNS_WITH_CREATOR,
        filters={"assigned_to": eq(user_id)},
        order="created_at.desc",
    )
    return [deserialize_task(row) for row in rows]


def fetch_scoped_tasks(
    client: BackendClient, token: str, role: Role | str, user_id: str
) -> list[dict[str, Any]]:
    """Reporting scope: every task for admins, own tasks for team leads."""
    filters = {} if resolve_role(role) is Role.ADMIN else {"created_by": eq(user_id)}
    rows = client.select(TASKS_TABLE, token, filters=filters, order="created_at.desc")
    return [deserialize_task(row) for row in rows]


def fetch_awaiting_verification(
    client: BackendClient, token: str, role: Role | str, user_id: str
) -> list[dict[str, Any]]:
    """Completed tasks the caller may verify, oldest completion first."""
    filters = {"status": eq(TaskStatus.COMPLETED.value)}
    if resolve_role(role) is not Role.ADMIN:
        filters["created_by"] = eq(user_id)
    rows = client.select(
        TASKS_TABLE,
        token,
        columns=TASK_COLUMNS_WITH_CREATOR,
        filters=filters,
        order="completed_at.asc",
    )
    return [deserialize_task(row) for row in rows]


def create_task(
    client: BackendClient, token: str, data: dict[str, Any], created_by: str
) -> dict[str, Any]:
    rows = client.insert(TASKS_TABLE, token, {**data, "created_by": created_by})
    task = deserialize_task(rows[0]) if rows else {}
    logger.info("Task %s created by %s", task.get("id"), created_by)
    return task


def update_task(
    client: BackendClient, token: str, task_id: str, data: dict[str, Any]
) -> dict[str, Any]:
    rows = client.update(TASKS_TABLE, token, data, filters={"id": eq(task_id)})
    if not rows:
        raise TaskTransitionError("Task not found")
    return deserialize_task(rows[0])


def delete_task(client: BackendClient, token: str, task_id: str) -> None:
    rows = client.delete(TASKS_TABLE, token, filters={"id": eq(task_id)})
    if not rows:
        raise TaskTransitionError("Task not found")
    logger.info("Task %s deleted", task_id)


def claim_task(
    client: BackendClient, token: str, task: dict[str, Any], role: Role | str, user_id: str
) -> dict[str, Any]:
    """
    Self-assign a pending, unassigned task.

    Raises:
        TaskTransitionError: If the caller may not claim the task, or
            another user claimed it first.
    """
    if not can_claim(role, task):
        raise TaskTransitionError("This task cannot be claimed")
    rows = client.update(
        TASKS_TABLE,
        token,
        {"assigned_to": user_id, "status": TaskStatus.IN_PROGRESS.value},
        filters={
            "id": eq(task["id"]),
            "assigned_to": is_null(),
            "status": eq(TaskStatus.PENDING.value),
        },
    )
    if not rows:
        raise TaskTransitionError("Task was already claimed by someone else")
    logger.info("Task %s claimed by %s", task["id"], user_id)
    return deserialize_task(rows[0])


def complete_task(
    client: BackendClient, token: str, task: dict[str, Any], role: Role | str, user_id: str
) -> dict[str, Any]:
    """
    Mark the caller's in-progress task completed.

    Raises:
        TaskTransitionError: If the caller is not the assignee or the task
            is no longer in progress.
    """
    if not can_complete(role, task, user_id):
        raise TaskTransitionError("Only the assignee can complete this task")
    rows = client.update(
        TASKS_TABLE,
        token,
        {"status": TaskStatus.COMPLETED.value, "completed_at": _utc_now()},
        filters={
            "id": eq(task["id"]),
            "assigned_to": eq(user_id),
            "status": eq(TaskStatus.IN_PROGRESS.value),
        },
    )
    if not rows:
        raise TaskTransitionError("Task is no longer in progress")
    logger.info("Task %s completed by %s", task["id"], user_id)
    return deserialize_task(rows[0])


def verify_task(
    client: BackendClient, token: str, task: dict[str, Any], role: Role | str, user_id: str
) -> dict[str, Any]:
    """
    Confirm a completed task and credit its points to the assignee.

    The status change and the points credit are two separate writes. When
    the credit fails the task stays verified and the returned row carries
    ``points_credited=False`` so the caller can report the missing points.
    """
    if not can_verify(role, task, user_id):
        raise TaskTransitionError("You cannot verify this task")
    rows = client.update(
        TASKS_TABLE,
        token,
        {"status": TaskStatus.VERIFIED.value},
        filters={"id": eq(task["id"]), "status": eq(TaskStatus.COMPLETED.value)},
    )
    if not rows:
        raise TaskTransitionError("Task is no longer awaiting verification")
    verified = deserialize_task(rows[0])
    verified["points_credited"] = True
    if verified.get("assigned_to"):
        try:
            award_points(client, token, verified["assigned_to"], verified["points"])
        except (BackendError, requests.RequestException) as error:
            logger.error(
                "Task %s verified but %s points not credited to %s: %s",
                task["id"], verified["points"], verified["assigned_to"], error,
            )
            verified["points_credited"] = False
    logger.info("Task %s verified by %s", task["id"], user_id)
    return verified


def reject_task(
    client: BackendClient, token: str, task: dict[str, Any], role: Role | str, user_id: str
) -> dict[str, Any]:
    """Send a completed task back to its assignee as in progress."""
    if not can_verify(role, task, user_id):
        raise TaskTransitionError("You cannot review this task")
    rows = client.update(
        TASKS_TABLE,
        token,
        {"status": TaskStatus.IN_PROGRESS.value, "completed_at": None},
        filters={"id": eq(task["id"]), "status": eq(TaskStatus.COMPLETED.value)},
    )
    if not rows:
        raise TaskTransitionError("Task is no longer awaiting verification")
    logger.info("Task %s sent back by %s", task["id"], user_id)
    return deserialize_task(rows[0])
