"""
Pages shared by every role.

Implements the dashboard, the task list with its claim/complete/delete
actions, the task form used for both creating and editing, the employee
progress page, the leaderboard and account settings. Each handler loads
what it needs from the backend with the signed-in user's token, applies
the pure rules from :mod:`benchboost_app.rules` and
:mod:`benchboost_app.stats`, and renders a template. Backend failures are
surfaced as flash messages; nothing is retried.
"""

from __future__ import annotations

import logging

from flask import Blueprint, current_app, flash, g, redirect, render_template, request, url_for

from ..auth import access_required, login_required
from ..backend import get_backend
from ..models import SORT_LABELS, STATUS_FILTER_ALL, Role, TaskSort, TaskStatus
from ..rules import (
    can_claim,
    can_complete,
    can_delete,
    can_edit,
    filter_and_sort_tasks,
    validate_task_form,
)
from ..stats import dashboard_stats, progress_summary, rank_leaderboard
from ..tasks import (
    claim_task,
    complete_task,
    create_task,
    delete_task,
    fetch_assigned_tasks,
    fetch_visible_tasks,
    update_task,
)
from ..users import count_profiles, fetch_leaderboard, update_profile
from .common import HANDLED_ERRORS, flash_failure, load_task_or_404

logger = logging.getLogger(__name__)

views_bp = Blueprint("views", __name__)

TASK_LIST_HEADINGS = {
    Role.BENCH_EMPLOYEE: ("Browse Tasks", "Find tasks to work on and earn points"),
    Role.TEAM_LEAD: ("My Tasks", "Manage and track your assigned tasks"),
    Role.ADMIN: ("All Tasks", "Overview of all system tasks"),
}


# =====================================================================
# Dashboard
# =====================================================================


@views_bp.route("/dashboard")
@login_required
def dashboard():
    """Headline stats and the most recent visible tasks."""
    backend = get_backend()
    status_code = 200
    tasks = []
    total_users = 0
    try:
        tasks = fetch_visible_tasks(backend, g.token, g.role, g.user_id)
        if g.role is Role.ADMIN:
            total_users = count_profiles(backend, g.token)
    except HANDLED_ERRORS as error:
        status_code = flash_failure(error, "Failed to load dashboard data")

    stats = dashboard_stats(
        tasks,
        g.role,
        g.profile,
        total_users=total_users,
        recent_limit=current_app.config["RECENT_TASKS_LIMIT"],
    )
    return render_template("dashboard.html", stats=stats, roles=Role), status_code


# =====================================================================
# Task list & transitions
# =====================================================================


@views_bp.route("/tasks")
@login_required
def task_list():
    """
    Render the tasks visible to the current role.

    Query parameters ``q`` (search), ``status`` (``all`` or a status) and
    ``sort`` (``created_at``, ``due_date`` or ``points``) are applied in
    memory to the visible set.
    """
    search_term = request.args.get("q", "")
    status_filter = request.args.get("status", STATUS_FILTER_ALL)
    sort_by = request.args.get("sort", TaskSort.CREATED_AT.value)

    status_code = 200
    tasks = []
    try:
        tasks = fetch_visible_tasks(get_backend(), g.token, g.role, g.user_id)
    except HANDLED_ERRORS as error:
        status_code = flash_failure(error, "Failed to fetch tasks")

    heading, subheading = TASK_LIST_HEADINGS[g.role]
    rows = [
        {
            "task": task,
            "can_claim": can_claim(g.role, task),
            "can_complete": can_complete(g.role, task, g.user_id),
            "can_edit": can_edit(g.role, task, g.user_id),
            "can_delete": can_delete(g.role, task, g.user_id),
        }
        for task in filter_and_sort_tasks(tasks, search_term, status_filter, sort_by)
    ]
    return (
        render_template(
            "tasks.html",
            rows=rows,
            heading=heading,
            subheading=subheading,
            statuses=TaskStatus,
            sort_labels=SORT_LABELS,
            search_term=search_term,
            current_status=status_filter,
            current_sort=sort_by,
            can_create=g.role in (Role.ADMIN, Role.TEAM_LEAD),
        ),
        status_code,
    )


def _back_to_tasks():
    target = request.form.get("next", "")
    # Local paths only.
    if not target.startswith("/") or target.startswith("//"):
        target = url_for("views.task_list")
    return redirect(target)


@views_bp.route("/tasks/<task_id>/claim", methods=["POST"])
@login_required
def claim(task_id: str):
    """Self-assign an unassigned pending task."""
    try:
        task = load_task_or_404(task_id)
        claim_task(get_backend(), g.token, task, g.role, g.user_id)
    except HANDLED_ERRORS as error:
        flash_failure(error, "Failed to claim task")
        return _back_to_tasks()
    flash("Task claimed successfully!", "success")
    return _back_to_tasks()


@views_bp.route("/tasks/<task_id>/complete", methods=["POST"])
@login_required
def complete(task_id: str):
    """Mark the caller's in-progress task as completed."""
    try:
        task = load_task_or_404(task_id)
        complete_task(get_backend(), g.token, task, g.role, g.user_id)
    except HANDLED_ERRORS as error:
        flash_failure(error, "Failed to complete task")
        return _back_to_tasks()
    flash("Task marked as completed! Waiting for verification.", "success")
    return _back_to_tasks()


@views_bp.route("/tasks/<task_id>/delete", methods=["POST"])
@login_required
@access_required("delete-task")
def delete(task_id: str):
    """Delete a task the caller manages."""
    try:
        task = load_task_or_404(task_id)
        if not can_delete(g.role, task, g.user_id):
            flash("You cannot delete this task.", "error")
            return _back_to_tasks()
        delete_task(get_backend(), g.token, task_id)
    except HANDLED_ERRORS as error:
        flash_failure(error, "Failed to delete task")
        return _back_to_tasks()
    flash("Task deleted successfully", "success")
    return _back_to_tasks()


# =====================================================================
# Task form
# =====================================================================


def _render_task_form(task_id: str | None, form: dict, status_code: int = 200):
    return (
        render_template(
            "task_form.html",
            task_id=task_id,
            form=form,
            is_editing=task_id is not None,
        ),
        status_code,
    )


@views_bp.route("/create-task", methods=["GET"])
@login_required
@access_required("create-task")
def task_form():
    """
    Render the task form.

    With ``?id=<task id>`` the form is pre-filled for editing.
    """
    task_id = request.args.get("id") or None
    if task_id is None:
        return _render_task_form(None, {})

    try:
        task = load_task_or_404(task_id)
    except HANDLED_ERRORS as error:
        flash_failure(error, "Failed to fetch task details")
        return redirect(url_for("views.task_list"))

    if not can_edit(g.role, task, g.user_id):
        return render_template("access_denied.html"), 403

    form = {
        "title": task["title"],
        "description": task["description"],
        "points": task["points"],
        "due_date": task["due_date"].date().isoformat() if task["due_date"] else "",
    }
    return _render_task_form(task_id, form)


@views_bp.route("/create-task", methods=["POST"])
@login_required
@access_required("create-task")
def save_task():
    """
    Handle task form submission for both create and edit.

    Returns:
        A redirect to the task list on success, or the re-rendered form
        with a flash message on validation or backend error.
    """
    task_id = request.form.get("task_id") or None
    data, error_message = validate_task_form(request.form)
    if error_message:
        flash(error_message, "error")
        return _render_task_form(task_id, request.form.to_dict(), 400)

    backend = get_backend()
    action = "update" if task_id else "create"
    try:
        if task_id:
            task = load_task_or_404(task_id)
            if not can_edit(g.role, task, g.user_id):
                return render_template("access_denied.html"), 403
            update_task(backend, g.token, task_id, data)
        else:
            create_task(backend, g.token, data, g.user_id)
    except HANDLED_ERRORS as error:
        status_code = flash_failure(error, f"Failed to {action} task")
        return _render_task_form(task_id, request.form.to_dict(), status_code)

    flash(f"Task {action}d successfully", "success")
    return redirect(url_for("views.task_list"))


# =====================================================================
# Progress, leaderboard, settings
# =====================================================================


@views_bp.route("/progress")
@login_required
@access_required("progress")
def progress():
    """Personal progress for bench employees."""
    status_code = 200
    tasks = []
    try:
        tasks = fetch_assigned_tasks(get_backend(), g.token, g.user_id)
    except HANDLED_ERRORS as error:
        status_code = flash_failure(error, "Failed to load your progress")
    summary = progress_summary(tasks, g.user_id, g.profile)
    return render_template("progress.html", summary=summary, statuses=TaskStatus), status_code


@views_bp.route("/leaderboard")
@login_required
def leaderboard():
    """Everyone ranked by points earned."""
    status_code = 200
    profiles = []
    try:
        profiles = fetch_leaderboard(
            get_backend(), g.token, limit=current_app.config["LEADERBOARD_LIMIT"]
        )
    except HANDLED_ERRORS as error:
        status_code = flash_failure(error, "Failed to load leaderboard")
    return render_template("leaderboard.html", entries=rank_leaderboard(profiles)), status_code


@views_bp.route("/settings", methods=["GET"])
@login_required
def settings():
    return render_template("settings.html", profile=g.profile or {})


@views_bp.route("/settings", methods=["POST"])
@login_required
def save_settings():
    """Update the caller's display name and avatar URL."""
    full_name = request.form.get("full_name", "").strip()
    avatar_url = request.form.get("avatar_url", "").strip()
    if not full_name:
        flash("Full name is required", "error")
        return render_template("settings.html", profile=request.form.to_dict()), 400
    if avatar_url and not avatar_url.startswith(("http://", "https://")):
        flash("Avatar URL must start with http:// or https://", "error")
        return render_template("settings.html", profile=request.form.to_dict()), 400

    try:
        updated = update_profile(
            get_backend(), g.token, g.user_id, full_name=full_name, avatar_url=avatar_url
        )
    except HANDLED_ERRORS as error:
        status_code = flash_failure(error, "Failed to update profile")
        return render_template("settings.html", profile=request.form.to_dict()), status_code
    if updated is None:
        logger.warning("No profile row updated for user %s", g.user_id)
        flash("Your profile could not be found. Nothing was saved.", "error")
        return render_template("settings.html", profile=request.form.to_dict()), 404

    flash("Profile updated successfully", "success")
    return redirect(url_for("views.settings"))
