"""
Leadership pages: user management, verification, reports and analytics.

``/users`` and ``/analytics`` are admin-only; ``/verify-tasks`` and
``/reports`` are open to admins and team leads, with team leads scoped to
the tasks they created.
"""

from __future__ import annotations

import logging
import re

from flask import Blueprint, flash, g, redirect, render_template, request, url_for

from ..auth import access_required, login_required
from ..backend import get_backend
from ..models import ROLE_LABELS, Role, TaskStatus
from ..stats import analytics_summary, build_reports
from ..tasks import fetch_awaiting_verification, fetch_scoped_tasks, reject_task, verify_task
from ..users import fetch_profiles, fetch_role_map, fetch_users_with_roles, set_role
from .common import HANDLED_ERRORS, flash_failure, load_task_or_404

logger = logging.getLogger(__name__)

admin_bp = Blueprint("admin", __name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


# =====================================================================
# User management
# =====================================================================


@admin_bp.route("/users")
@login_required
@access_required("users")
def users():
    """Every profile with its role and a role selector."""
    status_code = 200
    members = []
    try:
        members = fetch_users_with_roles(get_backend(), g.token)
    except HANDLED_ERRORS as error:
        status_code = flash_failure(error, "Failed to fetch users")
    return render_template("users.html", members=members, roles=Role, role_labels=ROLE_LABELS), status_code


@admin_bp.route("/users/<user_id>/role", methods=["POST"])
@login_required
@access_required("users")
def change_role(user_id: str):
    """Assign a new role, creating the role row when the user has none."""
    try:
        new_role = Role(request.form.get("role", ""))
    except ValueError:
        flash("Invalid role", "error")
        return redirect(url_for("admin.users"))

    try:
        set_role(get_backend(), g.token, user_id, new_role)
    except HANDLED_ERRORS as error:
        flash_failure(error, "Failed to update user role")
        return redirect(url_for("admin.users"))

    flash("User role updated successfully", "success")
    return redirect(url_for("admin.users"))


@admin_bp.route("/users/invite", methods=["POST"])
@login_required
@access_required("users")
def invite_user():
    """
    Record an invitation for a new team member.

    Accounts are created by the invitee signing up; the admin is told
    which address to use and which role to assign once it exists.
    """
    email = request.form.get("email", "").strip()
    full_name = request.form.get("full_name", "").strip()
    role_value = request.form.get("role", Role.BENCH_EMPLOYEE.value)

    if not email or not full_name:
        flash("Please fill in all fields", "error")
        return redirect(url_for("admin.users"))
    if not EMAIL_PATTERN.match(email):
        flash("Please enter a valid email address", "error")
        return redirect(url_for("admin.users"))
    try:
        role = Role(role_value)
    except ValueError:
        flash("Invalid role", "error")
        return redirect(url_for("admin.users"))

    logger.info("Invitation noted for %s as %s", email, role.value)
    flash(
        f"User invitation created. Please ask {full_name} to sign up with email: "
        f"{email} and they will be assigned the {ROLE_LABELS[role]} role.",
        "success",
    )
    return redirect(url_for("admin.users"))


# =====================================================================
# Verification
# =====================================================================


@admin_bp.route("/verify-tasks")
@login_required
@access_required("verify-tasks")
def verify_tasks():
    """Completed tasks waiting for the caller's verification."""
    status_code = 200
    tasks = []
    try:
        tasks = fetch_awaiting_verification(get_backend(), g.token, g.role, g.user_id)
    except HANDLED_ERRORS as error:
        status_code = flash_failure(error, "Failed to fetch tasks awaiting verification")
    return render_template("verify_tasks.html", tasks=tasks), status_code


@admin_bp.route("/verify-tasks/<task_id>/verify", methods=["POST"])
@login_required
@access_required("verify-tasks")
def verify(task_id: str):
    """Verify a completed task and credit its points."""
    try:
        task = load_task_or_404(task_id)
        verified = verify_task(get_backend(), g.token, task, g.role, g.user_id)
    except HANDLED_ERRORS as error:
        flash_failure(error, "Failed to verify task")
        return redirect(url_for("admin.verify_tasks"))
    if not verified["points_credited"]:
        flash(
            f"Task verified, but {verified['points']} points could not be credited. "
            "Please adjust the assignee's points manually.",
            "warning",
        )
        return redirect(url_for("admin.verify_tasks"))
    flash(f"Task verified. {verified['points']} points awarded.", "success")
    return redirect(url_for("admin.verify_tasks"))


@admin_bp.route("/verify-tasks/<task_id>/reject", methods=["POST"])
@login_required
@access_required("verify-tasks")
def reject(task_id: str):
    """Send a completed task back to its assignee."""
    try:
        task = load_task_or_404(task_id)
        reject_task(get_backend(), g.token, task, g.role, g.user_id)
    except HANDLED_ERRORS as error:
        flash_failure(error, "Failed to send task back")
        return redirect(url_for("admin.verify_tasks"))
    flash("Task sent back for more work.", "success")
    return redirect(url_for("admin.verify_tasks"))


# =====================================================================
# Reports & analytics
# =====================================================================


@admin_bp.route("/reports")
@login_required
@access_required("reports")
def reports():
    """Per-employee performance over the caller's reporting scope."""
    backend = get_backend()
    status_code = 200
    rows = []
    try:
        tasks = fetch_scoped_tasks(backend, g.token, g.role, g.user_id)
        rows = build_reports(tasks, fetch_profiles(backend, g.token))
    except HANDLED_ERRORS as error:
        status_code = flash_failure(error, "Failed to build reports")
    title = "Reports" if g.role is Role.ADMIN else "Team Reports"
    return render_template("reports.html", rows=rows, title=title), status_code


@admin_bp.route("/analytics")
@login_required
@access_required("analytics")
def analytics():
    """Organisation-wide task and user analytics."""
    backend = get_backend()
    status_code = 200
    summary = analytics_summary([], [], {})
    try:
        tasks = fetch_scoped_tasks(backend, g.token, g.role, g.user_id)
        profiles = fetch_profiles(backend, g.token)
        summary = analytics_summary(tasks, profiles, fetch_role_map(backend, g.token))
    except HANDLED_ERRORS as error:
        status_code = flash_failure(error, "Failed to load analytics")
    return (
        render_template("analytics.html", summary=summary, statuses=TaskStatus, role_labels=ROLE_LABELS),
        status_code,
    )
