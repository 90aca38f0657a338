"""Helpers shared by the page blueprints."""

from __future__ import annotations

import logging
from typing import Any

import requests
from flask import abort, flash, g

from ..backend import BackendError, get_backend
from ..tasks import TaskTransitionError, fetch_task

logger = logging.getLogger(__name__)


def flash_failure(error: Exception, default: str) -> int:
    """
    Surface a failed backend call as a flash message.

    Args:
        error: The caught exception.
        default: Message for backend errors that carry no useful text.

    Returns:
        The HTTP status code a page render should use.
    """
    if isinstance(error, requests.Timeout):
        flash("The backend timed out. Please try again.", "error")
        return 503
    if isinstance(error, requests.RequestException):
        flash("The backend is unavailable. Please try again later.", "error")
        return 503
    if isinstance(error, TaskTransitionError):
        flash(str(error), "error")
        return 409
    logger.warning("%s: %s", default, error)
    flash(default, "error")
    return 502


# Exceptions a route handler turns into a flash message.
HANDLED_ERRORS = (requests.RequestException, BackendError, TaskTransitionError)


def load_task_or_404(task_id: str) -> dict[str, Any]:
    """Fetch a task with the signed-in user's token or abort with 404."""
    task = fetch_task(get_backend(), g.token, task_id)
    if task is None:
        abort(404)
    return task
