"""Approval detection from task metadata."""

from __future__ import annotations

from escalade.models.task import Task

APPROVAL_LABEL_PREFIX = "approved:"


def approval_label(handler_id: str) -> str:
    return f"{APPROVAL_LABEL_PREFIX}{handler_id}"


def has_approval(task: Task, handler_id: str) -> bool:
    """True if the task's metadata approves ``handler_id``.

    Accepted forms: a label exactly ``approved:<handler_id>``, a boolean
    ``approved`` field, or an ``approved`` list naming the handler id.
    """
    if approval_label(handler_id) in task.labels:
        return True
    approved = task.metadata.get("approved")
    if isinstance(approved, bool):
        return approved
    if isinstance(approved, (list, tuple, set)):
        return handler_id in approved
    return False
