"""Translation between board models and remote records.

Field mapping (model -> remote):

    title          -> taskName
    description    -> description
    assignee.name  -> employee
    allocator      -> allocator
    created_at     -> startDate   (YYYY-MM-DD)
    deadline       -> endDate     (YYYY-MM-DD or null)
    status         -> card_id     (resolved remote column reference)
    priority       -> priority
    progress       -> progress
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime
from typing import Any

from ..board.models import DEFAULT_AVATAR, Assignee, Priority, Task, clamp_progress

UNTITLED = "Untitled"


def format_date(value: datetime | date | None) -> str | None:
    if value is None:
        return None
    return value.strftime("%Y-%m-%d")


def parse_date(value: Any) -> datetime | None:
    """Parse ``YYYY-MM-DD`` or an ISO timestamp. Anything else -> None."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.strptime(text[:10], "%Y-%m-%d")
    except ValueError:
        return None


def task_to_payload(task: Task, card_ref: Any) -> dict:
    """Full remote payload for ``task``, placed in column ``card_ref``."""
    created = task.created_at or datetime.now()
    return {
        "taskName": task.title or UNTITLED,
        "description": task.description or "",
        "employee": task.assignee.name,
        "allocator": task.allocator,
        "startDate": format_date(created),
        "endDate": format_date(task.deadline),
        "card_id": card_ref,
        "priority": task.priority.value,
        "progress": clamp_progress(task.progress),
    }


def task_from_record(record: dict, status: Any = None) -> Task:
    """Build a Task from a remote record.

    ``status`` overrides the record's own column reference; callers pass the
    local column id they resolved for it.
    """
    user = record.get("user") or {}
    if not isinstance(user, dict):
        user = {}
    created = parse_date(record.get("startDate")) or parse_date(record.get("creationDate"))
    return Task(
        id=record.get("id"),
        title=record.get("taskName") or record.get("title") or UNTITLED,
        status=status if status is not None else record.get("card_id", record.get("status")),
        description=record.get("description") or "",
        priority=Priority.parse(record.get("priority")),
        progress=clamp_progress(record.get("progress") or 0),
        assignee=Assignee(
            name=record.get("employee") or user.get("name") or "",
            role=user.get("role") or "",
            avatar_url=user.get("avatarUrl") or DEFAULT_AVATAR,
        ),
        allocator=record.get("allocator") or "",
        created_at=created or datetime.now(),
        deadline=parse_date(record.get("endDate")) or parse_date(record.get("deadline")),
    )


def merge_record(task: Task, record: Any) -> Task:
    """Overlay the fields a confirmation response carries onto ``task``.

    Only keys present in the response are applied; column membership and the
    id are left alone.
    """
    if not isinstance(record, dict) or not record:
        return task
    changes: dict[str, Any] = {}
    if record.get("taskName"):
        changes["title"] = record["taskName"]
    if "description" in record:
        changes["description"] = record["description"] or ""
    if "priority" in record:
        changes["priority"] = Priority.parse(record["priority"])
    if "progress" in record:
        changes["progress"] = clamp_progress(record["progress"])
    if "allocator" in record:
        changes["allocator"] = record["allocator"] or ""
    if "endDate" in record:
        # the remote only keeps the date; keep the local time of day when it agrees
        deadline = parse_date(record["endDate"])
        if format_date(deadline) != format_date(task.deadline):
            changes["deadline"] = deadline
    if "employee" in record:
        changes["assignee"] = replace(task.assignee, name=record["employee"] or "")
    if not changes:
        return task
    merged = replace(task, **changes)
    return task if merged == task else merged


def record_column_ref(record: dict) -> Any:
    """The remote column reference a task record points at, if any."""
    ref = record.get("card_id")
    if ref is None:
        ref = record.get("status")
    return ref


def column_title(record: dict) -> str:
    return record.get("title") or record.get("name") or UNTITLED
