"""Task status state machine.

The four statuses form a total order but transitions are free: a card can be
dropped on any column, including moving a DONE task back to IN_PROGRESS.
The only rejected transition is to a value that is not a status at all.
"""
from datetime import date, datetime, timezone
from typing import Any, Optional

from workspace_engine.models.task_models import TaskPublic, TaskStatusEnum
from workspace_engine.utils.errors import InvalidStatusError

STATUS_ORDER = [
    TaskStatusEnum.TO_DO,
    TaskStatusEnum.IN_PROGRESS,
    TaskStatusEnum.IN_REVIEW,
    TaskStatusEnum.DONE,
]

INITIAL_STATUS = TaskStatusEnum.TO_DO


def validate_status(value: Any) -> TaskStatusEnum:
    if isinstance(value, TaskStatusEnum):
        return value
    try:
        return TaskStatusEnum(value)
    except ValueError:
        allowed = ", ".join(s.value for s in STATUS_ORDER)
        raise InvalidStatusError(f"Invalid task status '{value}'. Allowed: {allowed}.")


def is_completed(task: TaskPublic) -> bool:
    return task.status == TaskStatusEnum.DONE


def is_overdue(task: TaskPublic, today: Optional[date] = None) -> bool:
    if task.due_date is None or task.status == TaskStatusEnum.DONE:
        return False
    today = today or date.today()
    return task.due_date < today


def days_until_due(task: TaskPublic, today: Optional[date] = None) -> Optional[int]:
    if task.due_date is None:
        return None
    today = today or date.today()
    return (task.due_date - today).days


def refresh_derived_flags(task: TaskPublic, today: Optional[date] = None) -> TaskPublic:
    return task.model_copy(update={
        "is_completed": is_completed(task),
        "is_overdue": is_overdue(task, today),
    })


def transition(task: TaskPublic, target: Any, now: Optional[datetime] = None,
               today: Optional[date] = None) -> TaskPublic:
    """Return a copy of `task` moved to `target` with its derived flags recomputed.

    `now` stamps `updated_at` (UTC); overdue is judged against the local
    calendar day `today`.
    """
    status = validate_status(target)
    now = now or datetime.now(timezone.utc)
    moved = task.model_copy(update={"status": status, "updated_at": now})
    return refresh_derived_flags(moved, today)
