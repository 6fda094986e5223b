from typing import Any, Dict, Iterable, List, Mapping, Optional, Union
import logging

from pydantic import BaseModel
from pydantic.alias_generators import to_camel

from workspace_engine.models.role_permission_models import PermissionEnum, WorkspaceRoleEnum
from workspace_engine.models.task_models import TaskCreate, TaskPriorityEnum, TaskPublic, TaskStatusEnum
from workspace_engine.services.task_state_service import STATUS_ORDER, validate_status
from workspace_engine.utils.rbac import has_permission
from workspace_engine.utils.validation import validate_payload

logger = logging.getLogger(__name__)


class KanbanColumn(BaseModel):
    id: str
    title: str
    status: TaskStatusEnum


class StatusChangeIntent(BaseModel):
    task_id: int
    from_status: TaskStatusEnum
    to_status: TaskStatusEnum


COLUMN_TITLES = {
    TaskStatusEnum.TO_DO: "To Do",
    TaskStatusEnum.IN_PROGRESS: "In Progress",
    TaskStatusEnum.IN_REVIEW: "In Review",
    TaskStatusEnum.DONE: "Done",
}

CREATE_FORM_FIELDS = (
    "title", "description", "priority", "due_date", "estimated_hours", "notes", "assignee_username",
)


class KanbanBoard:
    """Maps tasks onto the four fixed status columns and turns user gestures into intents.

    The board never talks to the backend: drops and form submissions come out
    as intents that the workspace routes to the task repository.
    """

    def __init__(self):
        self.columns: List[KanbanColumn] = [
            KanbanColumn(id=status.value.lower(), title=COLUMN_TITLES[status], status=status)
            for status in STATUS_ORDER
        ]

    def tasks_by_column(self, tasks: Iterable[TaskPublic]) -> Dict[TaskStatusEnum, List[TaskPublic]]:
        board: Dict[TaskStatusEnum, List[TaskPublic]] = {column.status: [] for column in self.columns}
        for task in tasks:
            board[task.status].append(task)
        return board

    def drop(self, task_id: int, target_status: Union[TaskStatusEnum, str],
             tasks: Iterable[TaskPublic]) -> Optional[StatusChangeIntent]:
        target = validate_status(target_status)
        task = next((t for t in tasks if t.id == task_id), None)
        if task is None:
            logger.warning(f"Dropped task {task_id} is not on the board")
            return None
        if task.status == target:
            return None
        return StatusChangeIntent(task_id=task.id, from_status=task.status, to_status=target)

    def build_create_intent(self, form: Mapping[str, Any], counterpart_username: Optional[str] = None) -> TaskCreate:
        # Form keys may be snake_case or the camelCase used on the wire
        data = {}
        for key in CREATE_FORM_FIELDS:
            value = form.get(key)
            if value is None:
                value = form.get(to_camel(key))
            if value not in (None, ""):
                data[key] = value
        data.setdefault("priority", TaskPriorityEnum.MEDIUM)
        if counterpart_username:
            data.setdefault("assignee_username", counterpart_username)
        return validate_payload(TaskCreate, data)

    @staticmethod
    def can_manage_tasks(role: Optional[WorkspaceRoleEnum]) -> bool:
        return has_permission(role, PermissionEnum.CREATE_TASK)
