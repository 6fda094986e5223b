from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional, Union
from datetime import date, datetime, timezone
import asyncio
import logging

from workspace_engine.api.api_client import ApiClient
from workspace_engine.models.task_models import (
    TaskCreate, TaskHistoryPublic, TaskPriorityEnum, TaskPublic, TaskStatistics, TaskStatusEnum, TaskUpdate,
)
from workspace_engine.services.progress_service import round_half_up
from workspace_engine.services.task_state_service import (
    INITIAL_STATUS, is_overdue, refresh_derived_flags, transition, validate_status,
)
from workspace_engine.utils.errors import NotFoundError, WorkspaceError
from workspace_engine.utils.result import Err, Ok, Result
from workspace_engine.utils.validation import validate_payload

logger = logging.getLogger(__name__)

TaskListener = Callable[[List[TaskPublic]], None]

PRIORITY_ORDER = {
    TaskPriorityEnum.URGENT: 4,
    TaskPriorityEnum.HIGH: 3,
    TaskPriorityEnum.MEDIUM: 2,
    TaskPriorityEnum.LOW: 1,
}


class TaskService:
    """Local task collection for one project, kept in sync with the backend.

    Mutations are applied optimistically, then either replaced by the record
    the server returns or rolled back to the last confirmed record. Mutations
    on the same task are sent one at a time and only the response to the most
    recent intent is applied to the collection.
    """

    def __init__(self, api_client: ApiClient, project_id: int):
        self.api = api_client
        self.project_id = project_id
        self._tasks: List[TaskPublic] = []
        self._confirmed: Dict[int, TaskPublic] = {}
        self._locks: Dict[int, asyncio.Lock] = {}
        self._sequence: Dict[int, int] = {}
        self._listeners: List[TaskListener] = []
        self._next_temp_id = -1
        self._disposed = False

    # --- local state ---

    @property
    def tasks(self) -> List[TaskPublic]:
        return list(self._tasks)

    def get_task(self, task_id: int) -> Optional[TaskPublic]:
        for task in self._tasks:
            if task.id == task_id:
                return task
        return None

    def subscribe(self, listener: TaskListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def dispose(self) -> None:
        self._disposed = True
        self._listeners.clear()

    def _notify(self) -> None:
        snapshot = self.tasks
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Task listener failed")

    def _index_of(self, task_id: int) -> int:
        for index, task in enumerate(self._tasks):
            if task.id == task_id:
                return index
        return -1

    def _put_local(self, task: TaskPublic, replace_id: Optional[int] = None) -> None:
        index = self._index_of(replace_id if replace_id is not None else task.id)
        if index == -1:
            self._tasks.append(task)
        else:
            self._tasks[index] = task

    def _remove_local(self, task_id: int) -> None:
        self._tasks = [t for t in self._tasks if t.id != task_id]

    def _begin_intent(self, task_id: int) -> int:
        self._sequence[task_id] = self._sequence.get(task_id, 0) + 1
        return self._sequence[task_id]

    def _is_latest(self, task_id: int, sequence: int) -> bool:
        return not self._disposed and self._sequence.get(task_id) == sequence

    def _lock_for(self, task_id: int) -> asyncio.Lock:
        if task_id not in self._locks:
            self._locks[task_id] = asyncio.Lock()
        return self._locks[task_id]

    def _rollback(self, task_id: int) -> None:
        confirmed = self._confirmed.get(task_id)
        if confirmed is not None:
            self._put_local(confirmed)
            logger.warning(f"Rolled task {task_id} back to its last confirmed state ({confirmed.status.value})")
            self._notify()

    # --- remote operations ---

    async def load_tasks(self) -> Result:
        try:
            tasks = await self.api.list_tasks(self.project_id)
        except WorkspaceError as e:
            logger.error(f"Error loading tasks for project {self.project_id}: {e.message}")
            return Err(e)
        if not self._disposed:
            self._tasks = list(tasks)
            self._confirmed = {t.id: t for t in tasks}
            logger.info(f"Loaded {len(tasks)} tasks for project {self.project_id}")
            self._notify()
        return Ok(tasks)

    async def create_task(self, task_data: Union[TaskCreate, Mapping[str, Any]],
                          default_assignee: Optional[str] = None) -> Result:
        try:
            payload = validate_payload(TaskCreate, task_data)
        except WorkspaceError as e:
            return Err(e)

        if not payload.assignee_username and default_assignee:
            payload = payload.model_copy(update={"assignee_username": default_assignee})

        now = datetime.now(timezone.utc)
        placeholder = refresh_derived_flags(TaskPublic(
            id=self._next_temp_id,
            title=payload.title,
            description=payload.description,
            priority=payload.priority,
            due_date=payload.due_date,
            estimated_hours=payload.estimated_hours,
            notes=payload.notes,
            status=INITIAL_STATUS,
            project_id=self.project_id,
            assignee_username=payload.assignee_username,
            created_by_username=self.api.session.current_username,
            created_at=now,
            updated_at=now,
        ))
        self._next_temp_id -= 1
        self._tasks.append(placeholder)
        self._notify()

        try:
            created = await self.api.create_task(self.project_id, payload)
        except WorkspaceError as e:
            logger.error(f"Error creating task '{payload.title}' in project {self.project_id}: {e.message}")
            if not self._disposed:
                self._remove_local(placeholder.id)
                self._notify()
            return Err(e)

        if not self._disposed:
            self._put_local(created, replace_id=placeholder.id)
            self._confirmed[created.id] = created
            logger.info(f"Created task {created.id} in project {self.project_id}")
            self._notify()
        return Ok(created)

    async def _mutate(self, task_id: int, optimistic: TaskPublic,
                      request: Callable[[], Awaitable[TaskPublic]], action: str) -> Result:
        sequence = self._begin_intent(task_id)
        self._put_local(optimistic)
        self._notify()

        async with self._lock_for(task_id):
            try:
                confirmed = await request()
            except WorkspaceError as e:
                logger.error(f"Error on {action} for task {task_id}: {e.message}")
                if self._is_latest(task_id, sequence):
                    self._rollback(task_id)
                else:
                    logger.warning(f"Ignoring failed {action} for task {task_id}: superseded by a newer intent")
                return Err(e)

        if self._disposed:
            return Ok(confirmed)
        self._confirmed[task_id] = confirmed
        if self._is_latest(task_id, sequence):
            self._put_local(confirmed)
            logger.info(f"Task {task_id} {action} confirmed ({confirmed.status.value})")
            self._notify()
        else:
            logger.warning(f"Not applying {action} response for task {task_id}: superseded by a newer intent")
        return Ok(confirmed)

    async def update_task_status(self, task_id: int, status: Union[TaskStatusEnum, str]) -> Result:
        try:
            target = validate_status(status)
        except WorkspaceError as e:
            return Err(e)
        current = self.get_task(task_id)
        if current is None:
            return Err(NotFoundError(f"Task {task_id} is not part of this workspace."))

        return await self._mutate(
            task_id,
            transition(current, target),
            lambda: self.api.update_task_status(task_id, target),
            action="status update",
        )

    async def update_task(self, task_id: int, task_data: Union[TaskUpdate, Mapping[str, Any]]) -> Result:
        try:
            raw_status = task_data.get("status") if isinstance(task_data, Mapping) else task_data.status
            if raw_status is not None:
                validate_status(raw_status)
            payload = validate_payload(TaskUpdate, task_data)
        except WorkspaceError as e:
            return Err(e)
        current = self.get_task(task_id)
        if current is None:
            return Err(NotFoundError(f"Task {task_id} is not part of this workspace."))

        changes = {field: getattr(payload, field) for field in payload.model_fields_set if field != "status"}
        optimistic = current.model_copy(update=changes)
        optimistic = transition(optimistic, payload.status or optimistic.status)

        return await self._mutate(
            task_id,
            optimistic,
            lambda: self.api.update_task(task_id, payload),
            action="update",
        )

    async def delete_task(self, task_id: int) -> Result:
        current = self.get_task(task_id)
        if current is None:
            return Err(NotFoundError(f"Task {task_id} is not part of this workspace."))

        sequence = self._begin_intent(task_id)
        position = self._index_of(task_id)
        self._remove_local(task_id)
        self._notify()

        async with self._lock_for(task_id):
            try:
                await self.api.delete_task(task_id)
            except WorkspaceError as e:
                logger.error(f"Error deleting task {task_id}: {e.message}")
                if self._is_latest(task_id, sequence):
                    restored = self._confirmed.get(task_id, current)
                    self._tasks.insert(min(position, len(self._tasks)), restored)
                    logger.warning(f"Restored task {task_id} after failed delete")
                    self._notify()
                return Err(e)

        if not self._disposed:
            self._confirmed.pop(task_id, None)
            logger.info(f"Deleted task {task_id} from project {self.project_id}")
        return Ok(None)

    async def refresh_task(self, task_id: int) -> Result:
        try:
            task = await self.api.get_task(task_id)
        except WorkspaceError as e:
            logger.error(f"Error refreshing task {task_id}: {e.message}")
            return Err(e)
        if not self._disposed:
            self._confirmed[task.id] = task
            self._put_local(task)
            self._notify()
        return Ok(task)

    async def get_task_history(self, task_id: int) -> Result:
        try:
            history: List[TaskHistoryPublic] = await self.api.get_task_history(task_id)
        except WorkspaceError as e:
            logger.error(f"Error loading history for task {task_id}: {e.message}")
            return Err(e)
        return Ok(history)


# --- read-only helpers over a task list ---

def task_statistics(tasks: Iterable[TaskPublic], today: Optional[date] = None) -> TaskStatistics:
    stats = TaskStatistics()
    status_fields = {
        TaskStatusEnum.TO_DO: "to_do",
        TaskStatusEnum.IN_PROGRESS: "in_progress",
        TaskStatusEnum.IN_REVIEW: "in_review",
        TaskStatusEnum.DONE: "done",
    }
    priority_fields = {
        TaskPriorityEnum.LOW: "low_priority",
        TaskPriorityEnum.MEDIUM: "medium_priority",
        TaskPriorityEnum.HIGH: "high_priority",
        TaskPriorityEnum.URGENT: "urgent_priority",
    }
    for task in tasks:
        stats.total += 1
        status_field = status_fields[task.status]
        setattr(stats, status_field, getattr(stats, status_field) + 1)
        priority_field = priority_fields[task.priority]
        setattr(stats, priority_field, getattr(stats, priority_field) + 1)
        if is_overdue(task, today):
            stats.overdue += 1
        stats.total_estimated_hours += task.estimated_hours or 0
        stats.total_actual_hours += task.actual_hours or 0
    if stats.total > 0:
        stats.completion_percentage = round_half_up(stats.done / stats.total * 100)
    return stats


def filter_tasks(tasks: Iterable[TaskPublic], status: Optional[TaskStatusEnum] = None,
                 priority: Optional[TaskPriorityEnum] = None, assignee: Optional[str] = None,
                 overdue: Optional[bool] = None, today: Optional[date] = None) -> List[TaskPublic]:
    result = list(tasks)
    if status is not None:
        result = [t for t in result if t.status == status]
    if priority is not None:
        result = [t for t in result if t.priority == priority]
    if assignee is not None:
        result = [t for t in result if t.assignee_username == assignee]
    if overdue is not None:
        result = [t for t in result if is_overdue(t, today) == overdue]
    return result


def sort_tasks(tasks: Iterable[TaskPublic], by: str = "due_date", ascending: bool = True) -> List[TaskPublic]:
    tasks = list(tasks)
    if by == "due_date":
        dated = sorted((t for t in tasks if t.due_date is not None), key=lambda t: t.due_date, reverse=not ascending)
        # Undated tasks always go last
        return dated + [t for t in tasks if t.due_date is None]
    if by == "priority":
        return sorted(tasks, key=lambda t: PRIORITY_ORDER.get(t.priority, 0), reverse=not ascending)
    if by == "created_at":
        epoch = datetime.min.replace(tzinfo=timezone.utc)
        return sorted(tasks, key=lambda t: t.created_at or epoch, reverse=not ascending)
    raise ValueError(f"Unknown sort key: {by}")
