from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Union
from datetime import date
import asyncio
import logging

from workspace_engine.api.api_client import ApiClient
from workspace_engine.models.chat_models import ChatAttachment, ChatMessage
from workspace_engine.models.file_models import LocalFile, UploadProgress, UploadStatusEnum
from workspace_engine.models.progress_models import EfficiencyLabelEnum, WorkspaceProgress
from workspace_engine.models.project_models import ProjectPublic, ProjectStatusEnum
from workspace_engine.models.role_permission_models import PermissionEnum, WorkspaceRoleEnum
from workspace_engine.models.task_models import TaskCreate, TaskPublic, TaskStatusEnum, TaskUpdate
from workspace_engine.services.chat_service import ChatSession
from workspace_engine.services.file_service import FileAttachmentManager
from workspace_engine.services.kanban_service import KanbanBoard
from workspace_engine.services.progress_service import compute_progress, efficiency_label
from workspace_engine.services.task_service import TaskService
from workspace_engine.utils.errors import PermissionDeniedError, ValidationError, WorkspaceError
from workspace_engine.utils.rbac import ensure_permission, has_permission, resolve_workspace_role
from workspace_engine.utils.result import Err, Ok, Result

logger = logging.getLogger(__name__)


class WorkspaceOrchestrator:
    """Per-project facade over tasks, files and chat.

    Owns exactly one task collection and one file list. Loading fetches the
    project first (needed for the role and the progress clamp), then tasks
    and files concurrently; the workspace is ready once both have settled,
    whether they succeeded or not.
    """

    def __init__(self, api_client: ApiClient, project_id: int):
        self.api = api_client
        self.project_id = project_id
        self.project: Optional[ProjectPublic] = None
        self.tasks = TaskService(api_client, project_id)
        self.files = FileAttachmentManager(api_client, project_id)
        self.board = KanbanBoard()
        self.chat: Optional[ChatSession] = None
        self.errors: Dict[str, str] = {}
        self.ready = False
        self._progress: Optional[WorkspaceProgress] = None
        self._disposed = False
        self._unsubscribe = self.tasks.subscribe(self._on_tasks_changed)

    # --- derived state ---

    @property
    def role(self) -> Optional[WorkspaceRoleEnum]:
        return resolve_workspace_role(self.project, self.api.session)

    @property
    def project_status(self) -> Optional[ProjectStatusEnum]:
        return self.project.status if self.project else None

    @property
    def progress(self) -> WorkspaceProgress:
        if self._progress is None:
            self._progress = compute_progress(self.tasks.tasks, self.project_status)
        return self._progress

    @property
    def efficiency(self) -> EfficiencyLabelEnum:
        return efficiency_label(self.progress)

    def _on_tasks_changed(self, tasks: List[TaskPublic]) -> None:
        self._progress = compute_progress(tasks, self.project_status)

    def columns(self) -> Dict[TaskStatusEnum, List[TaskPublic]]:
        return self.board.tasks_by_column(self.tasks.tasks)

    def can_complete_project(self) -> bool:
        tasks = self.tasks.tasks
        return (
            has_permission(self.role, PermissionEnum.COMPLETE_PROJECT)
            and self.project_status == ProjectStatusEnum.IN_PROGRESS
            and len(tasks) > 0
            and all(t.status == TaskStatusEnum.DONE for t in tasks)
        )

    def days_remaining(self, today: Optional[date] = None) -> Optional[int]:
        if self.project is None or self.project.deadline is None:
            return None
        today = today or date.today()
        return max(0, (self.project.deadline - today).days)

    # --- lifecycle ---

    async def load(self) -> Result:
        self.ready = False
        self.errors = {}
        try:
            self.project = await self.api.get_project(self.project_id)
        except WorkspaceError as e:
            logger.error(f"Error loading project {self.project_id}: {e.message}")
            self.errors["project"] = e.message
            return Err(e)
        if self._disposed:
            return Ok(self)

        role = self.role
        if role is not None and self.api.session.current_username:
            self.chat = ChatSession(self.api.session.current_username, role)

        task_result, file_result = await asyncio.gather(self.tasks.load_tasks(), self.files.list_files())
        if self._disposed:
            return Ok(self)
        if not task_result.ok:
            self.errors["tasks"] = task_result.message
        if not file_result.ok:
            self.errors["files"] = file_result.message

        self._progress = compute_progress(self.tasks.tasks, self.project_status)
        self.ready = True
        logger.info(
            f"Workspace {self.project_id} ready: {len(self.tasks.tasks)} tasks, {len(self.files.files)} files, "
            f"progress {self.progress.percentage}% ({self.progress.formula_used.value})"
        )
        return Ok(self)

    def dispose(self) -> None:
        self._disposed = True
        self._unsubscribe()
        self.tasks.dispose()
        self.files.dispose()
        logger.info(f"Workspace {self.project_id} disposed")

    # --- intent routing ---

    def _guard(self, permission: PermissionEnum, action: str) -> Optional[Err]:
        try:
            ensure_permission(self.role, permission, action)
        except WorkspaceError as e:
            logger.warning(f"Blocked {permission.value} in project {self.project_id}: {e.message}")
            return Err(e)
        return None

    async def move_task(self, task_id: int, target_status: Union[TaskStatusEnum, str]) -> Result:
        denied = self._guard(PermissionEnum.MOVE_TASK, "move tasks")
        if denied is not None:
            return denied
        try:
            intent = self.board.drop(task_id, target_status, self.tasks.tasks)
        except WorkspaceError as e:
            return Err(e)
        if intent is None:
            return Ok(self.tasks.get_task(task_id))
        return await self.tasks.update_task_status(intent.task_id, intent.to_status)

    async def create_task(self, form: Union[TaskCreate, Mapping[str, Any]]) -> Result:
        denied = self._guard(PermissionEnum.CREATE_TASK, "create tasks")
        if denied is not None:
            return denied
        if not isinstance(form, TaskCreate):
            try:
                form = self.board.build_create_intent(form)
            except WorkspaceError as e:
                return Err(e)
        counterpart = self.project.assigned_talent_username if self.project else None
        return await self.tasks.create_task(form, default_assignee=counterpart)

    async def update_task(self, task_id: int, data: Union[TaskUpdate, Mapping[str, Any]]) -> Result:
        denied = self._guard(PermissionEnum.EDIT_TASK, "edit tasks")
        if denied is not None:
            return denied
        return await self.tasks.update_task(task_id, data)

    async def delete_task(self, task_id: int) -> Result:
        denied = self._guard(PermissionEnum.DELETE_TASK, "delete tasks")
        if denied is not None:
            return denied
        return await self.tasks.delete_task(task_id)

    async def upload_file(self, file: LocalFile) -> AsyncIterator[UploadProgress]:
        denied = self._guard(PermissionEnum.UPLOAD_FILE, "upload files")
        if denied is not None:
            yield UploadProgress(file_name=file.file_name, progress=0, status=UploadStatusEnum.ERROR,
                                 error=denied.message)
            return
        async for event in self.files.upload(file):
            yield event

    async def delete_file(self, file_id: int) -> Result:
        return await self.files.delete_file(file_id, self.role)

    def send_message(self, content: str, attachments: Optional[List[LocalFile]] = None) -> Result:
        denied = self._guard(PermissionEnum.SEND_MESSAGE, "chat in this workspace")
        if denied is not None:
            return denied
        if self.chat is None:
            return Err(PermissionDeniedError("Only the project's client and assigned talent can chat here."))
        chat_attachments = []
        for file in attachments or []:
            validation = self.files.validate(file)
            if not validation.valid:
                return Err(ValidationError(validation.error))
            chat_attachments.append(ChatAttachment(name=file.file_name, size=file.size, type=file.content_type))
        try:
            message: ChatMessage = self.chat.send(content, chat_attachments)
        except WorkspaceError as e:
            return Err(e)
        return Ok(message)
