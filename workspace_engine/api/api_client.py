"""Thin async client for the marketplace REST backend.

Every call carries the bearer token of the explicit `Session` it was built
with. HTTP and transport failures are translated into the engine's error
taxonomy here, so the services above only ever see `WorkspaceError`.
"""
import io
import logging
import os
from typing import Any, Callable, List, Optional, Tuple, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError as PydanticValidationError

from workspace_engine.config.settings import settings
from workspace_engine.models.file_models import FileAttachmentPublic, LocalFile
from workspace_engine.models.project_models import ProjectPublic
from workspace_engine.models.session_models import Session
from workspace_engine.models.task_models import (
    TaskCreate, TaskHistoryPublic, TaskPublic, TaskStatusEnum, TaskStatusUpdate, TaskUpdate,
)
from workspace_engine.utils.errors import (
    AuthError, GENERIC_ERROR_MESSAGE, NetworkError, SESSION_EXPIRED_MESSAGE, ServerError, error_for_status,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]
ModelT = TypeVar("ModelT", bound=BaseModel)


class ProgressReader:
    """File-like wrapper that reports how many bytes the HTTP layer consumed."""

    def __init__(self, content: bytes, on_progress: Optional[ProgressCallback] = None):
        self._buffer = io.BytesIO(content)
        self._total = len(content)
        self._on_progress = on_progress

    def read(self, size: int = -1) -> bytes:
        chunk = self._buffer.read(size)
        if self._on_progress is not None:
            self._on_progress(self._buffer.tell(), self._total)
        return chunk

    def seek(self, offset: int, whence: int = os.SEEK_SET) -> int:
        return self._buffer.seek(offset, whence)

    def tell(self) -> int:
        return self._buffer.tell()


class ApiClient:
    def __init__(self, session: Session, base_url: Optional[str] = None, timeout: Optional[float] = None,
                 http_client: Optional[httpx.AsyncClient] = None):
        self.session = session
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            base_url=base_url or settings.API_BASE_URL,
            timeout=timeout if timeout is not None else settings.REQUEST_TIMEOUT_SECONDS,
        )

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # --- plumbing ---

    @staticmethod
    def _body_message(response: httpx.Response) -> Optional[str]:
        try:
            body = response.json()
        except ValueError:
            return None
        if not isinstance(body, dict):
            return None
        for key in ("message", "detail", "error"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
        return None

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        if not self.session.is_authenticated():
            logger.error(f"Refusing {method} {url}: no valid session token")
            raise AuthError(SESSION_EXPIRED_MESSAGE, status_code=401)

        headers = dict(kwargs.pop("headers", None) or {})
        headers.update(self.session.authorization_header())
        try:
            response = await self._client.request(method, url, headers=headers, **kwargs)
        except httpx.TransportError as e:
            logger.error(f"Network error on {method} {url}: {e}")
            raise NetworkError(status_code=0) from e

        if response.is_error:
            error = error_for_status(response.status_code, self._body_message(response))
            logger.error(f"{method} {url} failed with HTTP {response.status_code}: {error.message}")
            raise error
        return response

    @staticmethod
    def _parse(response: httpx.Response, model_cls: Type[ModelT]) -> ModelT:
        try:
            return model_cls.model_validate(response.json())
        except (ValueError, PydanticValidationError) as e:
            logger.error(f"Unreadable {model_cls.__name__} in response to {response.request.url}: {e}")
            raise ServerError(GENERIC_ERROR_MESSAGE, status_code=response.status_code) from e

    @staticmethod
    def _parse_list(response: httpx.Response, model_cls: Type[ModelT]) -> List[ModelT]:
        try:
            body = response.json()
            if not isinstance(body, list):
                raise ValueError(f"expected a list, got {type(body).__name__}")
            return [model_cls.model_validate(item) for item in body]
        except (ValueError, PydanticValidationError) as e:
            logger.error(f"Unreadable {model_cls.__name__} list in response to {response.request.url}: {e}")
            raise ServerError(GENERIC_ERROR_MESSAGE, status_code=response.status_code) from e

    # --- projects ---

    async def get_project(self, project_id: int) -> ProjectPublic:
        response = await self._request("GET", f"/projects/{project_id}")
        return self._parse(response, ProjectPublic)

    # --- tasks ---

    async def list_tasks(self, project_id: int) -> List[TaskPublic]:
        response = await self._request("GET", f"/tasks/projects/{project_id}")
        return self._parse_list(response, TaskPublic)

    async def create_task(self, project_id: int, task_data: TaskCreate) -> TaskPublic:
        payload = task_data.model_dump(mode="json", by_alias=True, exclude_none=True)
        response = await self._request("POST", f"/tasks/projects/{project_id}", json=payload)
        return self._parse(response, TaskPublic)

    async def get_task(self, task_id: int) -> TaskPublic:
        response = await self._request("GET", f"/tasks/{task_id}")
        return self._parse(response, TaskPublic)

    async def update_task(self, task_id: int, task_data: TaskUpdate) -> TaskPublic:
        payload = task_data.model_dump(mode="json", by_alias=True, exclude_unset=True)
        response = await self._request("PUT", f"/tasks/{task_id}", json=payload)
        return self._parse(response, TaskPublic)

    async def update_task_status(self, task_id: int, status: TaskStatusEnum) -> TaskPublic:
        payload = TaskStatusUpdate(status=status).model_dump(mode="json", by_alias=True)
        response = await self._request("PATCH", f"/tasks/{task_id}/status", json=payload)
        return self._parse(response, TaskPublic)

    async def delete_task(self, task_id: int) -> None:
        await self._request("DELETE", f"/tasks/{task_id}")

    async def get_task_history(self, task_id: int) -> List[TaskHistoryPublic]:
        response = await self._request("GET", f"/tasks/{task_id}/history")
        return self._parse_list(response, TaskHistoryPublic)

    # --- workspace files ---

    async def list_files(self, project_id: int) -> List[FileAttachmentPublic]:
        response = await self._request("GET", f"/projects/{project_id}/workspace/files")
        return self._parse_list(response, FileAttachmentPublic)

    async def upload_file(self, project_id: int, file: LocalFile,
                          on_progress: Optional[ProgressCallback] = None) -> FileAttachmentPublic:
        reader = ProgressReader(file.content, on_progress)
        files = {"file": (file.file_name, reader, file.content_type)}
        response = await self._request("POST", f"/projects/{project_id}/workspace/files", files=files)
        return self._parse(response, FileAttachmentPublic)

    async def download_file(self, stored_file_name: str) -> Tuple[bytes, Optional[str]]:
        response = await self._request("GET", f"/workspace/files/{stored_file_name}")
        return response.content, response.headers.get("content-type")

    async def delete_file(self, file_id: int) -> None:
        await self._request("DELETE", f"/workspace/files/{file_id}")
