from typing import AsyncIterator, Callable, Dict, Iterable, List, Optional, Sequence, Union
from datetime import datetime, timedelta, timezone
from pathlib import Path
import asyncio
import logging

from workspace_engine.api.api_client import ApiClient
from workspace_engine.config.settings import settings
from workspace_engine.models.file_models import (
    DownloadedFile, FileAttachmentPublic, FileCategoryEnum, FileStatistics, FileValidationResult, LocalFile,
    UploadProgress, UploadStatusEnum,
)
from workspace_engine.models.role_permission_models import WorkspaceRoleEnum
from workspace_engine.services.progress_service import round_half_up
from workspace_engine.utils.errors import NotFoundError, WorkspaceError
from workspace_engine.utils.rbac import ensure_can_delete_file
from workspace_engine.utils.result import Err, Ok, Result

logger = logging.getLogger(__name__)

BYTES_PER_MB = 1_048_576
UNSUPPORTED_TYPE_ERROR = "File type not supported. Allowed: Images, PDF, Office documents, Text files, Archives"

FileListener = Callable[[List[FileAttachmentPublic]], None]

CATEGORY_ICONS = {
    FileCategoryEnum.IMAGES: "image",
    FileCategoryEnum.DOCUMENTS: "document",
    FileCategoryEnum.ARCHIVES: "archive",
    FileCategoryEnum.VIDEOS: "video",
    FileCategoryEnum.AUDIO: "audio",
    FileCategoryEnum.OTHERS: "attachment",
}


def validate_file(file: LocalFile, max_size_mb: Optional[float] = None,
                  allowed_types: Optional[Sequence[str]] = None) -> FileValidationResult:
    max_size_mb = max_size_mb if max_size_mb is not None else settings.MAX_UPLOAD_SIZE_MB
    allowed_types = allowed_types if allowed_types is not None else settings.ALLOWED_FILE_TYPES

    if file.size > max_size_mb * BYTES_PER_MB:
        return FileValidationResult(valid=False, error=f"File size must be less than {max_size_mb:g}MB")

    content_type = (file.content_type or "").lower()
    if not any(content_type.startswith(prefix) for prefix in allowed_types):
        logger.info(f"Rejected file '{file.file_name}' with type '{file.content_type}'")
        return FileValidationResult(valid=False, error=UNSUPPORTED_TYPE_ERROR)
    return FileValidationResult(valid=True)


def categorize(file_type: Optional[str]) -> FileCategoryEnum:
    if not file_type:
        return FileCategoryEnum.OTHERS
    value = file_type.lower()
    if "image" in value:
        return FileCategoryEnum.IMAGES
    if any(key in value for key in ("pdf", "document", "msword", "ms-excel", "spreadsheet",
                                    "ms-powerpoint", "presentation", "text")):
        return FileCategoryEnum.DOCUMENTS
    if any(key in value for key in ("zip", "rar", "7z", "tar", "archive")):
        return FileCategoryEnum.ARCHIVES
    if "video" in value:
        return FileCategoryEnum.VIDEOS
    if "audio" in value:
        return FileCategoryEnum.AUDIO
    return FileCategoryEnum.OTHERS


def icon_for(file_type: Optional[str]) -> str:
    return CATEGORY_ICONS[categorize(file_type)]


def can_preview(file_type: Optional[str]) -> bool:
    value = (file_type or "").lower()
    return "image" in value or "pdf" in value or "text" in value


def format_file_size(size: int) -> str:
    if size <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB"]
    value = float(size)
    exponent = 0
    while value >= 1024 and exponent < len(units) - 1:
        value /= 1024
        exponent += 1
    return f"{round(value, 2):g} {units[exponent]}"


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def file_statistics(files: Iterable[FileAttachmentPublic], now: Optional[datetime] = None) -> FileStatistics:
    files = list(files)
    now = now or datetime.now(timezone.utc)
    stats = FileStatistics(count=len(files))
    by_category: Dict[FileCategoryEnum, int] = {}
    by_type: Dict[str, int] = {}
    for file in files:
        stats.total_size += file.size
        category = categorize(file.file_type)
        by_category[category] = by_category.get(category, 0) + 1
        by_type[file.file_type] = by_type.get(file.file_type, 0) + 1
    stats.by_category = by_category
    stats.by_type = by_type

    cutoff = _as_utc(now) - timedelta(days=settings.RECENT_FILES_DAYS)
    recent = [f for f in files if f.created_at is not None and _as_utc(f.created_at) > cutoff]
    stats.recent_files = recent[:settings.RECENT_FILES_LIMIT]
    return stats


def search_files(files: Iterable[FileAttachmentPublic], term: str) -> List[FileAttachmentPublic]:
    files = list(files)
    if not term or not term.strip():
        return files
    needle = term.strip().lower()
    return [
        f for f in files
        if needle in f.file_name.lower() or needle in f.file_type.lower() or needle in f.uploader_username.lower()
    ]


def filter_files_by_category(files: Iterable[FileAttachmentPublic],
                             category: Union[FileCategoryEnum, str, None]) -> List[FileAttachmentPublic]:
    files = list(files)
    if not category or category == "all":
        return files
    wanted = FileCategoryEnum(category)
    return [f for f in files if categorize(f.file_type) == wanted]


def sort_files(files: Iterable[FileAttachmentPublic], by: str = "date", ascending: bool = True) -> List[FileAttachmentPublic]:
    keys = {
        "name": lambda f: f.file_name.lower(),
        "date": lambda f: _as_utc(f.created_at) if f.created_at else datetime.min.replace(tzinfo=timezone.utc),
        "size": lambda f: f.size,
        "type": lambda f: f.file_type.lower(),
    }
    if by not in keys:
        raise ValueError(f"Unknown sort key: {by}")
    return sorted(files, key=keys[by], reverse=not ascending)


class FileAttachmentManager:
    """Attachments of one project workspace: validation, transfer and a cached list."""

    def __init__(self, api_client: ApiClient, project_id: int, max_size_mb: Optional[float] = None):
        self.api = api_client
        self.project_id = project_id
        self.max_size_mb = max_size_mb if max_size_mb is not None else settings.MAX_UPLOAD_SIZE_MB
        self._files: List[FileAttachmentPublic] = []
        self._listeners: List[FileListener] = []
        self._disposed = False

    @property
    def files(self) -> List[FileAttachmentPublic]:
        return list(self._files)

    def get_file(self, file_id: int) -> Optional[FileAttachmentPublic]:
        return next((f for f in self._files if f.id == file_id), None)

    def subscribe(self, listener: FileListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def dispose(self) -> None:
        self._disposed = True
        self._listeners.clear()

    def _set_files(self, files: List[FileAttachmentPublic]) -> None:
        if self._disposed:
            return
        self._files = list(files)
        snapshot = self.files
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("File listener failed")

    def validate(self, file: LocalFile, max_size_mb: Optional[float] = None) -> FileValidationResult:
        return validate_file(file, max_size_mb if max_size_mb is not None else self.max_size_mb)

    async def list_files(self) -> Result:
        try:
            files = await self.api.list_files(self.project_id)
        except NotFoundError:
            # Older projects have no workspace file endpoint yet
            logger.info(f"No file endpoint for project {self.project_id}, treating as empty")
            files = []
        except WorkspaceError as e:
            logger.error(f"Error loading files for project {self.project_id}: {e.message}")
            return Err(e)
        self._set_files(files)
        return Ok(files)

    async def upload(self, file: LocalFile) -> AsyncIterator[UploadProgress]:
        """Upload a file, yielding progress events.

        The last event is either COMPLETED (carrying the stored attachment) or
        ERROR. Percentages never decrease.
        """
        validation = self.validate(file)
        if not validation.valid:
            yield UploadProgress(file_name=file.file_name, progress=0, status=UploadStatusEnum.ERROR,
                                 error=validation.error)
            return

        queue: asyncio.Queue = asyncio.Queue()
        last_progress = 0

        def on_progress(sent: int, total: int) -> None:
            nonlocal last_progress
            percent = round_half_up(sent * 100 / total) if total else 100
            if percent > last_progress:
                last_progress = min(percent, 100)
                queue.put_nowait(UploadProgress(file_name=file.file_name, progress=last_progress,
                                                status=UploadStatusEnum.UPLOADING))

        yield UploadProgress(file_name=file.file_name, progress=0, status=UploadStatusEnum.UPLOADING)

        request = asyncio.ensure_future(self.api.upload_file(self.project_id, file, on_progress))
        request.add_done_callback(lambda _: queue.put_nowait(None))
        while True:
            event = await queue.get()
            if event is None:
                break
            yield event

        try:
            attachment = request.result()
        except WorkspaceError as e:
            logger.error(f"Error uploading '{file.file_name}' to project {self.project_id}: {e.message}")
            yield UploadProgress(file_name=file.file_name, progress=last_progress, status=UploadStatusEnum.ERROR,
                                 error=e.message)
            return

        logger.info(f"Uploaded '{file.file_name}' to project {self.project_id} as {attachment.stored_file_name}")
        self._set_files([f for f in self._files if f.id != attachment.id] + [attachment])
        refreshed = await self.list_files()
        if not refreshed.ok:
            logger.warning(f"File list refresh after upload failed: {refreshed.message}")
        yield UploadProgress(file_name=file.file_name, progress=100, status=UploadStatusEnum.COMPLETED,
                             attachment=attachment)

    async def download(self, stored_file_name: str, display_name: str,
                       destination_dir: Optional[Union[str, Path]] = None) -> Result:
        try:
            content, content_type = await self.api.download_file(stored_file_name)
        except WorkspaceError as e:
            logger.error(f"Error downloading '{display_name}': {e.message}")
            return Err(e)

        downloaded = DownloadedFile(file_name=display_name, content=content, content_type=content_type)
        if destination_dir is not None:
            target = Path(destination_dir) / Path(display_name).name
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(content)
            downloaded.saved_path = str(target)
            logger.info(f"Saved '{display_name}' to {target}")
        return Ok(downloaded)

    async def delete_file(self, file_id: int, role: Optional[WorkspaceRoleEnum]) -> Result:
        file = self.get_file(file_id)
        if file is None:
            return Err(NotFoundError(f"File {file_id} is not part of this workspace."))
        try:
            ensure_can_delete_file(file, role, self.api.session.current_username)
        except WorkspaceError as e:
            logger.warning(f"Blocked delete of file {file_id}: {e.message}")
            return Err(e)

        try:
            await self.api.delete_file(file_id)
        except WorkspaceError as e:
            logger.error(f"Error deleting file {file_id}: {e.message}")
            return Err(e)
        self._set_files([f for f in self._files if f.id != file_id])
        logger.info(f"Deleted file {file_id} from project {self.project_id}")
        return Ok(None)

    def statistics(self) -> FileStatistics:
        return file_statistics(self._files)
