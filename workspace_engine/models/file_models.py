from pydantic import BaseModel
from pydantic.alias_generators import to_camel
from typing import Dict, List, Optional
from datetime import datetime
from enum import Enum

class FileCategoryEnum(str, Enum):
    IMAGES = "Images"
    DOCUMENTS = "Documents"
    ARCHIVES = "Archives"
    VIDEOS = "Videos"
    AUDIO = "Audio"
    OTHERS = "Others"

class UploadStatusEnum(str, Enum):
    UPLOADING = "uploading"
    COMPLETED = "completed"
    ERROR = "error"

class FileAttachmentPublic(BaseModel):
    id: int
    file_name: str
    stored_file_name: str
    file_type: str
    size: int
    uploader_username: str
    download_url: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True

class LocalFile(BaseModel):
    """A file picked on the client side, not yet uploaded."""
    file_name: str
    content: bytes
    content_type: str

    @property
    def size(self) -> int:
        return len(self.content)

class FileValidationResult(BaseModel):
    valid: bool
    error: Optional[str] = None

class UploadProgress(BaseModel):
    file_name: str
    progress: int
    status: UploadStatusEnum
    attachment: Optional[FileAttachmentPublic] = None
    error: Optional[str] = None

class DownloadedFile(BaseModel):
    file_name: str
    content: bytes
    content_type: Optional[str] = None
    saved_path: Optional[str] = None

class FileStatistics(BaseModel):
    count: int = 0
    total_size: int = 0
    by_category: Dict[FileCategoryEnum, int] = {}
    by_type: Dict[str, int] = {}
    recent_files: List[FileAttachmentPublic] = []
