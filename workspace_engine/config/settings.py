from pydantic_settings import BaseSettings
from typing import List, Optional

class Settings(BaseSettings):
    PROJECT_NAME: str = "Workspace Engine"
    PROJECT_VERSION: str = "0.1.0"

    # REST backend
    API_BASE_URL: str = "http://localhost:8081/api"
    REQUEST_TIMEOUT_SECONDS: float = 30.0

    # File attachments
    MAX_UPLOAD_SIZE_MB: int = 50
    # MIME prefixes accepted at upload time
    ALLOWED_FILE_TYPES: List[str] = [
        "image/",
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.",
        "application/vnd.ms-excel",
        "application/vnd.ms-powerpoint",
        "text/",
        "application/zip",
        "application/x-zip-compressed",
        "application/x-rar",
        "application/vnd.rar",
        "application/x-7z-compressed",
        "application/gzip",
        "application/x-tar",
        "video/",
        "audio/",
    ]
    RECENT_FILES_DAYS: int = 7
    RECENT_FILES_LIMIT: int = 5

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    LOG_FILE: Optional[str] = None

    class Config:
        case_sensitive = True
        env_file = ".env" # Load from .env file if present

settings = Settings()
