from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional
from datetime import date, datetime
from enum import Enum

class TaskStatusEnum(str, Enum):
    TO_DO = "TO_DO"
    IN_PROGRESS = "IN_PROGRESS"
    IN_REVIEW = "IN_REVIEW"
    DONE = "DONE"

class TaskPriorityEnum(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"

class TaskHistoryActionEnum(str, Enum):
    TASK_CREATED = "TASK_CREATED"
    STATUS_UPDATED = "STATUS_UPDATED"
    TITLE_UPDATED = "TITLE_UPDATED"
    DESCRIPTION_UPDATED = "DESCRIPTION_UPDATED"
    ASSIGNEE_UPDATED = "ASSIGNEE_UPDATED"
    ATTACHMENT_ADDED = "ATTACHMENT_ADDED"

class CamelModel(BaseModel):
    # camelCase on the wire, snake_case in Python
    class Config:
        alias_generator = to_camel
        populate_by_name = True

class TaskBase(CamelModel):
    title: str
    description: Optional[str] = None
    priority: TaskPriorityEnum = TaskPriorityEnum.MEDIUM
    due_date: Optional[date] = None
    estimated_hours: Optional[float] = None
    notes: Optional[str] = None

class TaskCreate(TaskBase):
    title: str = Field(min_length=1, max_length=255)
    estimated_hours: Optional[float] = Field(default=None, ge=0)
    assignee_username: Optional[str] = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Title is required")
        return value.strip()

class TaskUpdate(CamelModel):
    # Only fields explicitly set are sent and patched
    title: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = None
    status: Optional[TaskStatusEnum] = None
    priority: Optional[TaskPriorityEnum] = None
    due_date: Optional[date] = None
    estimated_hours: Optional[float] = Field(default=None, ge=0)
    actual_hours: Optional[float] = Field(default=None, ge=0)
    notes: Optional[str] = None
    assignee_username: Optional[str] = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, value: Optional[str]) -> str:
        # Only runs for fields the caller set, so None here is an explicit null
        if value is None or not value.strip():
            raise ValueError("Title is required")
        return value.strip()

    @field_validator("status", "priority")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("Field cannot be null")
        return value

class TaskStatusUpdate(CamelModel):
    status: TaskStatusEnum

class TaskPublic(TaskBase):
    id: int
    status: TaskStatusEnum = TaskStatusEnum.TO_DO
    actual_hours: Optional[float] = None
    project_id: Optional[int] = None
    assignee_username: Optional[str] = None
    assignee_display_name: Optional[str] = None
    created_by_username: Optional[str] = None
    created_by_display_name: Optional[str] = None
    is_overdue: bool = False
    is_completed: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class TaskHistoryPublic(CamelModel):
    id: int
    action: TaskHistoryActionEnum
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    details: Optional[str] = None
    modified_by_username: Optional[str] = None
    timestamp: datetime

class TaskStatistics(BaseModel):
    total: int = 0
    to_do: int = 0
    in_progress: int = 0
    in_review: int = 0
    done: int = 0
    overdue: int = 0
    low_priority: int = 0
    medium_priority: int = 0
    high_priority: int = 0
    urgent_priority: int = 0
    total_estimated_hours: float = 0
    total_actual_hours: float = 0
    completion_percentage: int = 0
