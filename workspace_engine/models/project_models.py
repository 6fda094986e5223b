from pydantic import BaseModel
from pydantic.alias_generators import to_camel
from typing import Optional
from datetime import date, datetime
from enum import Enum

class ProjectStatusEnum(str, Enum):
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CLOSED = "CLOSED"
    CANCELLED = "CANCELLED"

class ProjectPublic(BaseModel):
    # Read-mostly context owned by the project service
    id: int
    title: str
    description: Optional[str] = None
    status: ProjectStatusEnum = ProjectStatusEnum.OPEN
    deadline: Optional[date] = None
    client_username: str
    assigned_talent_username: Optional[str] = None
    budget_min: Optional[float] = None
    budget_max: Optional[float] = None
    currency: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True
