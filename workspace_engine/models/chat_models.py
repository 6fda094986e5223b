from pydantic import BaseModel, Field
from typing import List
from datetime import datetime, timezone
import uuid

from workspace_engine.models.role_permission_models import WorkspaceRoleEnum

class ChatAttachment(BaseModel):
    name: str
    size: int
    type: str

class ChatMessage(BaseModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    sender: str
    sender_role: WorkspaceRoleEnum
    content: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    attachments: List[ChatAttachment] = []
    is_read: bool = False
