from typing import Callable, List, Optional
import logging

from workspace_engine.models.chat_models import ChatAttachment, ChatMessage
from workspace_engine.models.role_permission_models import WorkspaceRoleEnum
from workspace_engine.utils.errors import ValidationError

logger = logging.getLogger(__name__)

MessageListener = Callable[[List[ChatMessage]], None]


class ChatSession:
    """Append-only message list backing a workspace transcript."""

    def __init__(self, username: str, role: WorkspaceRoleEnum):
        self.username = username
        self.role = role
        self._messages: List[ChatMessage] = []
        self._listeners: List[MessageListener] = []

    @property
    def messages(self) -> List[ChatMessage]:
        return list(self._messages)

    def subscribe(self, listener: MessageListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def _append(self, message: ChatMessage) -> None:
        self._messages.append(message)
        snapshot = self.messages
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Chat listener failed")

    def send(self, content: str, attachments: Optional[List[ChatAttachment]] = None) -> ChatMessage:
        if not content or not content.strip():
            raise ValidationError("Message content is required.")
        message = ChatMessage(
            sender=self.username,
            sender_role=self.role,
            content=content.strip(),
            attachments=attachments or [],
            is_read=True,
        )
        self._append(message)
        return message

    def receive(self, message: ChatMessage) -> bool:
        if any(m.id == message.id for m in self._messages):
            logger.debug(f"Ignoring duplicate chat message {message.id}")
            return False
        self._append(message)
        return True

    def is_my_message(self, message: ChatMessage) -> bool:
        return message.sender_role == self.role

    def unread_count(self) -> int:
        return sum(1 for m in self._messages if not m.is_read and not self.is_my_message(m))

    def mark_all_read(self) -> None:
        self._messages = [m if m.is_read else m.model_copy(update={"is_read": True}) for m in self._messages]

    def needs_date_separator(self, index: int) -> bool:
        if index <= 0:
            return True
        current = self._messages[index].timestamp.date()
        previous = self._messages[index - 1].timestamp.date()
        return current != previous
