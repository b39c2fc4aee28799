from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

from holdthread.sessions.models import Message, Role


def _now() -> datetime:
    return datetime.now(timezone.utc)


class DigressionSession(BaseModel):
    """Short-lived branch conversation about a piece of a parent session.

    ``parent_session_id`` is a lookup key, not an owning reference: the parent is
    fetched by id and checked for existence whenever it is needed.
    """

    digression_id: str = Field(default_factory=lambda: uuid4().hex)
    parent_session_id: str
    selected_text: Optional[str] = None
    messages: List[Message] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_now)
    last_updated_at: datetime = Field(default_factory=_now)

    @field_validator("parent_session_id")
    @classmethod
    def _parent_not_empty(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("Parent session ID cannot be empty")
        return value

    def add_message(self, message: Message) -> None:
        self.messages.append(message)
        self.last_updated_at = _now()

    def update_selected_text(self, selected_text: Optional[str]) -> None:
        self.selected_text = selected_text
        self.last_updated_at = _now()

    def last_assistant_message(self) -> Optional[Message]:
        for message in reversed(self.messages):
            if message.role == Role.assistant:
                return message
        return None
