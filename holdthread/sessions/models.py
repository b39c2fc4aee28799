from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import List
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, Enum):
    system = "system"
    user = "user"
    assistant = "assistant"


class Message(BaseModel):
    """Immutable role-tagged transcript entry."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str
    created_at: datetime = Field(default_factory=_now)

    @field_validator("content")
    @classmethod
    def _content_not_empty(cls, value: str) -> str:
        if not value:
            raise ValueError("Content cannot be empty")
        return value


class Session(BaseModel):
    id: str = Field(default_factory=lambda: uuid4().hex)
    main_chain: List[Message] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=_now)
    last_updated_at: datetime = Field(default_factory=_now)

    def append(self, message: Message) -> None:
        self.main_chain.append(message)
        self.last_updated_at = _now()
