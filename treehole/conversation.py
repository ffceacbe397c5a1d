# treehole/conversation.py
from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field

from treehole.llm.models import LLMMessage, MessageRole

Role = Literal["user", "assistant"]


class EmotionTag(str, Enum):
    """Mood a user can attach to a journal entry."""
    HAPPY = "😊"
    SAD = "😢"
    ANGRY = "😠"
    CONFUSED = "😕"
    EXCITED = "😃"
    CALM = "😌"


class ConversationMessage(BaseModel):
    """One visible turn of the conversation."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    role: Role
    content: str = ""
    emotion_tag: EmotionTag | None = None
    finish_reason: str | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def is_user(self) -> bool:
        return self.role == "user"

    def to_llm_message(self) -> LLMMessage:
        return LLMMessage(role=MessageRole(self.role), content=self.content)


class Transcript:
    """
    Ordered messages of one conversation.

    At most one assistant message is open for streaming at a time. It is
    tracked by id so that appends never depend on list position.
    """

    def __init__(self) -> None:
        self._messages: list[ConversationMessage] = []
        self._by_id: dict[str, ConversationMessage] = {}
        self._open_id: str | None = None

    @property
    def messages(self) -> list[ConversationMessage]:
        return list(self._messages)

    @property
    def open_message(self) -> ConversationMessage | None:
        if self._open_id is None:
            return None
        return self._by_id[self._open_id]

    def __len__(self) -> int:
        return len(self._messages)

    def _append(self, message: ConversationMessage) -> ConversationMessage:
        self._messages.append(message)
        self._by_id[message.id] = message
        return message

    def add_user_message(
        self, content: str, emotion_tag: EmotionTag | None = None
    ) -> ConversationMessage:
        """Append a user turn; any open assistant reply is closed first."""
        self.close_open_message()
        return self._append(
            ConversationMessage(role="user", content=content, emotion_tag=emotion_tag)
        )

    def apply_delta(self, content: str) -> ConversationMessage:
        """Append ``content`` to the open reply, opening one if needed."""
        message = self.open_message
        if message is None:
            message = self._append(ConversationMessage(role="assistant", content=content))
            self._open_id = message.id
        else:
            message.content += content
        return message

    def record_finish(self, finish_reason: str) -> None:
        if (message := self.open_message) is not None:
            message.finish_reason = finish_reason

    def close_open_message(self) -> None:
        self._open_id = None

    def reset(self) -> None:
        self._messages.clear()
        self._by_id.clear()
        self._open_id = None

    def to_llm_messages(self) -> list[LLMMessage]:
        return [message.to_llm_message() for message in self._messages]
