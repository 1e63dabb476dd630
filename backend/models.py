"""
Pydantic request models for the companion routes.
"""

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, StrictStr

from config import MAX_MESSAGE_LENGTH
from core.types import Language, Message, TurnRequest, UserIdentity


class HistoryMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str
    agent: Optional[str] = None
    language: Literal["en", "bn"] = "en"

    def to_message(self) -> Message:
        return Message.from_dict(self.model_dump())


class CompanionRequest(BaseModel):
    message: StrictStr = Field(max_length=MAX_MESSAGE_LENGTH)
    conversationId: Optional[str] = None
    history: Optional[list[HistoryMessage]] = None
    language: Literal["en", "bn"] = "en"
    context: dict[str, Any] = Field(default_factory=dict)

    def to_turn_request(self, conversation_id: Optional[str], user: UserIdentity) -> TurnRequest:
        history = None
        if self.history is not None:
            history = tuple(m.to_message() for m in self.history)
        return TurnRequest(
            message=self.message.strip(),
            language=Language(self.language),
            conversation_id=conversation_id,
            history=history,
            user=user,
            context=self.context,
        )
