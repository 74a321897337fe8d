"""Wire models for the chat endpoint."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

Role = Literal["system", "user", "assistant"]


class MessagePart(BaseModel):
    model_config = ConfigDict(extra="ignore")

    type: str
    text: str | None = None


class ChatMessage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str | None = None
    role: Role
    parts: list[MessagePart] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _content_as_part(cls, data):
        # Plain {"role", "content"} messages become a single text part
        if isinstance(data, dict) and "parts" not in data and isinstance(data.get("content"), str):
            data = {**data, "parts": [{"type": "text", "text": data["content"]}]}
        return data

    @property
    def text_parts(self) -> list[str]:
        return [part.text for part in self.parts if part.type == "text" and part.text]

    @property
    def text(self) -> str:
        return "".join(self.text_parts)


class ChatRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    messages: list[ChatMessage]
    model: str | None = None

    def user_messages(self) -> list[ChatMessage]:
        return [message for message in self.messages if message.role == "user"]


__all__ = ["ChatMessage", "ChatRequest", "MessagePart", "Role"]
