"""Pydantic models for OpenAI-compatible chat completion payloads."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class ChatBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ChatMessage(ChatBaseModel):
    role: str
    content: str | None = None


class ChatChoice(ChatBaseModel):
    index: int = 0
    message: ChatMessage
    finish_reason: str | None = None


class ChatCompletionResponse(ChatBaseModel):
    id: str | None = None
    model: str | None = None
    choices: list[ChatChoice] = []

    def first_content(self) -> str | None:
        if not self.choices:
            return None
        return self.choices[0].message.content


class ChatCompletionRequest(ChatBaseModel):
    model: str
    messages: list[ChatMessage]
    temperature: float = 0.0
    stream: bool = False
