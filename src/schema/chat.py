from __future__ import annotations

import time
import uuid
from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, Field


class MessageRole(StrEnum):
    USER = "user"
    MODEL = "model"
    SYSTEM = "system"


class Citation(BaseModel):
    kind: Literal["web", "document"]
    uri: str | None = None
    title: str | None = None
    # set when a document citation resolves back to an uploaded file
    file_id: str | None = None
    file_name: str | None = None


class GroundingMetadata(BaseModel):
    citations: list[Citation] = Field(default_factory=list)
    web_search_queries: list[str] = Field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.citations or self.web_search_queries)


class ResponseFragment(BaseModel):
    """One streamed piece of a model answer."""

    text: str = ""
    grounding: GroundingMetadata | None = None


class ChatMessage(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    role: MessageRole
    text: str = ""
    timestamp: float = Field(default_factory=time.time)
    streaming: bool = False
    grounding: GroundingMetadata | None = None
    error: str | None = None


class StreamInput(BaseModel):
    message: str = Field(
        description="User question to answer from the indexed files.",
        min_length=1,
        max_length=32_000,
        examples=["Summarize report.pdf"],
    )


class ChatHistory(BaseModel):
    messages: list[ChatMessage]


class CredentialInput(BaseModel):
    api_key: str = Field(min_length=1, repr=False)


class ServiceInfo(BaseModel):
    model: str
    active_store: str | None = None
    session_state: str
    file_count: int = 0
    active_count: int = 0
    has_credential: bool = False
