"""Generation mode data models"""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, field_validator


class GenerationMode(str, Enum):
    """Output contract selected by the caller"""

    FRONTEND = "frontend"
    FULLSTACK = "fullstack"
    DESIGN_CLONE = "designClone"


class GenerationRequest(BaseModel):
    """Request for a streamed generation"""

    prompt: str
    html: str | None = None  # Current artifact from the editor
    previousPrompt: str | None = None
    mode: GenerationMode = GenerationMode.FRONTEND
    modelKey: str | None = None  # "provider/model", defaults from config
    designUrl: str | None = None

    @field_validator("prompt")
    @classmethod
    def prompt_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("prompt must not be empty")
        return value


class ChatMessage(BaseModel):
    """Single chat turn sent to a provider"""

    role: Literal["system", "user", "assistant"]
    content: str


class GeneratedFile(BaseModel):
    """File extracted from a generation result"""

    language: str
    filename: str
    content: str


class StreamEvent(BaseModel):
    """SSE stream event, serialized without unset fields"""

    content: str | None = None
    done: bool | None = None
    fullContent: str | None = None
    mode: GenerationMode | None = None
    error: str | None = None

    @classmethod
    def delta(cls, content: str, mode: GenerationMode | None = None) -> "StreamEvent":
        return cls(content=content, mode=mode)

    @classmethod
    def finished(cls, full_content: str, mode: GenerationMode | None = None) -> "StreamEvent":
        return cls(done=True, fullContent=full_content, mode=mode)

    @classmethod
    def failure(cls, message: str) -> "StreamEvent":
        return cls(error=message)

    @property
    def is_terminal(self) -> bool:
        return bool(self.done) or self.error is not None

    def to_json(self) -> str:
        return self.model_dump_json(exclude_none=True)


class ParseFilesRequest(BaseModel):
    """Request to split a finished response into files"""

    content: str | None = None


class ParseFilesResponse(BaseModel):
    ok: bool = True
    files: list[GeneratedFile] = []
