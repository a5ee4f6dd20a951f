from typing import Any, Literal

import orjson
from pydantic import BaseModel, Field, field_validator

from tutor_gateway.core.config.constants import DEFAULT_TEMPERATURE, DEFAULT_TOP_P

Role = Literal["user", "assistant"]


class ChatMessage(BaseModel):
    """One conversation turn in canonical (vendor-neutral) form."""

    model_config = {"frozen": True}

    role: Role
    content: str


class Usage(BaseModel):
    """
    Token accounting for one completion.

    Only reliably populated once a stream reaches its End chunk; vendors
    that never report usage leave every field at zero.
    """

    model_config = {"frozen": True}

    prompt_tokens: int = Field(default=0, ge=0)
    completion_tokens: int = Field(default=0, ge=0)
    total_tokens: int = Field(default=0, ge=0)

    @classmethod
    def from_counts(cls, prompt_tokens: int | None, completion_tokens: int | None, total_tokens: int | None = None) -> "Usage":
        prompt = max(int(prompt_tokens or 0), 0)
        completion = max(int(completion_tokens or 0), 0)
        total = int(total_tokens) if total_tokens else prompt + completion
        return cls(prompt_tokens=prompt, completion_tokens=completion, total_tokens=max(total, 0))


class StreamRequest(BaseModel):
    """
    Canonical request handed to a provider client.

    Constructed per call by the orchestrator and never mutated; adapters
    translate it into their vendor wire schema.
    """

    model_config = {"frozen": True}

    messages: tuple[ChatMessage, ...] = Field(..., min_length=1, description="Ordered conversation")
    system_prompt: str | None = Field(default=None, description="Instructions for the model")
    temperature: float = Field(default=DEFAULT_TEMPERATURE, ge=0.0, le=2.0)
    top_p: float = Field(default=DEFAULT_TOP_P, gt=0.0, le=1.0)
    max_tokens: int | None = Field(default=None, gt=0)

    @field_validator("messages", mode="before")
    @classmethod
    def coerce_messages(cls, v):
        """Accept lists and plain dicts for convenience."""
        return tuple(ChatMessage(**m) if isinstance(m, dict) else m for m in v)


EventType = Literal["start", "token", "end", "suggestions", "error"]


class TutorEvent(BaseModel):
    """
    Outbound event relayed to the client transport.

    Sequence: start, token*, end, suggestions  (or start, error).
    """

    model_config = {"frozen": True}

    type: EventType
    delta: str | None = None
    usage: Usage | None = None
    suggestions: list[str] | None = None
    message: str | None = None
    code: str | None = None

    @classmethod
    def start(cls) -> "TutorEvent":
        return cls(type="start")

    @classmethod
    def token(cls, delta: str) -> "TutorEvent":
        return cls(type="token", delta=delta)

    @classmethod
    def end(cls, usage: Usage | None) -> "TutorEvent":
        return cls(type="end", usage=usage or Usage())

    @classmethod
    def suggestion_list(cls, suggestions: list[str]) -> "TutorEvent":
        return cls(type="suggestions", suggestions=list(suggestions))

    @classmethod
    def error(cls, message: str, code: str | None = None) -> "TutorEvent":
        return cls(type="error", message=message, code=code)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True, mode="json")

    def format(self) -> str:
        """Format as SSE protocol string."""
        payload = orjson.dumps(self.to_dict()).decode()
        return f"event: {self.type}\ndata: {payload}\n\n"
