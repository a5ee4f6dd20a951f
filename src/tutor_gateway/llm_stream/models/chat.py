"""
Chat Completion Models

A free-form conversation sent through the gateway, answered either as a
live event stream or as one buffered response.
"""

from pydantic import BaseModel, Field, model_validator

from tutor_gateway.llm_stream.models.stream_request import ChatMessage, Usage
from tutor_gateway.llm_stream.models.tutor import LessonContext


class ChatCompletionRequest(BaseModel):
    """
    Conversation ending with the learner's turn.

    When ``system_prompt`` is absent and ``lesson_context`` is given, the
    tutor's lesson prompt is used.
    """

    model_config = {"frozen": True}

    messages: list[ChatMessage] = Field(..., min_length=1)
    system_prompt: str | None = None
    lesson_context: LessonContext | None = None
    provider_name: str | None = None
    temperature: float | None = None
    max_tokens: int | None = Field(default=None, gt=0)
    stream: bool = True

    @model_validator(mode="after")
    def last_message_from_user(self) -> "ChatCompletionRequest":
        last = self.messages[-1]
        if last.role != "user" or not last.content.strip():
            raise ValueError("Last message must be from user with content")
        return self


class ChatCompletionResponse(BaseModel):
    content: str
    usage: Usage
    provider: str
    message_id: str
    cached: bool = False
