"""
Tutor Conversation Models

Inbound shapes for one tutor turn. Length limits on the user message are
enforced by the tutor service (so that an oversized message still yields a
well-formed ``start, error`` event sequence) rather than by the model.
"""

from pydantic import BaseModel, Field

from tutor_gateway.core.config.constants import LessonType
from tutor_gateway.llm_stream.models.stream_request import ChatMessage


class LessonContext(BaseModel):
    """Lesson the learner is currently looking at."""

    model_config = {"frozen": True}

    lesson_id: str = Field(..., min_length=1)
    title: str = ""
    objectives: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    lesson_type: LessonType = LessonType.TEORIA


class TutorTurnRequest(BaseModel):
    """One learner message plus the context needed to answer it."""

    model_config = {"frozen": True}

    user_message: str
    lesson_context: LessonContext
    provider_name: str | None = Field(default=None, description="Requested provider, default if omitted")
    history: list[ChatMessage] = Field(default_factory=list)
