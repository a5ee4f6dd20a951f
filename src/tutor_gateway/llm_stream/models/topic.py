"""
Topic Expansion Models

The structured answer shape shared by the LLM path and the deterministic
fallback generator, plus the reading context both are built from.
"""

from typing import Literal

from pydantic import BaseModel, Field


class TopicContext(BaseModel):
    """What the learner is reading when they ask to expand a topic."""

    model_config = {"frozen": True}

    lesson_id: str = Field(..., min_length=1)
    module_id: str | None = None
    lesson_title: str | None = None
    module_title: str | None = None
    section_title: str | None = None
    section_content: str | None = None
    visible_text: str | None = None
    user_selection: str | None = None
    breadcrumbs: list[str] = Field(default_factory=list)


class ExpandTopicRequest(BaseModel):
    model_config = {"frozen": True}

    context: TopicContext
    question: str | None = Field(default=None, max_length=2000)
    provider_name: str | None = None


class InternalLink(BaseModel):
    model_config = {"frozen": True}

    title: str
    url: str
    description: str = ""


class TopicExpansion(BaseModel):
    """Uniform output contract regardless of which path produced it."""

    model_config = {"frozen": True}

    expanded_explanation: str
    key_points: list[str] = Field(default_factory=list)
    suggested_references: list[str] = Field(default_factory=list)
    internal_links: list[InternalLink] = Field(default_factory=list)
    source: Literal["llm", "fallback"] = "llm"
    provider: str | None = None
