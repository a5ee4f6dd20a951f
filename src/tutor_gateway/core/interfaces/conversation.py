"""
Conversation Store Protocol

Conversation history lives outside the gateway. The tutor service only
needs somewhere to append the two messages of a successful turn.

Author: System Architect
Date: 2025-12-08
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class ConversationStore(Protocol):
    """
    Append-only sink for completed tutor turns.

    Failures raised here are logged by the caller and never interrupt
    answer delivery.
    """

    async def save_message(self, lesson_id: str, role: str, content: str) -> None:
        ...
