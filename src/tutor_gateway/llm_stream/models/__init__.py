from .chat import ChatCompletionRequest, ChatCompletionResponse
from .stream_request import ChatMessage, StreamRequest, TutorEvent, Usage
from .topic import ExpandTopicRequest, InternalLink, TopicContext, TopicExpansion
from .tutor import LessonContext, TutorTurnRequest

__all__ = [
    "ChatCompletionRequest",
    "ChatCompletionResponse",
    "ChatMessage",
    "StreamRequest",
    "TutorEvent",
    "Usage",
    "ExpandTopicRequest",
    "InternalLink",
    "TopicContext",
    "TopicExpansion",
    "LessonContext",
    "TutorTurnRequest",
]
