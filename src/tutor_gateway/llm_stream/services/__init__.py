"""
LLM Stream Services

Gateway orchestration plus the two tutor flows built on top of it.
"""

from .deterministic_fallback import generate_fallback_expansion
from .error_taxonomy import classify_error
from .fingerprint import build_fingerprint, normalize_question
from .stream_orchestrator import GatewayCall, GatewayResult, StreamOrchestrator
from .topic_expansion_service import TopicExpansionService, parse_llm_response
from .tutor_service import TutorService

__all__ = [
    "StreamOrchestrator",
    "GatewayCall",
    "GatewayResult",
    "classify_error",
    "build_fingerprint",
    "normalize_question",
    "generate_fallback_expansion",
    "TutorService",
    "TopicExpansionService",
    "parse_llm_response",
]
