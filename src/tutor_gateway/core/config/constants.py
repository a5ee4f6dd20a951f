#!/usr/bin/env python3
"""
System Constants and Enumerations

This module defines system-wide constants and enumerations used across
the tutor LLM gateway.

Architectural Decision: Centralized constants for maintainability
- Single source of truth for magic numbers
- Type-safe enums for error kinds, providers and lesson types
- Easy to update and track changes

Author: System Architect
Date: 2025-12-05
"""

from enum import Enum

# ============================================================================
# Error Taxonomy
# ============================================================================


class ErrorKind(str, Enum):
    """
    Normalized failure kinds produced by the gateway.

    Every vendor, transport or parse failure is reduced to exactly one of
    these before it leaves the orchestrator.
    """

    INVALID_API_KEY = "INVALID_API_KEY"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    MODEL_NOT_FOUND = "MODEL_NOT_FOUND"
    TIMEOUT = "TIMEOUT"
    PROVIDER_ERROR = "PROVIDER_ERROR"
    CLIENT_ERROR = "CLIENT_ERROR"
    EMPTY_RESPONSE = "EMPTY_RESPONSE"
    NO_PROVIDER_AVAILABLE = "NO_PROVIDER_AVAILABLE"
    MAX_RETRIES_EXCEEDED = "MAX_RETRIES_EXCEEDED"


# Kinds the services absorb into the deterministic fallback
FALLBACK_ERROR_KINDS = frozenset({ErrorKind.NO_PROVIDER_AVAILABLE, ErrorKind.EMPTY_RESPONSE})


# ============================================================================
# LLM Providers
# ============================================================================


class LLMProvider(str, Enum):
    """
    Supported LLM providers (canonical registry names).
    """

    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"


PROVIDER_ALIASES = {
    "gemini": LLMProvider.GOOGLE.value,
    "claude": LLMProvider.ANTHROPIC.value,
}


# ============================================================================
# Lesson Types
# ============================================================================


class LessonType(str, Enum):
    TEORIA = "teoria"
    CASO_CLINICO = "caso_clinico"
    SIMULACION = "simulacion"
    EVALUACION = "evaluacion"


# ============================================================================
# Gateway Limits
# ============================================================================

# Temperature is clamped to this range for tutoring answers
TEMPERATURE_MIN = 0.2
TEMPERATURE_MAX = 0.5
DEFAULT_TEMPERATURE = 0.3
DEFAULT_TOP_P = 0.9

# Retry settings
DEFAULT_MAX_RETRIES = 1  # 1 retry, 2 attempts in total
RETRY_BASE_DELAY = 1.0  # seconds, doubled per attempt

# Per-attempt wall-clock deadline (seconds)
GATEWAY_TIMEOUT = 30.0

# Output limits
MAX_RESPONSE_CHARS = 4000
MAX_PLAIN_TEXT_CHARS = 3000
MAX_USER_MESSAGE_LENGTH = 2000
MAX_HISTORY_MESSAGES = 20
MAX_PROMPT_CONTENT_CHARS = 3000
MAX_PROMPT_SELECTION_CHARS = 1000

# Structured answer caps (fallback generator)
MAX_KEY_POINTS = 6
MAX_REFERENCES = 6
MAX_INTERNAL_LINKS = 5

# Structured answer caps (parsed LLM output)
MAX_LLM_KEY_POINTS = 8
MAX_SUGGESTIONS = 6

# ============================================================================
# Cache Settings
# ============================================================================

CACHE_NAMESPACE = "tutor:ai"
CACHE_TTL_SECONDS = 7 * 24 * 60 * 60  # 7 days
CACHE_MIN_ANSWER_LENGTH = 30
CACHE_MEMORY_MAX_SIZE = 1000
CACHE_REPLAY_CHUNK_SIZE = 10
CACHE_REPLAY_DELAY_MS = 10

# Bumping this invalidates every cached answer
PROMPT_TEMPLATE_VERSION = "v1"

# ============================================================================
# HTTP Headers
# ============================================================================

HEADER_REQUEST_ID = "X-Request-ID"
