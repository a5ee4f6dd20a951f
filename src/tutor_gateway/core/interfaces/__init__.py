"""
Core Interfaces Module

Protocols for the collaborators the gateway depends on but does not own.

Components:
-----------
- **cache.py**: CacheBackend protocol for response-cache stores
- **conversation.py**: ConversationStore protocol for history persistence

Author: System Architect
Date: 2025-12-08
"""

from .cache import CacheBackend
from .conversation import ConversationStore

__all__ = ["CacheBackend", "ConversationStore"]
