"""
Configuration Module

Centralized, type-safe configuration for the tutor LLM gateway.

Components:
-----------
- **settings.py**: Pydantic-based configuration with environment variable loading
- **constants.py**: System-wide constants, enums, and limits

Usage:
------
```python
from tutor_gateway.core.config import get_settings
from tutor_gateway.core.config.constants import ErrorKind, LessonType
```
"""

from .settings import Settings, get_settings, reload_settings

__all__ = ["Settings", "get_settings", "reload_settings"]
