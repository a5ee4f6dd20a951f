"""
Exception Module

Structured exception hierarchy for the tutor LLM gateway.

Module Structure:
-----------------
- **base.py**: GatewayBaseError base class + ConfigurationError
- **cache.py**: Cache-related exceptions (Redis, in-memory)
- **provider.py**: NormalizedError value + LLMGatewayError
- **validation.py**: Request validation exceptions

Usage:
------
```python
from tutor_gateway.core.exceptions import LLMGatewayError, CacheConnectionError
```

Author: System Architect
Date: 2025-12-08
"""

# Base exception
from tutor_gateway.core.exceptions.base import ConfigurationError, GatewayBaseError

# Cache exceptions
from tutor_gateway.core.exceptions.cache import CacheConnectionError, CacheError, CacheKeyError

# Provider exceptions
from tutor_gateway.core.exceptions.provider import LLMGatewayError, NormalizedError

# Validation exceptions
from tutor_gateway.core.exceptions.validation import InvalidInputError, ValidationError

__all__ = [
    # Base
    "GatewayBaseError",
    "ConfigurationError",
    # Cache
    "CacheError",
    "CacheConnectionError",
    "CacheKeyError",
    # Provider
    "NormalizedError",
    "LLMGatewayError",
    # Validation
    "ValidationError",
    "InvalidInputError",
]
