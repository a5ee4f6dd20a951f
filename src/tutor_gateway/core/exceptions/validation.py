"""
Validation Exceptions

All exceptions related to request validation.

Author: System Architect
Date: 2025-12-08
"""

from tutor_gateway.core.exceptions.base import GatewayBaseError


class ValidationError(GatewayBaseError):
    """
    Raised when request validation fails.

    This is the base class for all validation-related errors.
    """
    pass


class InvalidInputError(ValidationError):
    """
    Raised when a learner message is rejected.

    Common causes:
    - Empty message
    - Message longer than the allowed maximum

    The message is learner-facing and is relayed as the error event text.
    """
    pass
