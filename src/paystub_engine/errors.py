"""Error taxonomy shared by calculators, services, and the API layer.

All errors are local and recoverable by the caller. Nothing here is retried
by the engine itself.
"""

from __future__ import annotations

from typing import Any


class PaystubEngineError(Exception):
    """Base class for all engine errors."""

    code = "ENGINE_ERROR"

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.context = context
        super().__init__(message)


class ValidationError(PaystubEngineError):
    """Raised for malformed or missing required input."""

    code = "VALIDATION_ERROR"


class NotFoundError(PaystubEngineError):
    """Raised when a referenced entity does not exist."""

    code = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: Any, message: str | None = None):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            message or f"{entity_type} {entity_id} not found",
            entity_type=entity_type,
            entity_id=str(entity_id),
        )


class ConfigurationError(PaystubEngineError):
    """Raised when legal-parameter data cannot produce a correct result.

    Examples: overlapping bracket ranges, missing coverage, negative rates,
    ambiguous contribution rates.
    """

    code = "CONFIGURATION_ERROR"


class ConflictError(PaystubEngineError):
    """Raised on duplicate unique keys or writes against immutable records."""

    code = "CONFLICT"


class InvalidTransitionError(ConflictError):
    """Raised when an invalid status transition is attempted."""

    code = "INVALID_TRANSITION"

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, from_status=from_status, to_status=to_status)
