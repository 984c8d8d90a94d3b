"""
Application exceptions.

Each exception carries the HTTP status and the machine-readable error code
that the API renders as ``{"error": ..., "code": ...}``.
"""

from typing import Any, Dict, Optional


class AssistantError(Exception):
    """Base exception for the assistant API."""

    status_code: int = 500
    default_code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(AssistantError):
    """Raised when request input is rejected before any work starts."""

    status_code = 400
    default_code = "VALIDATION_ERROR"


class AuthenticationError(AssistantError):
    """Raised when no authenticated principal is attached to the request."""

    status_code = 401
    default_code = "UNAUTHORIZED"

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class InsufficientCreditsError(AssistantError):
    """Raised when a metered operation exceeds the caller's credit balance."""

    status_code = 402
    default_code = "INSUFFICIENT_CREDITS"

    def __init__(self, balance: int, required: int):
        super().__init__(
            "Insufficient coins. Please purchase more credits.",
            details={"balance": balance, "required": required},
        )


class NotFoundError(AssistantError):
    """Raised when a resource is missing or not owned by the caller."""

    status_code = 404
    default_code = "NOT_FOUND"


class ConflictError(AssistantError):
    """Raised when a write conflicts with the current state of a record."""

    status_code = 409
    default_code = "CONFLICT"


class StaleConversationError(ConflictError):
    """Raised when a conversation gained turns after a relay read it."""

    def __init__(self, conversation_id: str, expected_version: int):
        super().__init__(
            f"Conversation {conversation_id} changed while the response was generated",
            error_code="STALE_CONVERSATION",
            details={"conversation_id": conversation_id, "expected_version": expected_version},
        )


class ProviderError(AssistantError):
    """Raised when the upstream LLM provider cannot be used."""

    status_code = 503
    default_code = "PROVIDER_UNAVAILABLE"
