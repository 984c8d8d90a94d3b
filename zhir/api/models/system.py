"""
System-related API models: health, stats, errors.
"""

from typing import Any, Optional

from pydantic import BaseModel


class ProviderStatus(BaseModel):
    """Provider status for health check."""
    available: bool
    error: Optional[str] = None


class StatsResponse(BaseModel):
    """Database statistics."""
    user_count: int
    conversation_count: int
    turn_count: int
    blog_count: int


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str = "1.0.0"
    llm_provider: str
    providers: dict[str, ProviderStatus] = {}
    stats: Optional[StatsResponse] = None


class ErrorResponse(BaseModel):
    """Body of every error response."""
    error: str
    code: str
    detail: Optional[Any] = None
