"""
Pydantic request/response models for the Zhir API.

Re-exports all models for convenient imports::

    from zhir.api.models import ChatStreamRequest, HealthResponse
"""

from zhir.api.models.system import (
    ProviderStatus,
    StatsResponse,
    HealthResponse,
    ErrorResponse,
)
from zhir.api.models.chat import (
    ChatStreamRequest,
    SaveTurnRequest,
    TurnResponse,
    ConversationResponse,
    ConversationSummary,
    ConversationListResponse,
    NewConversationResponse,
    DeleteResponse,
)
from zhir.api.models.blog import (
    BlogGenerateRequest,
    BlogGenerateResponse,
    BlogSaveRequest,
    BlogCreatedResponse,
    BlogResponse,
    BlogSummary,
    BlogListResponse,
)
from zhir.api.models.users import UserResponse

__all__ = [
    # System
    "ProviderStatus",
    "StatsResponse",
    "HealthResponse",
    "ErrorResponse",
    # Chat
    "ChatStreamRequest",
    "SaveTurnRequest",
    "TurnResponse",
    "ConversationResponse",
    "ConversationSummary",
    "ConversationListResponse",
    "NewConversationResponse",
    "DeleteResponse",
    # Blog
    "BlogGenerateRequest",
    "BlogGenerateResponse",
    "BlogSaveRequest",
    "BlogCreatedResponse",
    "BlogResponse",
    "BlogSummary",
    "BlogListResponse",
    # Users
    "UserResponse",
]
