"""
Chat-related API models: streaming requests, conversations and turns.
"""

from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, Field


class ChatStreamRequest(BaseModel):
    """Request to stream an assistant reply."""
    # Validated by the relay
    message: Any = None
    conversation_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("conversationId", "chatId", "conversation_id"),
    )


class SaveTurnRequest(BaseModel):
    """Store a turn that was produced elsewhere."""
    user_message: str = Field(default="", validation_alias=AliasChoices("userMessage", "user_message"))
    ai_response: str = Field(default="", validation_alias=AliasChoices("aiResponse", "ai_response"))
    conversation_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("conversationId", "chatId", "conversation_id"),
    )


class TurnResponse(BaseModel):
    """One completed exchange."""
    position: int
    user_message: str
    ai_response: str
    created_at: str


class ConversationResponse(BaseModel):
    """A conversation with all of its turns."""
    id: str
    title: str
    version: int
    created_at: str
    updated_at: str
    turns: list[TurnResponse] = []


class ConversationSummary(BaseModel):
    """Conversation list entry."""
    id: str
    title: str
    last_message: str
    updated_at: str


class ConversationListResponse(BaseModel):
    """List of the caller's conversations."""
    conversations: list[ConversationSummary]
    count: int


class NewConversationResponse(BaseModel):
    """Response for an empty conversation."""
    chat: ConversationResponse


class DeleteResponse(BaseModel):
    """Confirmation message for deletes."""
    message: str
