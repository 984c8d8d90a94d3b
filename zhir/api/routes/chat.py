"""
Chat routes: the streaming relay and conversation CRUD.
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from zhir.api.dependencies import get_current_user
from zhir.api.models.chat import (
    ChatStreamRequest,
    ConversationListResponse,
    ConversationResponse,
    DeleteResponse,
    NewConversationResponse,
    SaveTurnRequest,
)
from zhir.relay import chat_relay
from zhir.services.conversation_service import conversation_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Chat"])

STREAM_MEDIA_TYPE = "text/plain; charset=utf-8"


@router.post("/openai/chat")
async def stream_chat(request: ChatStreamRequest, user_id: str = Depends(get_current_user)):
    """
    Stream an assistant reply.

    The body starts with a start frame naming the conversation, continues
    with the generated text and ends with an end frame once the turn is
    stored. Validation errors are returned as JSON before streaming begins.
    """
    session = chat_relay.open(user_id, request.message, request.conversation_id)
    return StreamingResponse(
        session.run(),
        media_type=STREAM_MEDIA_TYPE,
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.get("/chats", response_model=ConversationListResponse)
async def list_chats(user_id: str = Depends(get_current_user)):
    """List the caller's conversations, most recently updated first."""
    return conversation_service.list(user_id)


@router.post("/chat/new", response_model=NewConversationResponse)
async def new_chat(user_id: str = Depends(get_current_user)):
    """Create an empty conversation."""
    return {"chat": conversation_service.create_empty(user_id)}


@router.get("/chat/{conversation_id}", response_model=ConversationResponse)
async def get_chat(conversation_id: str, user_id: str = Depends(get_current_user)):
    """Get a conversation with all of its turns."""
    return conversation_service.get(user_id, conversation_id)


@router.delete("/chat/{conversation_id}", response_model=DeleteResponse)
async def delete_chat(conversation_id: str, user_id: str = Depends(get_current_user)):
    """Delete a conversation and its turns."""
    return conversation_service.delete(user_id, conversation_id)


@router.post("/chat", response_model=ConversationResponse)
async def save_turn(request: SaveTurnRequest, user_id: str = Depends(get_current_user)):
    """
    Store a turn produced outside the relay.

    Appends to ``conversationId`` when given, otherwise creates a conversation.
    """
    return conversation_service.save_turn(
        user_id,
        request.user_message,
        request.ai_response,
        conversation_id=request.conversation_id,
    )
