"""
Conversation service: CRUD for chat conversations and their turns.

Streaming replies go through ``zhir.relay``; this service covers listing,
reading, deleting and manually saving turns.
"""

import logging
import re
from typing import Optional

from zhir.config import Config
from zhir.db import Database, db, new_id
from zhir.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "New Chat"

_ID_PATTERN = re.compile(r"^[0-9a-f]{32}$")


def validate_record_id(record_id: str, kind: str = "chat") -> str:
    """Raise ValidationError unless ``record_id`` looks like one of our ids."""
    if not _ID_PATTERN.match(record_id or ""):
        raise ValidationError(f"Invalid {kind} ID format", error_code="INVALID_ID")
    return record_id


class ConversationService:
    """Manages a user's conversations."""

    def __init__(self, store: Optional[Database] = None):
        self._store = store

    @property
    def store(self) -> Database:
        return self._store or db

    def list(self, owner_id: str) -> dict:
        """List the owner's conversations, most recently updated first."""
        conversations = [
            {
                "id": row["id"],
                "title": row["title"],
                "last_message": row["last_message"] or "No messages",
                "updated_at": row["updated_at"],
            }
            for row in self.store.list_conversations(owner_id)
        ]
        return {"conversations": conversations, "count": len(conversations)}

    def create_empty(self, owner_id: str) -> dict:
        """Create a conversation with no turns yet."""
        conversation = self.store.create_conversation(owner_id=owner_id, title=DEFAULT_TITLE)
        logger.info("Created empty conversation %s for %s", conversation["id"], owner_id)
        return conversation

    def get(self, owner_id: str, conversation_id: str) -> dict:
        """Return a conversation with its turns."""
        validate_record_id(conversation_id)
        conversation = self.store.get_conversation(conversation_id, owner_id)
        if conversation is None:
            raise NotFoundError("Chat not found", error_code="CHAT_NOT_FOUND")
        return conversation

    def delete(self, owner_id: str, conversation_id: str) -> dict:
        """Delete a conversation and all of its turns."""
        validate_record_id(conversation_id)
        if not self.store.delete_conversation(conversation_id, owner_id):
            raise NotFoundError("Chat not found", error_code="CHAT_NOT_FOUND")
        logger.info("Deleted conversation %s", conversation_id)
        return {"message": "Chat deleted successfully"}

    def save_turn(
        self,
        owner_id: str,
        user_message: str,
        ai_response: str,
        conversation_id: Optional[str] = None,
    ) -> dict:
        """
        Append an already generated exchange.

        Without ``conversation_id`` a new conversation is created, titled
        after the user message. An existing conversation gets its title from
        the first turn only.
        """
        if not user_message or not ai_response:
            raise ValidationError(
                "userMessage and aiResponse are required", error_code="MISSING_FIELDS"
            )

        title = user_message[:Config.TITLE_LENGTH]
        if conversation_id:
            conversation = self.get(owner_id, conversation_id)
            self.store.append_turn(
                conversation_id,
                owner_id,
                user_message,
                ai_response,
                title=title if conversation["version"] == 0 else None,
            )
        else:
            conversation_id = new_id()
            self.store.append_turn(
                conversation_id, owner_id, user_message, ai_response, title=title, create=True
            )

        return self.get(owner_id, conversation_id)


# Singleton
conversation_service = ConversationService()
