"""
Streaming chat relay.

Forwards generated text from the upstream LLM provider to the client as it
arrives and, only when the upstream finishes naturally, stores the exchange as
one new turn of the conversation.

A relay runs in two phases:

* ``ChatRelay.open`` validates the request, resolves the conversation, builds
  the prompt and picks the provider. Every error here is raised before a
  single byte is streamed.
* ``RelaySession.run`` streams the framed body. The turn is committed after
  the upstream is exhausted and before the end frame is sent. A cancelled or
  failed session commits nothing.
"""

import asyncio
import logging
from enum import Enum
from typing import AsyncIterator, Callable, Optional

from zhir import llm
from zhir.config import Config
from zhir.db import Database, db, new_id
from zhir.errors import NotFoundError, ProviderError, ValidationError
from zhir.framing import encode_end, encode_start

logger = logging.getLogger(__name__)


class RelayOutcome(str, Enum):
    """How a relay session ended."""
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


def build_history(turns: list[dict], char_budget: int) -> list[dict[str, str]]:
    """
    Select the most recent turns that fit in ``char_budget`` characters.

    Turns are taken newest first and selection stops at the first turn that
    would overflow the budget. The result is in chronological order as
    alternating user / assistant messages.
    """
    selected = []
    total = 0
    for turn in reversed(turns):
        size = len(turn["user_message"]) + len(turn["ai_response"])
        if total + size > char_budget:
            break
        selected.append(turn)
        total += size

    messages = []
    for turn in reversed(selected):
        messages.append({"role": "user", "content": turn["user_message"]})
        messages.append({"role": "assistant", "content": turn["ai_response"]})
    return messages


class RelaySession:
    """One request-scoped relay from the provider to a single HTTP response."""

    def __init__(
        self,
        *,
        store: Database,
        provider: llm.LLMProvider,
        owner_id: str,
        message: str,
        conversation_id: str,
        is_new_conversation: bool,
        base_version: int,
        messages: list[dict[str, str]],
        title: Optional[str],
    ):
        self.store = store
        self.provider = provider
        self.owner_id = owner_id
        self.message = message
        self.conversation_id = conversation_id
        self.is_new_conversation = is_new_conversation
        self.base_version = base_version
        self.messages = messages
        self.title = title
        self.outcome = RelayOutcome.PENDING
        self.response_text: Optional[str] = None
        self.persisted = False
        self._started = False

    async def run(self) -> AsyncIterator[str]:
        """Yield the framed response body."""
        if self._started:
            raise RuntimeError("A relay session can only run once")
        self._started = True

        fragments: list[str] = []
        upstream = self.provider.stream_chat(self.messages)
        try:
            yield encode_start(self.conversation_id)
            async for fragment in upstream:
                if not fragment:
                    continue
                fragments.append(fragment)
                yield fragment
        except (asyncio.CancelledError, GeneratorExit):
            self.outcome = RelayOutcome.CANCELLED
            logger.info(
                "Relay for conversation %s cancelled after %d fragments; nothing saved",
                self.conversation_id, len(fragments),
            )
            raise
        except Exception:
            self.outcome = RelayOutcome.FAILED
            logger.exception(
                "Upstream generation failed for conversation %s after %d fragments; nothing saved",
                self.conversation_id, len(fragments),
            )
            raise
        finally:
            aclose = getattr(upstream, "aclose", None)
            if aclose is not None:
                await aclose()

        self.outcome = RelayOutcome.COMPLETED
        self.response_text = "".join(fragments)
        self._commit()
        yield encode_end()

    def _commit(self) -> None:
        """Persist the finished exchange. Failures are logged, not raised."""
        try:
            self.store.append_turn(
                self.conversation_id,
                self.owner_id,
                self.message,
                self.response_text,
                title=self.title,
                create=self.is_new_conversation,
                expected_version=self.base_version,
            )
        except Exception:
            logger.exception(
                "Failed to save turn for conversation %s; the response was delivered but not stored",
                self.conversation_id,
            )
            return
        self.persisted = True
        logger.info(
            "Saved turn %d of conversation %s (%d chars)",
            self.base_version + 1, self.conversation_id, len(self.response_text),
        )


class ChatRelay:
    """Validates chat requests and opens relay sessions."""

    def __init__(
        self,
        store: Optional[Database] = None,
        provider_factory: Optional[Callable[[], llm.LLMProvider]] = None,
    ):
        self._store = store
        self._provider_factory = provider_factory

    @property
    def store(self) -> Database:
        return self._store or db

    def _provider(self) -> llm.LLMProvider:
        try:
            if self._provider_factory is not None:
                return self._provider_factory()
            return llm.get_llm_provider()
        except ValueError as e:
            logger.error("LLM provider unavailable: %s", e)
            raise ProviderError(f"LLM provider unavailable: {e}") from e

    @staticmethod
    def validate_message(message) -> str:
        """Reject anything but a non-empty string within the length limit."""
        if not isinstance(message, str):
            raise ValidationError("Invalid message format", error_code="INVALID_MESSAGE")
        if not message.strip():
            raise ValidationError("Message cannot be empty", error_code="MESSAGE_EMPTY")
        if len(message) > Config.MAX_MESSAGE_LENGTH:
            raise ValidationError(
                "Message too long",
                error_code="MESSAGE_TOO_LONG",
                details={"max_length": Config.MAX_MESSAGE_LENGTH, "length": len(message)},
            )
        return message

    def open(
        self,
        owner_id: str,
        message: str,
        conversation_id: Optional[str] = None,
    ) -> RelaySession:
        """
        Prepare a relay session.

        Args:
            owner_id: The authenticated principal.
            message: The new user message.
            conversation_id: Existing conversation to continue, if any.

        Returns:
            A session whose ``run()`` produces the response body.

        Raises:
            ValidationError: The message is empty, too long or not a string.
            NotFoundError: ``conversation_id`` does not resolve for this owner
                and falling back to a new conversation is disabled.
            ProviderError: No usable LLM provider is configured.
        """
        message = self.validate_message(message)

        conversation = None
        if conversation_id:
            conversation = self.store.get_conversation(conversation_id, owner_id)
            if conversation is None:
                if not Config.CHAT_FALLBACK_TO_NEW:
                    raise NotFoundError("Chat not found", error_code="CHAT_NOT_FOUND")
                logger.warning(
                    "Conversation %s not found for %s; starting a new conversation",
                    conversation_id, owner_id,
                )

        messages = [{"role": "system", "content": Config.SYSTEM_PROMPT}]
        title = message[:Config.TITLE_LENGTH]
        if conversation is not None:
            messages.extend(build_history(conversation["turns"], Config.HISTORY_CHAR_BUDGET))
            base_version = conversation["version"]
            if base_version > 0:
                title = None
        else:
            base_version = 0
        messages.append({"role": "user", "content": message})

        provider = self._provider()

        session = RelaySession(
            store=self.store,
            provider=provider,
            owner_id=owner_id,
            message=message,
            conversation_id=conversation["id"] if conversation is not None else new_id(),
            is_new_conversation=conversation is None,
            base_version=base_version,
            messages=messages,
            title=title,
        )
        logger.info(
            "Opened relay for %s conversation %s (%d history messages, provider=%s)",
            "new" if session.is_new_conversation else "existing",
            session.conversation_id,
            len(messages) - 2,
            getattr(provider, "name", type(provider).__name__),
        )
        return session


# Singleton
chat_relay = ChatRelay()
