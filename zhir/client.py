"""
Streaming chat client.

Consumes ``POST /api/openai/chat`` incrementally and hands text to the caller
as it arrives. Also provides the ``zhir-chat`` command line tool.
"""

import argparse
import asyncio
import logging
import sys
from dataclasses import dataclass
from typing import Callable, Optional

import httpx

from zhir.config import config
from zhir.framing import IncompleteStreamError, StartFrame, StreamDecoder, TextChunk

logger = logging.getLogger(__name__)

CHAT_PATH = "/api/openai/chat"


class ChatRequestError(Exception):
    """Raised when the server rejects a chat request before streaming."""

    def __init__(self, status_code: int, message: str, code: Optional[str] = None):
        self.status_code = status_code
        self.message = message
        self.code = code
        super().__init__(f"{status_code} {code}: {message}" if code else f"{status_code} {message}")


@dataclass
class ChatStreamResult:
    """What a finished chat stream delivered."""
    conversation_id: Optional[str]
    text: str
    completed: bool


def _error_from_response(response: httpx.Response) -> ChatRequestError:
    try:
        body = response.json()
    except ValueError:
        return ChatRequestError(response.status_code, response.text or response.reason_phrase)

    if isinstance(body, dict):
        message = body.get("error")
        if message is None:
            # FastAPI request validation errors only carry ``detail``
            message = str(body.get("detail", ""))
        return ChatRequestError(response.status_code, str(message), body.get("code"))
    return ChatRequestError(response.status_code, str(body))


class ChatStreamClient:
    """
    Async client for the chat stream.

    Usage::

        async with ChatStreamClient("http://localhost:8000", user_id="u1") as client:
            result = await client.send_chat("Hello", on_chunk=print)
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        user_id: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 120.0,
    ):
        headers = {}
        if api_key:
            headers["X-API-Key"] = api_key
        if user_id:
            headers[config.USER_ID_HEADER] = user_id
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            transport=transport,
            timeout=timeout,
        )

    async def __aenter__(self) -> "ChatStreamClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def send_chat(
        self,
        message: str,
        conversation_id: Optional[str] = None,
        on_chunk: Optional[Callable[[str], None]] = None,
        on_conversation_id: Optional[Callable[[str], None]] = None,
    ) -> ChatStreamResult:
        """
        Send one message and consume the streamed reply.

        Args:
            message: The user message.
            conversation_id: Conversation to continue, or None for a new one.
            on_chunk: Called with each piece of text as soon as it is known to
                be content.
            on_conversation_id: Called once with the id from the start frame.

        Returns:
            ChatStreamResult with the full text.

        Raises:
            ChatRequestError: The server answered with an error status.
            IncompleteStreamError: The body ended without its end frame.
            FramingError: The body is not a valid chat stream.
        """
        payload = {"message": message}
        if conversation_id:
            payload["conversationId"] = conversation_id

        decoder = StreamDecoder()
        parts: list[str] = []

        def handle(frames) -> None:
            for frame in frames:
                if isinstance(frame, StartFrame):
                    if on_conversation_id is not None:
                        on_conversation_id(frame.conversation_id)
                elif isinstance(frame, TextChunk):
                    parts.append(frame.text)
                    if on_chunk is not None:
                        on_chunk(frame.text)

        async with self._client.stream("POST", CHAT_PATH, json=payload) as response:
            if response.status_code >= 400:
                await response.aread()
                raise _error_from_response(response)

            async for text in response.aiter_text():
                handle(decoder.feed(text))
            handle(decoder.close())

        if not decoder.completed:
            logger.warning(
                "Chat stream for conversation %s ended without an end frame",
                decoder.conversation_id,
            )
            raise IncompleteStreamError(
                "Stream ended before completion"
                if decoder.started else "Stream ended before the start frame"
            )

        return ChatStreamResult(
            conversation_id=decoder.conversation_id,
            text="".join(parts),
            completed=True,
        )


async def _run_chat(args) -> int:
    def write(text: str) -> None:
        sys.stdout.write(text)
        sys.stdout.flush()

    async with ChatStreamClient(
        args.url,
        api_key=args.api_key,
        user_id=args.user,
        timeout=args.timeout,
    ) as client:
        try:
            result = await client.send_chat(
                args.message,
                conversation_id=args.conversation,
                on_chunk=write,
            )
        except ChatRequestError as e:
            print(f"Request failed: {e.message} ({e.code or e.status_code})", file=sys.stderr)
            return 1
        except IncompleteStreamError as e:
            print(f"\n{e}", file=sys.stderr)
            return 2

    sys.stdout.write("\n")
    print(f"conversation: {result.conversation_id}", file=sys.stderr)
    return 0


def main(argv: Optional[list[str]] = None) -> None:
    """Entry point for ``zhir-chat``."""
    parser = argparse.ArgumentParser(
        description="Send one message to the Zhir assistant and stream the reply",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  zhir-chat --user alice "What is a vector database?"
  zhir-chat --user alice --conversation 3f2a... "Tell me more"
        """
    )
    parser.add_argument("message", help="Message to send")
    parser.add_argument(
        "--url",
        default=f"http://{config.API_HOST}:{config.API_PORT}",
        help="Base URL of the API",
    )
    parser.add_argument("--user", "-u", required=True, help="Principal id to send as the user header")
    parser.add_argument("--conversation", "-c", help="Conversation id to continue")
    parser.add_argument(
        "--api-key",
        default=config.ZHIR_API_KEY or None,
        help="Shared API key (defaults to ZHIR_API_KEY)",
    )
    parser.add_argument("--timeout", type=float, default=120.0, help="Request timeout in seconds")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )

    sys.exit(asyncio.run(_run_chat(args)))


if __name__ == "__main__":
    main()
