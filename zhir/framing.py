"""
Wire framing for the chat stream.

A chat response is one chunked ``text/plain`` body::

    __START__{"type":"start","chatId":"<id>"}__START__\\n
    <generated text, verbatim>
    \\n__END__{"type":"end"}__END__

The start frame is only recognised at the very beginning of the body and the
end frame only as its final bytes. Generated text is never escaped: sentinel
substrings that occur inside it are ordinary content.
"""

import json
import logging
from dataclasses import dataclass
from typing import Optional, Union

logger = logging.getLogger(__name__)

START_SENTINEL = "__START__"
END_SENTINEL = "__END__"

# Longest control frame the decoder will buffer while waiting for its closing sentinel
MAX_CONTROL_FRAME_LENGTH = 1024

_END_OPEN = "\n" + END_SENTINEL
_START_CLOSE = START_SENTINEL + "\n"


class FramingError(ValueError):
    """Raised when a chat stream violates the framing protocol."""


class IncompleteStreamError(FramingError):
    """Raised when a chat stream ends without its end frame."""


@dataclass(frozen=True)
class StartFrame:
    """Announces the conversation the streamed text belongs to."""
    conversation_id: str


@dataclass(frozen=True)
class TextChunk:
    """A piece of generated text."""
    text: str


@dataclass(frozen=True)
class EndFrame:
    """Marks natural completion of the stream."""


StreamFrame = Union[StartFrame, TextChunk, EndFrame]


def _compact(payload: dict) -> str:
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


def encode_start(conversation_id: str) -> str:
    """Encode the start frame for ``conversation_id``."""
    payload = _compact({"type": "start", "chatId": conversation_id})
    return f"{START_SENTINEL}{payload}{_START_CLOSE}"


def encode_end() -> str:
    """Encode the end frame."""
    return f"{_END_OPEN}{_compact({'type': 'end'})}{END_SENTINEL}"


def encode_frame(frame: StreamFrame) -> str:
    """Encode any frame. Text chunks are sent as-is."""
    if isinstance(frame, StartFrame):
        return encode_start(frame.conversation_id)
    if isinstance(frame, TextChunk):
        return frame.text
    if isinstance(frame, EndFrame):
        return encode_end()
    raise TypeError(f"Not a stream frame: {frame!r}")


def _could_be_end_frame(tail: str) -> bool:
    """True if ``tail`` may still turn out to be the terminal end frame."""
    if len(tail) <= len(_END_OPEN):
        return _END_OPEN.startswith(tail)
    if not tail.startswith(_END_OPEN) or len(tail) > MAX_CONTROL_FRAME_LENGTH:
        return False
    body = tail[len(_END_OPEN):]
    close = body.find(END_SENTINEL)
    # Unterminated, or terminated exactly at the end of what we have
    return close == -1 or close + len(END_SENTINEL) == len(body)


def _parse_end_frame(tail: str) -> bool:
    if not (tail.startswith(_END_OPEN) and tail.endswith(END_SENTINEL)):
        return False
    payload = tail[len(_END_OPEN):-len(END_SENTINEL)]
    try:
        data = json.loads(payload)
    except json.JSONDecodeError:
        return False
    return isinstance(data, dict) and data.get("type") == "end"


class StreamDecoder:
    """
    Incremental consumer-side parser for a chat stream.

    Feed it decoded text as it arrives; it returns the frames that became
    available. Text is released as early as possible: only a trailing piece
    that could still be the end frame is held back until more data (or the
    end of the transport) decides what it is.
    """

    def __init__(self):
        self._buffer = ""
        self._started = False
        self._closed = False
        self.conversation_id: Optional[str] = None
        self.completed = False

    @property
    def started(self) -> bool:
        return self._started

    def feed(self, text: str) -> list[StreamFrame]:
        """Consume the next piece of the body and return the frames it completes."""
        if self._closed:
            raise FramingError("Stream decoder is already closed")

        self._buffer += text
        frames: list[StreamFrame] = []

        if not self._started:
            start = self._take_start_frame()
            if start is None:
                return frames
            frames.append(start)

        cut = self._releasable_length()
        if cut:
            frames.append(TextChunk(self._buffer[:cut]))
            self._buffer = self._buffer[cut:]
        return frames

    def close(self) -> list[StreamFrame]:
        """
        Signal the end of the transport.

        Returns the remaining frames. ``EndFrame`` is included only when the
        body ended with a well-formed end frame; otherwise ``completed`` stays
        False and any held-back bytes are released as text.
        """
        if self._closed:
            return []
        self._closed = True

        if not self._started:
            logger.debug("Stream closed before its start frame (%d bytes buffered)", len(self._buffer))
            return []

        tail, self._buffer = self._buffer, ""
        if _parse_end_frame(tail):
            self.completed = True
            return [EndFrame()]
        return [TextChunk(tail)] if tail else []

    def _take_start_frame(self) -> Optional[StartFrame]:
        buffer = self._buffer
        if len(buffer) < len(START_SENTINEL):
            if not START_SENTINEL.startswith(buffer):
                raise FramingError("Stream does not begin with a start frame")
            return None
        if not buffer.startswith(START_SENTINEL):
            raise FramingError("Stream does not begin with a start frame")

        close = buffer.find(_START_CLOSE, len(START_SENTINEL))
        if close == -1:
            if len(buffer) > MAX_CONTROL_FRAME_LENGTH:
                raise FramingError("Start frame exceeds the maximum control frame length")
            return None

        payload = buffer[len(START_SENTINEL):close]
        try:
            data = json.loads(payload)
        except json.JSONDecodeError as e:
            raise FramingError(f"Malformed start frame payload: {e}") from e
        if not isinstance(data, dict) or data.get("type") != "start" or not isinstance(data.get("chatId"), str):
            raise FramingError(f"Unexpected start frame payload: {payload!r}")

        self._buffer = buffer[close + len(_START_CLOSE):]
        self._started = True
        self.conversation_id = data["chatId"]
        return StartFrame(data["chatId"])

    def _releasable_length(self) -> int:
        """Number of leading buffered characters that are certainly content."""
        newline = self._buffer.rfind("\n")
        if newline != -1 and _could_be_end_frame(self._buffer[newline:]):
            return newline
        return len(self._buffer)
