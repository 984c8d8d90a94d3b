"""
Tests for the chat stream wire framing.
"""

import pytest

from zhir.framing import (
    EndFrame,
    FramingError,
    MAX_CONTROL_FRAME_LENGTH,
    StartFrame,
    StreamDecoder,
    TextChunk,
    encode_end,
    encode_frame,
    encode_start,
)


def decode_all(pieces: list[str]) -> tuple[list, StreamDecoder]:
    """Feed pieces to a fresh decoder and merge adjacent text chunks."""
    decoder = StreamDecoder()
    frames = []
    for piece in pieces:
        frames.extend(decoder.feed(piece))
    frames.extend(decoder.close())

    merged = []
    for frame in frames:
        if isinstance(frame, TextChunk) and merged and isinstance(merged[-1], TextChunk):
            merged[-1] = TextChunk(merged[-1].text + frame.text)
        else:
            merged.append(frame)
    return merged, decoder


def body(conversation_id: str, *fragments: str) -> str:
    return encode_start(conversation_id) + "".join(fragments) + encode_end()


class TestEncoding:
    """Tests for frame encoding."""

    def test_start_frame_bytes(self):
        """Start frame uses compact JSON and a trailing newline."""
        assert encode_start("abc") == '__START__{"type":"start","chatId":"abc"}__START__\n'

    def test_end_frame_bytes(self):
        """End frame is preceded by a newline."""
        assert encode_end() == '\n__END__{"type":"end"}__END__'

    def test_encode_frame_dispatch(self):
        """encode_frame handles every frame type."""
        assert encode_frame(StartFrame("x")) == encode_start("x")
        assert encode_frame(TextChunk("plain text")) == "plain text"
        assert encode_frame(EndFrame()) == encode_end()

    def test_encode_frame_rejects_other_objects(self):
        with pytest.raises(TypeError):
            encode_frame("not a frame")


class TestStreamDecoder:
    """Tests for incremental decoding."""

    def test_whole_body(self):
        """A complete body decodes into start, text and end."""
        frames, decoder = decode_all([body("c1", "Hi", " there", "!")])

        assert frames == [StartFrame("c1"), TextChunk("Hi there!"), EndFrame()]
        assert decoder.completed is True
        assert decoder.conversation_id == "c1"

    def test_one_character_at_a_time(self):
        """Frames split at every possible point still decode."""
        text = body("c1", "line one\nline two")
        frames, decoder = decode_all(list(text))

        assert frames == [StartFrame("c1"), TextChunk("line one\nline two"), EndFrame()]
        assert decoder.completed is True

    def test_text_released_before_end(self):
        """Content without newlines is released immediately."""
        decoder = StreamDecoder()
        decoder.feed(encode_start("c1"))

        assert decoder.feed("partial answer") == [TextChunk("partial answer")]

    def test_possible_end_prefix_is_held_back(self):
        """A trailing newline is held until it is known not to start the end frame."""
        decoder = StreamDecoder()
        decoder.feed(encode_start("c1"))

        assert decoder.feed("first\n") == [TextChunk("first")]
        assert decoder.feed("second") == [TextChunk("\nsecond")]

    def test_sentinels_inside_content_are_text(self):
        """Sentinel text inside the generated content is passed through verbatim."""
        content = 'Use __START__ and __END__ markers.\n__END__{"type":"end"}__END__ then more'
        frames, decoder = decode_all([body("c1", content)])

        assert frames == [StartFrame("c1"), TextChunk(content), EndFrame()]
        assert decoder.completed is True

    def test_missing_end_frame_is_incomplete(self):
        """A body that stops early never reports completion."""
        frames, decoder = decode_all([encode_start("c1"), "cut off\n__EN"])

        assert frames == [StartFrame("c1"), TextChunk("cut off\n__EN")]
        assert decoder.completed is False

    def test_empty_content(self):
        frames, decoder = decode_all([body("c1")])

        assert frames == [StartFrame("c1"), EndFrame()]
        assert decoder.completed is True

    def test_body_must_begin_with_start_frame(self):
        decoder = StreamDecoder()
        with pytest.raises(FramingError):
            decoder.feed("hello")

    def test_malformed_start_payload(self):
        decoder = StreamDecoder()
        with pytest.raises(FramingError):
            decoder.feed("__START__{not json}__START__\n")

    def test_start_payload_needs_chat_id(self):
        decoder = StreamDecoder()
        with pytest.raises(FramingError):
            decoder.feed('__START__{"type":"start"}__START__\n')

    def test_oversized_start_frame(self):
        decoder = StreamDecoder()
        with pytest.raises(FramingError):
            decoder.feed("__START__" + "x" * MAX_CONTROL_FRAME_LENGTH)

    def test_close_before_start(self):
        """Closing before the start frame yields nothing and no completion."""
        decoder = StreamDecoder()
        decoder.feed("__STA")

        assert decoder.close() == []
        assert decoder.started is False
        assert decoder.completed is False

    def test_feed_after_close(self):
        decoder = StreamDecoder()
        decoder.close()
        with pytest.raises(FramingError):
            decoder.feed("x")
