"""
Streaming response processing for bmchat.

Turns a chat-completion server-sent-event byte stream into an ordered
sequence of StreamChunk objects. Reasoning output (``reasoning_content``)
and answer output (``content``) are separated into two channels, and each
reasoning segment is bracketed by start/end marker chunks.

Example:
    >>> processor = StreamProcessor()
    >>> processor.feed(b'data: {"choices":[{"delta":{"content":"Hi"}}]}\\n')
    [StreamChunk(text='Hi', channel=<Channel.ANSWER: 'answer'>, boundary=False)]
"""
import codecs
import json
import logging
from typing import Any, Iterable, Iterator, List, Optional, Tuple

from bmchat.constants import SSE_DATA_PREFIX, SSE_DONE
from bmchat.models import ProcessorState, StreamChunk

logger = logging.getLogger(__name__)


def _optional_text(container: Any, key: str) -> Optional[str]:
    if not isinstance(container, dict):
        return None
    value = container.get(key)
    if isinstance(value, str) and value:
        return value
    return None


def extract_delta(payload: Any) -> Tuple[Optional[str], Optional[str]]:
    """
    Pull ``(reasoning_content, content)`` out of ``choices[0].delta``.

    Either value is None when absent, empty, or not a string. An unexpected
    payload shape yields ``(None, None)`` rather than an error.
    """
    if not isinstance(payload, dict):
        return None, None
    choices = payload.get("choices")
    if not isinstance(choices, list) or not choices:
        return None, None
    first = choices[0]
    delta = first.get("delta") if isinstance(first, dict) else None
    return _optional_text(delta, "reasoning_content"), _optional_text(delta, "content")


class StreamProcessor:
    """
    Incremental SSE decoder with a reasoning/answer state machine.

    Feed it raw reads with ``feed``; each call returns the chunks completed
    by that read. Call ``finish`` once the source is exhausted.
    """

    def __init__(self):
        self.state = ProcessorState.NORMAL
        self._buffer = ""
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def feed(self, data: bytes) -> List[StreamChunk]:
        """
        Process one read from the byte stream.

        Only newline-terminated lines are handled; a trailing fragment is
        kept for the next read.
        """
        self._buffer += self._decoder.decode(data)
        *lines, self._buffer = self._buffer.split("\n")

        chunks = []
        for line in lines:
            chunks.extend(self._process_line(line))
        return chunks

    def finish(self) -> List[StreamChunk]:
        """Signal end of stream, closing an open reasoning segment."""
        self._buffer += self._decoder.decode(b"", final=True)
        if self._buffer.strip():
            logger.debug(f"Dropping unterminated SSE fragment: {self._buffer[:80]!r}")
        self._buffer = ""

        if self.state is ProcessorState.THINKING:
            self.state = ProcessorState.NORMAL
            return [StreamChunk.thinking_end()]
        return []

    def _process_line(self, line: str) -> List[StreamChunk]:
        line = line.strip()
        if not line or not line.startswith(SSE_DATA_PREFIX):
            return []

        data = line[len(SSE_DATA_PREFIX):].strip()
        if data == SSE_DONE:
            return []

        try:
            payload = json.loads(data)
        except ValueError as e:
            logger.debug(f"Skipping malformed SSE event: {e}")
            return []

        reasoning, content = extract_delta(payload)
        return self._transition(reasoning, content)

    def _transition(self, reasoning: Optional[str], content: Optional[str]) -> List[StreamChunk]:
        chunks = []

        if reasoning is not None:
            if self.state is ProcessorState.NORMAL:
                chunks.append(StreamChunk.thinking_start())
                self.state = ProcessorState.THINKING
            chunks.append(StreamChunk.reasoning(reasoning))

        if content is not None:
            if self.state is ProcessorState.THINKING:
                chunks.append(StreamChunk.thinking_end())
                self.state = ProcessorState.NORMAL
            chunks.append(StreamChunk.answer(content))

        return chunks


def iter_stream_chunks(byte_source: Iterable[bytes]) -> Iterator[StreamChunk]:
    """
    Lazily decode an iterable of raw reads into StreamChunks.

    The next read is only requested once every chunk from the previous one
    has been consumed.
    """
    processor = StreamProcessor()
    for data in byte_source:
        if not data:
            continue
        yield from processor.feed(data)
    yield from processor.finish()


def iter_response_chunks(response) -> Iterator[StreamChunk]:
    """
    Stream chunks from a ``requests`` response opened with ``stream=True``.

    The response is closed when the stream ends, when a read fails (the
    error propagates), and when the consumer closes the generator early.
    """
    try:
        yield from iter_stream_chunks(response.iter_content(chunk_size=None))
    finally:
        response.close()
