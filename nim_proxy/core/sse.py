"""SSE (Server-Sent Events) frame reassembly for upstream streams.

The upstream transport delivers bytes in order but with arbitrary chunking.
``SSEFrameReassembler`` rebuilds complete ``data:`` lines from those chunks
and classifies each one:

    data: {"choices":[...]}   -> DataFrame (parsed JSON)
    data: [DONE]              -> TerminationMarker
    data: <not json>          -> RawFrame (passed through verbatim)

Anything not starting with ``data: `` (comments, ``event:`` lines, blank
separators) is dropped.
"""

from __future__ import annotations

import codecs
import json
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterable, AsyncIterator, Optional, Union

logger = logging.getLogger("nim-proxy")

DATA_PREFIX = "data: "
TERMINATION_TOKEN = "[DONE]"


@dataclass(frozen=True)
class TerminationMarker:
    """The upstream's end-of-stream sentinel."""


@dataclass(frozen=True)
class DataFrame:
    """A ``data:`` line whose payload parsed as JSON."""

    payload: Any


@dataclass(frozen=True)
class RawFrame:
    """A ``data:`` line whose payload is not JSON; forwarded unmodified."""

    line: str


LogicalFrame = Union[TerminationMarker, DataFrame, RawFrame]


def parse_sse_line(line: str) -> Optional[LogicalFrame]:
    """Classify one complete line, or return None if it is not a data line."""
    if not line.startswith(DATA_PREFIX):
        return None
    data = line[len(DATA_PREFIX):]
    if data.strip() == TERMINATION_TOKEN:
        return TerminationMarker()
    try:
        return DataFrame(json.loads(data))
    except json.JSONDecodeError:
        logger.debug("Passing through non-JSON SSE line: %s", line[:200])
        return RawFrame(line)


class SSEFrameReassembler:
    """Stateful byte-chunk to logical-frame transform for one stream.

    Holds the undelimited remainder after the last newline seen so far.
    Bytes are decoded incrementally, so a multi-byte UTF-8 character split
    across chunks decodes the same as if it had arrived whole.
    """

    def __init__(self) -> None:
        self._buffer = ""
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    @property
    def pending(self) -> str:
        """Text received after the last complete line."""
        return self._buffer

    def feed(self, chunk: bytes) -> list[LogicalFrame]:
        """Append a chunk and return every frame completed by it, in order."""
        self._buffer += self._decoder.decode(chunk)
        lines = self._buffer.split("\n")
        self._buffer = lines.pop()
        return self._parse_lines(lines)

    def flush(self) -> list[LogicalFrame]:
        """Finish the stream.

        A trailing line that lacked a newline is only emitted if it parses
        into a complete frame; a cut-off payload is dropped.
        """
        remaining = self._buffer + self._decoder.decode(b"", final=True)
        self._buffer = ""
        if not remaining.strip():
            return []
        frames = [
            frame
            for frame in self._parse_lines([remaining])
            if not isinstance(frame, RawFrame)
        ]
        if not frames:
            logger.warning(
                "Dropping unterminated trailing SSE fragment (%d chars)", len(remaining)
            )
        return frames

    def discard(self) -> None:
        """Drop any buffered partial line without emitting it."""
        if self._buffer:
            logger.debug("Discarding %d buffered chars", len(self._buffer))
        self._buffer = ""
        self._decoder.reset()

    @staticmethod
    def _parse_lines(lines: list[str]) -> list[LogicalFrame]:
        frames: list[LogicalFrame] = []
        for line in lines:
            frame = parse_sse_line(line)
            if frame is not None:
                frames.append(frame)
        return frames


async def iter_frames(
    chunks: AsyncIterable[bytes],
    reassembler: Optional[SSEFrameReassembler] = None,
) -> AsyncIterator[LogicalFrame]:
    """Lazily yield logical frames from an async byte-chunk stream."""
    reassembler = reassembler or SSEFrameReassembler()
    async for chunk in chunks:
        if not chunk:
            continue
        for frame in reassembler.feed(chunk):
            yield frame
    for frame in reassembler.flush():
        yield frame
