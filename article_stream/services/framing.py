"""
Incremental framing for the generation stream.

Network chunks have no relation to line boundaries: a chunk may end mid-line
or even mid-character. FrameDecoder carries the unfinished tail over to the
next chunk and only ever emits complete, prefixed lines.
"""

import codecs
import logging
from typing import AsyncGenerator, AsyncIterable, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_EVENT_PREFIX = "data: "


class FrameDecoder:
    def __init__(self, prefix: str = DEFAULT_EVENT_PREFIX):
        self.prefix = prefix
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    def _payload(self, line: str) -> Optional[str]:
        line = line.rstrip("\r")
        if not line.strip() or not line.startswith(self.prefix):
            return None
        return line[len(self.prefix):]

    def feed(self, chunk: bytes) -> List[str]:
        """Decode one chunk and return the payloads of every line it completes."""
        self._buffer += self._decoder.decode(chunk)
        *lines, self._buffer = self._buffer.split("\n")
        payloads = [self._payload(line) for line in lines]
        return [p for p in payloads if p is not None]

    def flush(self) -> List[str]:
        """End of stream: emit the unterminated last line, if it is a frame."""
        tail = self._buffer + self._decoder.decode(b"", final=True)
        self._buffer = ""
        payload = self._payload(tail)
        if payload is None:
            return []
        logger.debug("Stream ended without a trailing newline, flushing last frame")
        return [payload]


async def iter_frames(
    chunks: AsyncIterable[bytes], prefix: str = DEFAULT_EVENT_PREFIX
) -> AsyncGenerator[str, None]:
    """Turn an async byte-chunk sequence into frame payload strings, in order."""
    decoder = FrameDecoder(prefix)
    async for chunk in chunks:
        for payload in decoder.feed(chunk):
            yield payload
    for payload in decoder.flush():
        yield payload
