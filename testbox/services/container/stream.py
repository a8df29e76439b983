"""Streamed engine responses.

Log and exec output arrive either as a raw byte stream (TTY containers) or
multiplexed: each frame carries an 8 byte header of stream type, three
padding bytes and a big-endian payload length.
"""

import codecs
import struct
from enum import Enum, IntEnum
from typing import AsyncIterator, Dict, Optional, Tuple

import httpx
import structlog

from ...models.errors import StreamConsumedError, TransportError

logger = structlog.get_logger(__name__)

RAW_STREAM_CONTENT_TYPE = "application/vnd.docker.raw-stream"
MULTIPLEXED_STREAM_CONTENT_TYPE = "application/vnd.docker.multiplexed-stream"

FRAME_HEADER = struct.Struct(">BxxxL")


class StreamType(IntEnum):
    """Origin of a multiplexed frame."""

    STDIN = 0
    STDOUT = 1
    STDERR = 2
    SYSTEMERR = 3


class StreamControl(Enum):
    """Returned by a line handler to keep reading or stop the stream."""

    CONTINUE = "continue"
    STOP = "stop"


async def demultiplex(
    chunks: AsyncIterator[bytes],
) -> AsyncIterator[Tuple[StreamType, bytes]]:
    """Split multiplexed bytes into ``(stream_type, payload)`` frames.

    Frames may straddle chunk boundaries; partial frames are buffered.
    """
    buffer = bytearray()
    async for chunk in chunks:
        buffer.extend(chunk)
        while len(buffer) >= FRAME_HEADER.size:
            stream_type, length = FRAME_HEADER.unpack_from(buffer)
            end = FRAME_HEADER.size + length
            if len(buffer) < end:
                break
            try:
                kind = StreamType(stream_type)
            except ValueError:
                raise TransportError(f"Malformed stream frame type {stream_type}") from None
            payload = bytes(buffer[FRAME_HEADER.size:end])
            del buffer[:end]
            yield kind, payload

    if buffer:
        logger.warning("Discarding truncated stream frame", remaining_bytes=len(buffer))


class ControlStream:
    """A streamed engine response, readable exactly once.

    Use as an async context manager so the connection is released even
    when the consumer stops early::

        async with await transport.stream("GET", path) as stream:
            async for line in stream:
                ...
    """

    def __init__(self, response: httpx.Response, multiplexed: bool = False):
        self._response = response
        content_type = response.headers.get("content-type", "")
        self._multiplexed = multiplexed and not content_type.startswith(
            RAW_STREAM_CONTENT_TYPE
        )
        self._consumed = False

    @property
    def status_code(self) -> int:
        return self._response.status_code

    @property
    def multiplexed(self) -> bool:
        return self._multiplexed

    @property
    def consumed(self) -> bool:
        return self._consumed

    def _claim(self) -> None:
        if self._consumed:
            raise StreamConsumedError()
        self._consumed = True

    async def frames(self) -> AsyncIterator[Tuple[StreamType, bytes]]:
        """Yield ``(stream_type, payload)`` pairs; raw streams report STDOUT."""
        self._claim()
        try:
            if self._multiplexed:
                async for frame in demultiplex(self._response.aiter_bytes()):
                    yield frame
            else:
                async for chunk in self._response.aiter_bytes():
                    yield StreamType.STDOUT, chunk
        except httpx.TransportError as e:
            raise TransportError(f"Stream interrupted: {e}") from e
        finally:
            await self.aclose()

    async def tagged_lines(self) -> AsyncIterator[Tuple[StreamType, str]]:
        """Yield decoded lines together with the stream they came from."""
        decoders: Dict[StreamType, codecs.IncrementalDecoder] = {}
        pending: Dict[StreamType, str] = {}

        async for kind, payload in self.frames():
            decoder = decoders.get(kind)
            if decoder is None:
                decoder = decoders[kind] = codecs.getincrementaldecoder("utf-8")(
                    errors="replace"
                )
            text = pending.pop(kind, "") + decoder.decode(payload)
            *complete, rest = text.split("\n")
            for line in complete:
                yield kind, line.rstrip("\r")
            if rest:
                pending[kind] = rest

        for kind, decoder in decoders.items():
            rest = pending.pop(kind, "") + decoder.decode(b"", final=True)
            if rest:
                yield kind, rest.rstrip("\r")

    async def lines(self) -> AsyncIterator[str]:
        """Yield decoded lines without their line terminators."""
        async for _, line in self.tagged_lines():
            yield line

    def __aiter__(self) -> AsyncIterator[str]:
        return self.lines()

    async def aclose(self) -> None:
        """Release the underlying connection."""
        await self._response.aclose()

    async def __aenter__(self) -> "ControlStream":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> Optional[bool]:
        await self.aclose()
        return None
