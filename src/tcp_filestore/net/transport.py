"""Frame I/O over asyncio streams.

The sockets behind the streams are non-blocking; the event loop suspends on readiness and retries
would-block results internally, so callers only ever see a complete frame or an error.
"""

import asyncio
import logging

from tcp_filestore.net.protocol import FRAME_HEADER, FrameTooLargeError, TruncatedFrameError, encode_frame

logger = logging.getLogger(__name__)

# Reference read buffer capacity
DEFAULT_CHUNK_SIZE = 1024 * 1024


class TransportError(Exception):
    """The connection failed, timed out, or was closed by the peer."""

    def __init__(self, code: str, message: str) -> None:
        """Initialize with a machine-readable code and a human-readable message.

        Args:
            code: Machine-readable error code (e.g. "timeout").
            message: Human-readable error description.

        """
        super().__init__(message)
        self.code = code


class ConnectionClosedError(TransportError):
    """Peer closed the connection before sending a frame."""

    def __init__(self) -> None:
        super().__init__("connection_closed", "Connection closed by peer.")


def _deadline(seconds: float | None) -> float | None:
    """Map a configured timeout to an asyncio deadline (0 disables it)."""
    if not seconds:
        return None
    return seconds


async def send_frame(writer: asyncio.StreamWriter, payload: bytes, *, timeout: float | None = None) -> None:
    """Write one frame and wait until the transport has flushed it to the socket.

    Raises:
        TransportError: Write failed or did not complete within timeout.

    """
    try:
        async with asyncio.timeout(_deadline(timeout)):
            writer.write(encode_frame(payload))
            await writer.drain()
    except TimeoutError:
        raise TransportError("timeout", f"Sending frame timed out after {timeout}s.") from None
    except OSError as e:
        raise TransportError("io_error", f"Sending frame failed: {e}") from e


async def _read_exactly(reader: asyncio.StreamReader, size: int, chunk_size: int) -> bytes:
    """Accumulate reads of at most chunk_size bytes until size bytes are collected."""
    buf = bytearray()
    while len(buf) < size:
        chunk = await reader.read(min(chunk_size, size - len(buf)))
        if not chunk:
            raise TruncatedFrameError(f"Connection closed after {len(buf)} of {size} frame bytes")
        buf.extend(chunk)
    return bytes(buf)


async def receive_frame(
    reader: asyncio.StreamReader,
    *,
    max_size: int,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    timeout: float | None = None,
    idle_timeout: float | None = None,
) -> bytes:
    """Read one frame and return its body.

    Args:
        reader: Stream to read from.
        max_size: Largest accepted body size in bytes.
        chunk_size: Upper bound of a single read.
        timeout: Deadline for the frame body once its header arrived.
        idle_timeout: Deadline for the frame header to start arriving.

    Raises:
        ConnectionClosedError: Peer closed before sending any byte.
        TruncatedFrameError: Peer closed in the middle of a frame.
        FrameTooLargeError: Header announces more than max_size bytes.
        TransportError: Read failed or a deadline expired.

    """
    try:
        async with asyncio.timeout(_deadline(idle_timeout)):
            first = await reader.read(FRAME_HEADER.size)
        if not first:
            raise ConnectionClosedError
        async with asyncio.timeout(_deadline(timeout)):
            header = first + await _read_exactly(reader, FRAME_HEADER.size - len(first), FRAME_HEADER.size)
            (size,) = FRAME_HEADER.unpack(header)
            if size > max_size:
                raise FrameTooLargeError(size, max_size)
            body = await _read_exactly(reader, size, chunk_size)
    except TimeoutError:
        raise TransportError("timeout", "Receiving frame timed out.") from None
    except OSError as e:
        raise TransportError("io_error", f"Receiving frame failed: {e}") from e
    logger.debug("Received frame of %d bytes", len(body))
    return body
