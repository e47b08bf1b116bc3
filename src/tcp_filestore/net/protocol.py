"""Binary request/response protocol between the filestore client and server.

Every message travels as one frame: a 4-byte big-endian length followed by the body.

Request body:
    [op:1][filename_len:4][filename][filebytes_len:4][filebytes]

Response body:
    [ok:1][msg_len:4][msg][has_file:1]
    followed, only when has_file is 1, by [filename_len:4][filename][filebytes_len:4][filebytes]

All length fields are unsigned 32-bit big-endian integers and bound the exact size of the field after them.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum

FRAME_HEADER = struct.Struct(">I")
_U8 = struct.Struct(">B")
_U32 = struct.Struct(">I")

MAX_FIELD_LENGTH = 0xFFFF_FFFF


class Operation(IntEnum):
    """File operation. The integer values are the on-wire tags."""

    READ = 0
    WRITE = 1
    DELETE = 2
    LIST = 3


class ProtocolError(Exception):
    """A frame could not be decoded."""

    def __init__(self, code: str, message: str) -> None:
        """Initialize with a machine-readable code and a human-readable message.

        Args:
            code: Machine-readable error code (e.g. "truncated_frame").
            message: Human-readable error description.

        """
        super().__init__(message)
        self.code = code


class UnknownOperationError(ProtocolError):
    """Operation tag is not one of the known values."""

    def __init__(self, tag: int) -> None:
        super().__init__("unknown_operation", f"Unknown operation tag: {tag}")
        self.tag = tag


class TruncatedFrameError(ProtocolError):
    """A field runs past the end of the frame."""

    def __init__(self, message: str) -> None:
        super().__init__("truncated_frame", message)


class InvalidTextError(ProtocolError):
    """A text field is not valid UTF-8."""

    def __init__(self, field_name: str) -> None:
        super().__init__("invalid_text", f"Field '{field_name}' is not valid UTF-8")


class FrameTooLargeError(ProtocolError):
    """Frame header announces more bytes than the receiver accepts."""

    def __init__(self, size: int, limit: int) -> None:
        super().__init__("frame_too_large", f"Frame of {size} bytes exceeds limit of {limit} bytes")


@dataclass(frozen=True)
class Request:
    """Client request: one operation on one named file."""

    op: Operation
    filename: str = ""
    filebytes: bytes = b""


@dataclass(frozen=True)
class Response:
    """Server response: status, message, and a file payload for successful reads."""

    ok: bool
    msg: str = ""
    filename: str | None = None
    filebytes: bytes | None = None

    def __post_init__(self) -> None:
        if (self.filename is None) != (self.filebytes is None):
            raise ValueError("filename and filebytes must be both present or both absent")

    @property
    def has_file(self) -> bool:
        """Check if the response carries a file payload."""
        return self.filename is not None

    @staticmethod
    def success(msg: str) -> Response:
        """Build a success response without a file payload."""
        return Response(ok=True, msg=msg)

    @staticmethod
    def fail(msg: str) -> Response:
        """Build a failure response."""
        return Response(ok=False, msg=msg)

    @staticmethod
    def file(filename: str, filebytes: bytes, msg: str) -> Response:
        """Build a success response carrying a file."""
        return Response(ok=True, msg=msg, filename=filename, filebytes=filebytes)


# --- Encoding ---


def _pack_field(data: bytes) -> bytes:
    if len(data) > MAX_FIELD_LENGTH:
        raise ValueError(f"Field too large ({len(data)} bytes); max is {MAX_FIELD_LENGTH}")
    return _U32.pack(len(data)) + data


def encode_frame(payload: bytes) -> bytes:
    """Prefix a message body with its frame length."""
    if len(payload) > MAX_FIELD_LENGTH:
        raise ValueError(f"Frame too large ({len(payload)} bytes); max is {MAX_FIELD_LENGTH}")
    return FRAME_HEADER.pack(len(payload)) + payload


def file_response_size(filename: str, filebytes_len: int, msg: str) -> int:
    """Body size of a response carrying a file, without building it."""
    return _U8.size * 2 + _U32.size * 3 + len(msg.encode()) + len(filename.encode()) + filebytes_len


def encode_request(req: Request) -> bytes:
    """Serialize a Request to its body bytes."""
    return b"".join(
        (
            _U8.pack(req.op),
            _pack_field(req.filename.encode()),
            _pack_field(req.filebytes),
        )
    )


def encode_response(resp: Response) -> bytes:
    """Serialize a Response to its body bytes."""
    parts = [_U8.pack(1 if resp.ok else 0), _pack_field(resp.msg.encode()), _U8.pack(1 if resp.has_file else 0)]
    if resp.filename is not None and resp.filebytes is not None:
        parts.append(_pack_field(resp.filename.encode()))
        parts.append(_pack_field(resp.filebytes))
    return b"".join(parts)


# --- Decoding ---


class _Reader:
    """Cursor over a frame body. Every read is bounds-checked before slicing."""

    def __init__(self, data: bytes) -> None:
        self._data = memoryview(data)
        self._pos = 0

    @property
    def remaining(self) -> int:
        return len(self._data) - self._pos

    def take(self, size: int, what: str) -> bytes:
        if size > self.remaining:
            raise TruncatedFrameError(f"{what}: need {size} bytes, {self.remaining} left")
        chunk = bytes(self._data[self._pos : self._pos + size])
        self._pos += size
        return chunk

    def u8(self, what: str) -> int:
        return self.take(1, what)[0]

    def flag(self, what: str) -> bool:
        value = self.u8(what)
        if value not in (0, 1):
            raise ProtocolError("invalid_flag", f"Field '{what}' must be 0 or 1, got {value}")
        return value == 1

    def blob(self, what: str) -> bytes:
        (size,) = _U32.unpack(self.take(_U32.size, f"{what} length"))
        return self.take(size, what)

    def text(self, what: str) -> str:
        raw = self.blob(what)
        try:
            return raw.decode()
        except UnicodeDecodeError:
            raise InvalidTextError(what) from None

    def finish(self) -> None:
        if self.remaining:
            raise ProtocolError("trailing_data", f"{self.remaining} unexpected bytes after the last field")


def decode_request(data: bytes) -> Request:
    """Deserialize body bytes into a Request.

    Raises:
        ProtocolError: Unknown operation, truncated field, invalid UTF-8, or trailing bytes.

    """
    reader = _Reader(data)
    tag = reader.u8("op")
    try:
        op = Operation(tag)
    except ValueError:
        raise UnknownOperationError(tag) from None
    filename = reader.text("filename")
    filebytes = reader.blob("filebytes")
    reader.finish()
    return Request(op=op, filename=filename, filebytes=filebytes)


def decode_response(data: bytes) -> Response:
    """Deserialize body bytes into a Response.

    Raises:
        ProtocolError: Truncated field, invalid flag or UTF-8, or trailing bytes.

    """
    reader = _Reader(data)
    ok = reader.flag("ok")
    msg = reader.text("msg")
    if not reader.flag("has_file"):
        reader.finish()
        return Response(ok=ok, msg=msg)
    filename = reader.text("filename")
    filebytes = reader.blob("filebytes")
    reader.finish()
    return Response(ok=ok, msg=msg, filename=filename, filebytes=filebytes)
