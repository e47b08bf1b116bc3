"""Asyncio client for CLI → server communication."""

import asyncio
import contextlib
import logging
from pathlib import Path

from tcp_filestore.config import Address, Config
from tcp_filestore.net.protocol import Operation, Request, Response, decode_response, encode_request
from tcp_filestore.net.transport import TransportError, receive_frame, send_frame
from tcp_filestore.store import validate_filename

logger = logging.getLogger(__name__)


def build_request(op: Operation, target: str | Path | None = None) -> Request:
    """Build a request for op.

    For WRITE, target is a local path: the file is read fully and only its last path component is sent as
    the name. For READ and DELETE, target is the remote name. LIST takes no target.

    Raises:
        ValueError: READ, WRITE, or DELETE without a target.
        OSError: WRITE source file cannot be read.

    """
    if op is Operation.LIST:
        return Request(op=op)
    if target is None or not str(target):
        raise ValueError(f"{op.name} requires a filename.")
    if op is Operation.WRITE:
        path = Path(target)
        return Request(op=op, filename=path.name, filebytes=path.read_bytes())
    return Request(op=op, filename=str(target))


def save_received(resp: Response, receive_dir: Path) -> Path:
    """Write the file carried by a READ response under receive_dir and return its path.

    Raises:
        ValueError: Response carries no file.
        StoreError: Server returned a name that is not a single path component (code: ``invalid_filename``).

    """
    if resp.filename is None or resp.filebytes is None:
        raise ValueError("Response carries no file.")
    path = receive_dir / validate_filename(resp.filename)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(resp.filebytes)
    return path


class FileClient:
    """Client performing one request per connection."""

    def __init__(self, cfg: Config, address: Address) -> None:
        """Initialize client.

        Args:
            cfg: Application configuration (provides timeouts and frame limits).
            address: Server address.

        """
        self._cfg = cfg
        self._address = address

    async def exchange(self, req: Request) -> Response:
        """Connect, send the request, and return the decoded response.

        Raises:
            TransportError: Connection could not be established or broke during the exchange.
            ProtocolError: Server reply is malformed.

        """
        host, port = self._address
        try:
            async with asyncio.timeout(self._cfg.connect_timeout or None):
                reader, writer = await asyncio.open_connection(host, port)
        except TimeoutError:
            raise TransportError("timeout", f"Connecting to {self._address} timed out.") from None
        except OSError as e:
            raise TransportError("connect_failed", f"Could not connect to {self._address}: {e}") from e

        try:
            logger.debug("Sending %s %r to %s", req.op.name, req.filename, self._address)
            await send_frame(writer, encode_request(req), timeout=self._cfg.io_timeout)
            payload = await receive_frame(
                reader,
                max_size=self._cfg.max_frame_size,
                chunk_size=self._cfg.chunk_size,
                timeout=self._cfg.io_timeout,
                idle_timeout=self._cfg.io_timeout,
            )
        finally:
            writer.close()
            with contextlib.suppress(OSError):
                await writer.wait_closed()
        return decode_response(payload)

    # --- Convenience methods ---

    async def read(self, name: str) -> Response:
        """Fetch a file by name."""
        return await self.exchange(build_request(Operation.READ, name))

    async def write(self, path: Path) -> Response:
        """Upload a local file under its base name."""
        return await self.exchange(build_request(Operation.WRITE, path))

    async def delete(self, name: str) -> Response:
        """Delete a file by name."""
        return await self.exchange(build_request(Operation.DELETE, name))

    async def list_files(self) -> Response:
        """List stored files."""
        return await self.exchange(build_request(Operation.LIST))
