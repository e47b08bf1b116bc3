"""Maps decoded requests to file store actions."""

import asyncio
import logging

from tcp_filestore.net.locks import NamedLocks
from tcp_filestore.net.protocol import Operation, Request, Response, file_response_size
from tcp_filestore.store import FileStore, StoreError, validate_filename

logger = logging.getLogger(__name__)

MSG_READ_OK = "File successfully returned."
MSG_READ_NOT_FOUND = "File not found on server."
MSG_WRITE_OK = "File successfully stored."
MSG_WRITE_FAILED = "File could not be stored."
MSG_TOO_LARGE = "File is too large to be returned."
MSG_DELETE_OK = "File successfully deleted."
MSG_DELETE_FAILED = "File could not be deleted."


class Dispatcher:
    """Route a request to the file store and build the response.

    Disk I/O runs in worker threads so a slow file never stalls the event loop. Operations naming a file
    hold that file's lock, so concurrent requests for the same name run one after another.
    """

    def __init__(self, store: FileStore, locks: NamedLocks | None = None, *, max_response_size: int | None = None) -> None:
        """Initialize the dispatcher.

        Args:
            store: File store to operate on.
            locks: Per-filename lock table; a private one is created when omitted.
            max_response_size: Largest response body a client accepts. Files whose READ response would be
                larger are neither stored nor returned. None means no limit.

        """
        self._store = store
        self._locks = locks if locks is not None else NamedLocks()
        self._max_response_size = max_response_size

    async def dispatch(self, req: Request) -> Response:
        """Perform the requested operation.

        Missing files and unusable names become failure responses.

        Raises:
            OSError: Store root is unusable.

        """
        try:
            if req.op is not Operation.LIST:
                validate_filename(req.filename)
            match req.op:
                case Operation.READ:
                    return await self._read(req.filename)
                case Operation.WRITE:
                    return await self._write(req.filename, req.filebytes)
                case Operation.DELETE:
                    return await self._delete(req.filename)
                case Operation.LIST:
                    names = await asyncio.to_thread(self._store.list_names)
                    return Response.success("\n".join(names))
        except StoreError as e:
            logger.info("Rejected %s of %r: %s", req.op.name, req.filename, e)
            return Response.fail(f"Invalid filename: {e}")

    async def _read(self, name: str) -> Response:
        async with self._locks.hold(name):
            data = await asyncio.to_thread(self._store.read, name)
        if data is None:
            return Response.fail(MSG_READ_NOT_FOUND)
        if not self._fits(name, len(data)):
            return Response.fail(MSG_TOO_LARGE)
        return Response.file(name, data, MSG_READ_OK)

    async def _write(self, name: str, data: bytes) -> Response:
        if not self._fits(name, len(data)):
            return Response.fail(f"{MSG_WRITE_FAILED} {MSG_TOO_LARGE}")
        async with self._locks.hold(name):
            stored = await asyncio.to_thread(self._store.write, name, data)
        if not stored:
            return Response.fail(MSG_WRITE_FAILED)
        logger.info("Stored %r (%d bytes)", name, len(data))
        return Response.success(MSG_WRITE_OK)

    def _fits(self, name: str, size: int) -> bool:
        """Check that a READ response for a file of this size stays within the client limit."""
        if self._max_response_size is None:
            return True
        return file_response_size(name, size, MSG_READ_OK) <= self._max_response_size

    async def _delete(self, name: str) -> Response:
        async with self._locks.hold(name):
            deleted = await asyncio.to_thread(self._store.delete, name)
        if not deleted:
            return Response.fail(MSG_DELETE_FAILED)
        logger.info("Deleted %r", name)
        return Response.success(MSG_DELETE_OK)
