"""Asyncio TCP server: the file store loop.

Each connection carries exactly one request and one response. Connections are handled by their own tasks,
so a slow or broken client never holds up the accept loop or other clients.
"""

import asyncio
import contextlib
import logging
import signal

from tcp_filestore.config import Config
from tcp_filestore.net.dispatcher import Dispatcher
from tcp_filestore.net.locks import NamedLocks
from tcp_filestore.net.protocol import ProtocolError, Response, decode_request, encode_response
from tcp_filestore.net.transport import TransportError, receive_frame, send_frame
from tcp_filestore.store import FileStore

logger = logging.getLogger(__name__)


class FileServer:
    """Serves one file operation per TCP connection."""

    def __init__(self, cfg: Config) -> None:
        """Initialize the server.

        Args:
            cfg: Application configuration.

        """
        self._cfg = cfg
        self._store = FileStore(cfg.store_dir, recursive_list=cfg.list_recursive)
        self._dispatcher = Dispatcher(self._store, NamedLocks(), max_response_size=cfg.max_frame_size)
        self._slots = asyncio.Semaphore(cfg.max_connections)
        self._server: asyncio.Server | None = None
        # Strong references to background tasks to prevent GC
        self._background_tasks: set[asyncio.Task[None]] = set()

    @property
    def port(self) -> int:
        """Port the server is bound to."""
        if self._server is None or not self._server.sockets:
            raise RuntimeError("Server is not started.")
        port: int = self._server.sockets[0].getsockname()[1]
        return port

    async def start(self) -> asyncio.Server:
        """Bind the listening socket and start accepting connections."""
        self._server = await asyncio.start_server(self._handle_client, host=self._cfg.host, port=self._cfg.port)
        logger.info("Listening on %s:%d, store %s", self._cfg.host, self.port, self._store.root)
        return self._server

    async def run(self) -> None:
        """Start the server and run until shutdown signal."""
        server = await self.start()

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self._schedule_shutdown)

        async with server:
            with contextlib.suppress(asyncio.CancelledError):
                await server.serve_forever()

    async def close(self) -> None:
        """Stop accepting connections and wait for the listening socket to close."""
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()

    async def _handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        """Handle a single client connection: read request, dispatch, send response."""
        peer = writer.get_extra_info("peername")
        async with self._slots:
            try:
                payload = await receive_frame(
                    reader,
                    max_size=self._cfg.max_frame_size,
                    chunk_size=self._cfg.chunk_size,
                    timeout=self._cfg.io_timeout,
                    idle_timeout=self._cfg.idle_timeout,
                )
                req = decode_request(payload)
                logger.debug("Request from %s: %s %r", peer, req.op.name, req.filename)
                resp = await self._dispatcher.dispatch(req)
                await send_frame(writer, encode_response(resp), timeout=self._cfg.io_timeout)
            except ProtocolError as e:
                logger.warning("Malformed request from %s: %s", peer, e)
                await self._try_send(writer, Response.fail(f"Malformed request: {e}"))
            except TransportError as e:
                logger.warning("Connection error with %s: %s", peer, e)
            except Exception:
                logger.exception("Error handling client %s", peer)
                await self._try_send(writer, Response.fail("Internal server error."))
            finally:
                writer.close()
                with contextlib.suppress(OSError):
                    await writer.wait_closed()

    async def _try_send(self, writer: asyncio.StreamWriter, resp: Response) -> None:
        """Send a response on a connection that is being abandoned, ignoring transport failures."""
        try:
            await send_frame(writer, encode_response(resp), timeout=self._cfg.io_timeout)
        except TransportError as e:
            logger.debug("Could not deliver error response: %s", e)

    def _schedule_shutdown(self) -> None:
        """Schedule a shutdown task with a strong reference to prevent GC."""
        task = asyncio.ensure_future(self._shutdown())
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def _shutdown(self) -> None:
        """Clean shutdown: stop accepting connections."""
        logger.info("Shutting down server.")
        await self.close()


def run_server(cfg: Config) -> None:
    """Entry point: create server and run the asyncio event loop."""
    server = FileServer(cfg)
    asyncio.run(server.run())
