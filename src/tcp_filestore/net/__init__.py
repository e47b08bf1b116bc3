"""Network subsystem: wire protocol, frame transport, server, and client."""

from tcp_filestore.net.client import FileClient as FileClient
from tcp_filestore.net.protocol import Operation as Operation
from tcp_filestore.net.protocol import Request as Request
from tcp_filestore.net.protocol import Response as Response
from tcp_filestore.net.server import FileServer as FileServer
