"""Perform one file operation against a server."""

import asyncio
from pathlib import Path
from typing import Annotated

import typer

from tcp_filestore.app_context import use_context
from tcp_filestore.config import parse_address
from tcp_filestore.net.client import FileClient, build_request, save_received
from tcp_filestore.net.protocol import Operation, ProtocolError
from tcp_filestore.net.transport import TransportError
from tcp_filestore.store import StoreError


def client(
    ctx: typer.Context,
    *,
    read: Annotated[str | None, typer.Option("--read", "-r", help="Fetch a file from the server.")] = None,
    write: Annotated[Path | None, typer.Option("--write", "-w", help="Store a local file on the server.")] = None,
    delete: Annotated[str | None, typer.Option("--delete", "-d", help="Delete a file on the server.")] = None,
    list_: Annotated[bool, typer.Option("--list", "-l", help="List all files on the server.")] = False,
    addr: Annotated[str | None, typer.Option("--addr", "-a", help="Server address and port, e.g. 127.0.0.1:8080.")] = None,
) -> None:
    """Read, write, delete, or list files on a server. Exactly one operation is required."""
    app = use_context(ctx)

    chosen = [
        (op, target)
        for op, target, given in (
            (Operation.READ, read, read is not None),
            (Operation.WRITE, write, write is not None),
            (Operation.DELETE, delete, delete is not None),
            (Operation.LIST, None, list_),
        )
        if given
    ]
    if len(chosen) != 1:
        app.out.print_error_and_exit("invalid_arguments", "Select exactly one of {-r, -w, -d, -l}.")
    op, target = chosen[0]

    try:
        address = parse_address(addr if addr is not None else app.cfg.server_address)
    except ValueError as e:
        app.out.print_error_and_exit("invalid_address", str(e))

    try:
        req = build_request(op, target)
    except ValueError as e:
        app.out.print_error_and_exit("invalid_arguments", str(e))
    except OSError as e:
        app.out.print_error_and_exit("local_file", f"Cannot read '{target}': {e.strerror or e}")

    try:
        resp = asyncio.run(FileClient(app.cfg, address).exchange(req))
    except (TransportError, ProtocolError) as e:
        app.out.print_error_and_exit(e.code, str(e))

    if not resp.ok:
        app.out.print_error_and_exit("failed", resp.msg)

    if op is Operation.READ and resp.has_file:
        try:
            path = save_received(resp, app.cfg.receive_dir)
        except StoreError as e:
            app.out.print_error_and_exit(e.code, str(e))
        except OSError as e:
            app.out.print_error_and_exit("local_file", f"Cannot save received file: {e}")
        app.out.print_file_saved(path.name, path, path.stat().st_size, resp.msg)
    elif op is Operation.LIST:
        app.out.print_listing(resp.msg)
    else:
        app.out.print_message(resp.msg)
