"""Run the file store server."""

from pathlib import Path
from typing import Annotated

import typer

from tcp_filestore.app_context import use_context
from tcp_filestore.net.server import run_server


def serve(
    ctx: typer.Context,
    *,
    host: Annotated[str | None, typer.Option("--host", help="Bind host.")] = None,
    port: Annotated[int | None, typer.Option("--port", "-p", min=0, max=65535, help="Bind port.")] = None,
    store_dir: Annotated[Path | None, typer.Option("--store-dir", help="Directory holding stored files.")] = None,
) -> None:
    """Serve files from the store directory until interrupted."""
    app = use_context(ctx)
    overrides: dict[str, object] = {}
    if host is not None:
        overrides["host"] = host
    if port is not None:
        overrides["port"] = port
    if store_dir is not None:
        overrides["store_dir"] = store_dir
    cfg = app.cfg.model_copy(update=overrides)
    app.out.print_serving(cfg.server_address, cfg.store_dir)
    run_server(cfg)
