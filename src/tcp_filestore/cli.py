"""CLI entry point for tcp-filestore."""

from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Annotated

import typer

from tcp_filestore.app_context import AppContext
from tcp_filestore.commands.client import client
from tcp_filestore.commands.serve import serve
from tcp_filestore.config import Config
from tcp_filestore.log import setup_logging
from tcp_filestore.output import Output

app = typer.Typer(no_args_is_help=True, context_settings={"help_option_names": ["-h", "--help"]})


def _print_version(value: bool) -> None:
    if not value:
        return
    try:
        typer.echo(version("tcp-filestore"))
    except PackageNotFoundError:
        typer.echo("unknown")
    raise typer.Exit


@app.callback()
def callback(
    ctx: typer.Context,
    *,
    json_output: Annotated[bool, typer.Option("--json", help="Output results as JSON.")] = False,
    config_path: Annotated[Path | None, typer.Option("--config", "-c", help="TOML configuration file.")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log debug messages.")] = False,
    _version: Annotated[
        bool, typer.Option("--version", callback=_print_version, is_eager=True, help="Show version and exit.")
    ] = False,
) -> None:
    """Store, fetch, delete, and list files on a remote server over a binary TCP protocol."""
    cfg = Config.build(config_path)
    setup_logging(cfg.log_path, verbose=verbose)
    ctx.obj = AppContext(out=Output(json_mode=json_output), cfg=cfg)


# Server
app.command()(serve)

# Client
app.command()(client)
