"""Application context shared across CLI commands."""

from dataclasses import dataclass

import typer

from tcp_filestore.config import Config
from tcp_filestore.output import Output


@dataclass(frozen=True, slots=True)
class AppContext:
    """Shared application state passed through Typer context."""

    out: Output
    cfg: Config


def use_context(ctx: typer.Context) -> AppContext:
    """Extract application context from Typer context."""
    result: AppContext = ctx.obj
    return result
