"""Structured output for CLI and JSON modes."""

# ruff: noqa: T201
# This module is the output layer; print() is how CLI results are produced.

import json
import sys
from pathlib import Path
from typing import NoReturn

import typer


class Output:
    """Handles all CLI output in JSON or human-readable format."""

    def __init__(self, *, json_mode: bool) -> None:
        """Initialize output handler.

        Args:
            json_mode: If True, output JSON envelopes; otherwise human-readable text.

        """
        self._json_mode = json_mode

    def _success(self, data: dict[str, object], message: str) -> None:
        """Print a success result in JSON or human-readable format."""
        if self._json_mode:
            print(json.dumps({"ok": True, "data": data}))
        else:
            print(message)

    def print_error_and_exit(self, code: str, message: str) -> NoReturn:
        """Print an error in JSON or human-readable format and exit with code 1.

        Raises:
            typer.Exit: Always, with code 1.

        """
        if self._json_mode:
            print(json.dumps({"ok": False, "error": code, "message": message}))
        else:
            print(f"Error: {message}", file=sys.stderr)
        raise typer.Exit(code=1)

    # --- Client ---

    def print_message(self, message: str) -> None:
        """Print a server status message."""
        self._success({"message": message}, message)

    def print_file_saved(self, filename: str, path: Path, size: int, message: str) -> None:
        """Print received file confirmation."""
        self._success(
            {"filename": filename, "path": str(path), "size": size, "message": message},
            f"File '{filename}' written to {path}.\n{message}",
        )

    def print_listing(self, listing: str) -> None:
        """Print the server's file listing, one name per line."""
        names = listing.split("\n") if listing else []
        if self._json_mode:
            print(json.dumps({"ok": True, "data": {"files": names}}))
        else:
            for name in names:
                print(name)

    # --- Server ---

    def print_serving(self, address: str, store_dir: Path) -> None:
        """Print server startup banner."""
        self._success({"address": address, "store_dir": str(store_dir)}, f"Serving {store_dir} on {address}.")
