"""Centralized application configuration."""

from __future__ import annotations

import ipaddress
import tomllib
from pathlib import Path
from typing import Any, NamedTuple

from pydantic import BaseModel, ConfigDict, Field, computed_field

DEFAULT_CONFIG_PATH = Path("filestore.toml")
DEFAULT_ADDRESS = "127.0.0.1:8080"

_MIB = 1024 * 1024

# TOML keys accepted by Config.build, with the types they must have
_TOML_KEYS: dict[str, type | tuple[type, ...]] = {
    "store_dir": str,
    "receive_dir": str,
    "host": str,
    "port": int,
    "chunk_size": int,
    "max_frame_size": int,
    "io_timeout": (int, float),
    "idle_timeout": (int, float),
    "connect_timeout": (int, float),
    "max_connections": int,
    "list_recursive": bool,
    "log_path": str,
}


class Address(NamedTuple):
    """Server address used by the client."""

    host: str
    port: int

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


def parse_address(text: str) -> Address:
    """Parse an ``ip:port`` string.

    Raises:
        ValueError: Not an IPv4 address followed by a valid port.

    """
    error = f"Bad address/port: '{text}'. Example: {DEFAULT_ADDRESS}"
    parts = text.split(":")
    if len(parts) != 2:
        raise ValueError(error)
    host, port = parts[0].strip(), parts[1].strip()
    try:
        ipaddress.IPv4Address(host)
    except ValueError:
        raise ValueError(error) from None
    if not (port.isascii() and port.isdigit()) or int(port) > 65535:
        raise ValueError(error)
    return Address(host, int(port))


class Config(BaseModel):
    """Application-wide configuration."""

    model_config = ConfigDict(frozen=True)

    store_dir: Path = Field(default=Path("files"), description="Server directory holding stored files")
    receive_dir: Path = Field(default=Path("received"), description="Client directory for downloaded files")
    host: str = Field(default="127.0.0.1", description="Server bind host")
    port: int = Field(default=8080, ge=0, le=65535, description="Server bind port (0 = any free port)")
    chunk_size: int = Field(default=_MIB, ge=1, description="Largest single socket read in bytes")
    max_frame_size: int = Field(default=64 * _MIB, ge=1, description="Largest accepted message in bytes")
    io_timeout: float = Field(default=30.0, ge=0, description="Per-frame send/receive deadline in seconds (0 = disabled)")
    idle_timeout: float = Field(default=60.0, ge=0, description="Wait for a request to start in seconds (0 = disabled)")
    connect_timeout: float = Field(default=10.0, ge=0, description="Client connect deadline in seconds (0 = disabled)")
    max_connections: int = Field(default=64, ge=1, description="Connections handled concurrently by the server")
    list_recursive: bool = Field(default=False, description="LIST every file below the store root, not only direct entries")
    log_path: Path | None = Field(default=None, description="Rotating log file (stderr when unset)")

    @computed_field(description="Address the server listens on")
    @property
    def server_address(self) -> str:
        """Address the server listens on."""
        return f"{self.host}:{self.port}"

    @staticmethod
    def build(config_path: Path | None = None) -> Config:
        """Build a Config from defaults and an optional TOML file.

        Without an explicit path, ``filestore.toml`` in the working directory is used when present.
        Unknown keys and values of the wrong type are ignored.
        """
        path = config_path if config_path is not None else DEFAULT_CONFIG_PATH

        kwargs: dict[str, Any] = {}
        if path.is_file():
            with path.open("rb") as f:
                toml_data = tomllib.load(f)
            for key, expected in _TOML_KEYS.items():
                value = toml_data.get(key)
                # bool is an int subclass; keep it out of numeric fields
                if isinstance(value, expected) and (key == "list_recursive" or not isinstance(value, bool)):
                    kwargs[key] = value

        return Config(**kwargs)
