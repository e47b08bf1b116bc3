"""Data access layer for the server's file store."""

import errno
import os
from pathlib import Path

# Longest accepted filename, in UTF-8 bytes (common filesystem NAME_MAX)
MAX_FILENAME_BYTES = 255

# Separators and bytes that must never appear in a stored name
_FORBIDDEN_CHARS = ("/", "\\", "\x00")

# Entry-level failures that are reported to the client instead of raised
_ENTRY_ERRORS = (FileNotFoundError, IsADirectoryError, NotADirectoryError, PermissionError)


class StoreError(Exception):
    """Application-level error raised by FileStore operations."""

    def __init__(self, code: str, message: str) -> None:
        """Initialize with a machine-readable code and a human-readable message.

        Args:
            code: Machine-readable error code (e.g. "invalid_filename").
            message: Human-readable error description.

        """
        super().__init__(message)
        self.code = code


def validate_filename(name: str) -> str:
    """Return name if it is a single, safe path component.

    Raises:
        StoreError: Empty, dot segment, separator, NUL or other non-printable character, or too long
            (code: ``invalid_filename``).

    """
    if not name:
        raise StoreError("invalid_filename", "Filename cannot be empty.")
    if name in (".", ".."):
        raise StoreError("invalid_filename", f"'{name}' is not a file name.")
    if any(ch in name for ch in _FORBIDDEN_CHARS):
        raise StoreError("invalid_filename", "Filename must not contain path separators.")
    # LIST joins names with newlines; control and line-separator characters would split an entry
    if not name.isprintable():
        raise StoreError("invalid_filename", "Filename must not contain control or line-separator characters.")
    if len(name.encode()) > MAX_FILENAME_BYTES:
        raise StoreError("invalid_filename", f"Filename is longer than {MAX_FILENAME_BYTES} bytes.")
    return name


class FileStore:
    """Named files kept directly under a root directory."""

    def __init__(self, root: Path, *, recursive_list: bool = False) -> None:
        """Initialize the store.

        Args:
            root: Store root directory. Created on first write.
            recursive_list: List every file below root instead of only its direct entries.

        """
        self._root = root
        self._recursive_list = recursive_list

    @property
    def root(self) -> Path:
        """Store root directory."""
        return self._root

    def path_for(self, name: str) -> Path:
        """Resolve the on-disk path for name, confined to the store root.

        Raises:
            StoreError: Invalid name (code: ``invalid_filename``) or a path escaping the root
                (code: ``outside_root``).

        """
        validate_filename(name)
        root = self._root.resolve()
        path = (root / name).resolve()
        if path.parent != root:
            raise StoreError("outside_root", f"'{name}' resolves outside the store.")
        return path

    def read(self, name: str) -> bytes | None:
        """Read a file fully, or return None if it does not exist or cannot be read."""
        path = self.path_for(name)
        try:
            return path.read_bytes()
        except _ENTRY_ERRORS:
            return None

    def write(self, name: str, data: bytes) -> bool:
        """Create or truncate a file, write data, and flush it to disk. Return False if the entry cannot be written.

        Raises:
            OSError: Store root cannot be created or is not writable.

        """
        path = self.path_for(name)
        self._ensure_root()
        try:
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o644)
        except _ENTRY_ERRORS:
            return False
        try:
            view = memoryview(data)
            while view:
                written = os.write(fd, view)
                view = view[written:]
            os.fsync(fd)
        finally:
            os.close(fd)
        return True

    def delete(self, name: str) -> bool:
        """Delete a file. Return True if it existed and was removed."""
        path = self.path_for(name)
        try:
            path.unlink()
        except _ENTRY_ERRORS:
            return False
        return True

    def list_names(self) -> list[str]:
        """List stored names, relative to the root, sorted."""
        if not self._root.is_dir():
            return []
        if self._recursive_list:
            return sorted(p.relative_to(self._root).as_posix() for p in self._root.rglob("*") if p.is_file())
        return sorted(p.name for p in self._root.iterdir())

    # --- Private helpers ---

    def _ensure_root(self) -> None:
        """Create the store root if missing and check it is writable.

        Raises:
            OSError: Root cannot be created or is not writable.

        """
        self._root.mkdir(parents=True, exist_ok=True)
        if not os.access(self._root, os.W_OK | os.X_OK):
            raise PermissionError(errno.EACCES, "Store root is not writable", str(self._root))
