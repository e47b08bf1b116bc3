"""Tests for request dispatch against a real store."""

import asyncio
from pathlib import Path

import pytest

from tcp_filestore.net.dispatcher import (
    MSG_DELETE_FAILED,
    MSG_DELETE_OK,
    MSG_READ_NOT_FOUND,
    MSG_READ_OK,
    MSG_TOO_LARGE,
    MSG_WRITE_FAILED,
    MSG_WRITE_OK,
    Dispatcher,
)
from tcp_filestore.net.protocol import Operation, Request, Response, encode_response
from tcp_filestore.store import FileStore


@pytest.fixture
def store(tmp_path: Path) -> FileStore:
    """Store rooted in a temporary directory."""
    return FileStore(tmp_path / "files")


@pytest.fixture
def dispatcher(store: FileStore) -> Dispatcher:
    """Dispatcher with a private lock table."""
    return Dispatcher(store)


def _write(name: str, data: bytes) -> Request:
    return Request(op=Operation.WRITE, filename=name, filebytes=data)


class TestRead:
    """READ requests."""

    @pytest.mark.asyncio
    async def test_write_then_read(self, dispatcher: Dispatcher):
        """Stored bytes come back exactly, with the file attached."""
        await dispatcher.dispatch(_write("a.txt", b"hello"))
        resp = await dispatcher.dispatch(Request(op=Operation.READ, filename="a.txt"))
        assert resp.ok is True
        assert resp.msg == MSG_READ_OK
        assert resp.filename == "a.txt"
        assert resp.filebytes == b"hello"

    @pytest.mark.asyncio
    async def test_missing(self, dispatcher: Dispatcher):
        """Missing file is a failure response without a file."""
        resp = await dispatcher.dispatch(Request(op=Operation.READ, filename="nope.txt"))
        assert resp.ok is False
        assert resp.msg == MSG_READ_NOT_FOUND
        assert not resp.has_file


class TestWrite:
    """WRITE requests."""

    @pytest.mark.asyncio
    async def test_stores_file(self, dispatcher: Dispatcher, store: FileStore):
        """File lands under the store root."""
        resp = await dispatcher.dispatch(_write("a.txt", b"data"))
        assert resp.ok is True
        assert resp.msg == MSG_WRITE_OK
        assert not resp.has_file
        assert (store.root / "a.txt").read_bytes() == b"data"

    @pytest.mark.asyncio
    async def test_entry_failure(self, dispatcher: Dispatcher, store: FileStore):
        """Writing onto a directory is a failure response."""
        (store.root / "sub").mkdir(parents=True)
        resp = await dispatcher.dispatch(_write("sub", b"x"))
        assert resp.ok is False
        assert resp.msg == MSG_WRITE_FAILED

    @pytest.mark.asyncio
    async def test_root_blocked_by_file(self, tmp_path: Path):
        """A store root that cannot be created is raised, not answered."""
        (tmp_path / "files").write_bytes(b"not a directory")
        dispatcher = Dispatcher(FileStore(tmp_path / "files"))
        with pytest.raises(OSError):
            await dispatcher.dispatch(_write("a.txt", b"x"))


class TestDelete:
    """DELETE requests."""

    @pytest.mark.asyncio
    async def test_delete_existing(self, dispatcher: Dispatcher):
        """Existing file is deleted and no longer readable."""
        await dispatcher.dispatch(_write("a.txt", b"x"))
        resp = await dispatcher.dispatch(Request(op=Operation.DELETE, filename="a.txt"))
        assert resp.ok is True
        assert resp.msg == MSG_DELETE_OK
        read = await dispatcher.dispatch(Request(op=Operation.READ, filename="a.txt"))
        assert read.ok is False

    @pytest.mark.asyncio
    async def test_delete_never_written_is_repeatable(self, dispatcher: Dispatcher):
        """Deleting an absent name fails the same way every time."""
        for _ in range(2):
            resp = await dispatcher.dispatch(Request(op=Operation.DELETE, filename="ghost.txt"))
            assert resp.ok is False
            assert resp.msg == MSG_DELETE_FAILED


class TestList:
    """LIST requests."""

    @pytest.mark.asyncio
    async def test_empty_store(self, dispatcher: Dispatcher):
        """Empty store lists as an empty message."""
        resp = await dispatcher.dispatch(Request(op=Operation.LIST))
        assert resp.ok is True
        assert resp.msg == ""
        assert not resp.has_file

    @pytest.mark.asyncio
    async def test_each_name_once(self, dispatcher: Dispatcher):
        """Every written name appears exactly once."""
        names = [f"file-{i}.txt" for i in range(10)]
        for name in names:
            await dispatcher.dispatch(_write(name, b"x"))
        await dispatcher.dispatch(_write(names[0], b"again"))
        resp = await dispatcher.dispatch(Request(op=Operation.LIST))
        listed = resp.msg.split("\n")
        assert sorted(listed) == sorted(names)


class TestInvalidNames:
    """Unsafe names never reach the filesystem."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("op", [Operation.READ, Operation.WRITE, Operation.DELETE])
    @pytest.mark.parametrize("name", ["", "..", "../escape.txt", "sub/file.txt"])
    async def test_rejected(self, dispatcher: Dispatcher, tmp_path: Path, op: Operation, name: str):
        """Each operation answers with an invalid-filename failure."""
        resp = await dispatcher.dispatch(Request(op=op, filename=name, filebytes=b"x"))
        assert resp.ok is False
        assert resp.msg.startswith("Invalid filename:")
        assert not (tmp_path / "escape.txt").exists()


class TestConcurrency:
    """Concurrent requests."""

    @pytest.mark.asyncio
    async def test_distinct_names(self, dispatcher: Dispatcher):
        """Concurrent writes to distinct names all land intact."""
        payloads = {f"f{i}.bin": bytes([i]) * (1000 + i) for i in range(20)}
        results = await asyncio.gather(*(dispatcher.dispatch(_write(n, d)) for n, d in payloads.items()))
        assert all(r.ok for r in results)
        for name, data in payloads.items():
            resp = await dispatcher.dispatch(Request(op=Operation.READ, filename=name))
            assert resp.filebytes == data

    @pytest.mark.asyncio
    async def test_same_name_writes_never_interleave(self, dispatcher: Dispatcher):
        """Concurrent writes of one name leave exactly one of the payloads."""
        payloads = [bytes([i]) * 200_000 for i in range(5)]
        await asyncio.gather(*(dispatcher.dispatch(_write("same.bin", d)) for d in payloads))
        resp = await dispatcher.dispatch(Request(op=Operation.READ, filename="same.bin"))
        assert resp.filebytes in payloads


class TestResponseSizeLimit:
    """Stored files must stay small enough to be read back."""

    LIMIT = 200

    @staticmethod
    def _largest_readable(name: str, limit: int) -> int:
        """Largest file size whose READ response body is exactly limit bytes."""
        return limit - len(encode_response(Response.file(name, b"", MSG_READ_OK)))

    @pytest.mark.asyncio
    async def test_write_at_limit_reads_back(self, store: FileStore):
        """A file whose READ response is exactly the limit is stored and returned."""
        dispatcher = Dispatcher(store, max_response_size=self.LIMIT)
        data = b"x" * self._largest_readable("f.bin", self.LIMIT)
        assert (await dispatcher.dispatch(_write("f.bin", data))).ok is True
        resp = await dispatcher.dispatch(Request(op=Operation.READ, filename="f.bin"))
        assert resp.ok is True
        assert len(encode_response(resp)) == self.LIMIT
        assert resp.filebytes == data

    @pytest.mark.asyncio
    async def test_write_one_byte_over_is_refused(self, store: FileStore):
        """One byte more would make the READ response too large, so nothing is stored."""
        dispatcher = Dispatcher(store, max_response_size=self.LIMIT)
        data = b"x" * (self._largest_readable("f.bin", self.LIMIT) + 1)
        resp = await dispatcher.dispatch(_write("f.bin", data))
        assert resp.ok is False
        assert MSG_TOO_LARGE in resp.msg
        assert not (store.root / "f.bin").exists()

    @pytest.mark.asyncio
    async def test_oversized_file_on_disk(self, store: FileStore):
        """A file placed on disk beyond the limit is refused on READ instead of sent."""
        store.root.mkdir(parents=True)
        (store.root / "big.bin").write_bytes(b"x" * self.LIMIT)
        dispatcher = Dispatcher(store, max_response_size=self.LIMIT)
        resp = await dispatcher.dispatch(Request(op=Operation.READ, filename="big.bin"))
        assert resp.ok is False
        assert resp.msg == MSG_TOO_LARGE
        assert not resp.has_file


class TestListingNames:
    """Names that would corrupt the newline-joined listing."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["a\nb", "c\u2028d", "tab\there", "e\x0bf", "g\x1ch"])
    async def test_line_breaking_names_rejected(self, dispatcher: Dispatcher, store: FileStore, name: str):
        """Control and line-separator characters are refused and never listed."""
        resp = await dispatcher.dispatch(_write(name, b"x"))
        assert resp.ok is False
        assert resp.msg.startswith("Invalid filename:")
        listing = await dispatcher.dispatch(Request(op=Operation.LIST))
        assert listing.msg == ""
