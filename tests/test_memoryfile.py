"""Tests for MemoryFile handles: flags, cursors and shared content."""

import io
import os

import pytest

from memfs import MemoryFS


class TestOpenFlags:
    """Test os.O_* flag handling in MemoryFS.open_file()."""

    def test_open_missing_without_create_raises(self):
        fs = MemoryFS()

        with pytest.raises(FileNotFoundError):
            fs.open_file("/missing.txt", os.O_RDONLY)

    def test_create_flag_makes_file(self):
        fs = MemoryFS()

        with fs.open_file("/new.txt", os.O_WRONLY | os.O_CREAT) as f:
            f.write(b"data")

        assert fs.read("/new.txt") == b"data"

    def test_create_requires_parent(self):
        fs = MemoryFS()

        with pytest.raises(FileNotFoundError):
            fs.open_file("/nodir/new.txt", os.O_WRONLY | os.O_CREAT)
        assert not fs.exists("/nodir")

    def test_exclusive_on_existing_raises(self):
        fs = MemoryFS()
        fs.write("/f.txt", b"x")

        with pytest.raises(FileExistsError):
            fs.open_file("/f.txt", os.O_WRONLY | os.O_CREAT | os.O_EXCL)

    def test_truncate_flag_empties_content(self):
        fs = MemoryFS()
        fs.write("/f.txt", b"old content")

        f = fs.open_file("/f.txt", os.O_WRONLY | os.O_TRUNC)
        f.close()

        assert fs.read("/f.txt") == b""

    def test_open_directory_raises(self):
        fs = MemoryFS()
        fs.mkdir("/d")

        with pytest.raises(IsADirectoryError):
            fs.open_file("/d", os.O_RDONLY)

    def test_new_file_records_perm_and_flags(self):
        fs = MemoryFS()
        flags = os.O_RDWR | os.O_CREAT

        fs.open_file("/f", flags, 0o600).close()

        node = fs.store.must_get("/f")
        assert node.flags == flags
        assert fs.stat("/f").st_mode & 0o777 == 0o600


class TestCursor:
    """Test read/write/seek behavior of a single handle."""

    def test_read_write_seek(self):
        fs = MemoryFS()
        f = fs.create("/f.bin")

        f.write(b"hello world")
        assert f.tell() == 11
        f.seek(0)
        assert f.read(5) == b"hello"
        assert f.read() == b" world"
        assert f.read() == b""

    def test_seek_past_end_then_write_zero_fills(self):
        fs = MemoryFS()
        f = fs.create("/sparse")

        f.seek(4)
        f.write(b"X")

        assert fs.read("/sparse") == b"\x00\x00\x00\x00X"

    def test_seek_whence(self):
        fs = MemoryFS()
        fs.write("/f", b"0123456789")
        f = fs.open_file("/f")

        assert f.seek(-2, io.SEEK_END) == 8
        assert f.read() == b"89"
        f.seek(2)
        assert f.seek(3, io.SEEK_CUR) == 5

    def test_negative_seek_raises(self):
        fs = MemoryFS()
        f = fs.create("/f")

        with pytest.raises(OSError):
            f.seek(-1)

    def test_readinto_at_end_returns_zero(self):
        fs = MemoryFS()
        fs.write("/f", b"ab")
        f = fs.open_file("/f")

        buf = bytearray(10)
        assert f.readinto(buf) == 2
        assert f.readinto(buf) == 0

    def test_append_writes_at_end(self):
        """O_APPEND starts at the end and keeps writing there after seeks."""
        fs = MemoryFS()
        fs.write("/log", b"one\n")
        f = fs.open_file("/log", os.O_RDWR | os.O_APPEND)

        assert f.tell() == 4
        f.seek(0)
        f.write(b"two\n")

        assert fs.read("/log") == b"one\ntwo\n"

    def test_read_only_handle_rejects_write(self):
        fs = MemoryFS()
        fs.write("/f", b"x")
        f = fs.open_file("/f", os.O_RDONLY)

        assert f.readable() and not f.writable()
        with pytest.raises(io.UnsupportedOperation):
            f.write(b"y")

    def test_write_only_handle_rejects_read(self):
        fs = MemoryFS()
        f = fs.open_file("/f", os.O_WRONLY | os.O_CREAT)

        with pytest.raises(io.UnsupportedOperation):
            f.read()

    def test_closed_handle_raises(self):
        fs = MemoryFS()
        f = fs.create("/f")
        f.close()

        assert f.closed
        with pytest.raises(ValueError):
            f.write(b"x")

    def test_truncate_keeps_cursor(self):
        fs = MemoryFS()
        f = fs.create("/f")
        f.write(b"abcdef")

        assert f.truncate(2) == 2
        assert f.tell() == 6
        assert fs.getsize("/f") == 2

    def test_positional_io_leaves_cursor(self):
        fs = MemoryFS()
        f = fs.create("/f")
        f.write(b"abcdef")

        assert f.pwrite(b"XY", 1) == 2
        assert f.pread(3, 0) == b"aXY"
        assert f.pread(3, 100) == b""
        assert f.tell() == 6


class TestSharedContent:
    """Handles on the same path share one node."""

    def test_writes_visible_across_handles(self):
        fs = MemoryFS()
        writer = fs.create("/shared")
        reader = fs.open_file("/shared")

        writer.write(b"first")
        assert reader.read() == b"first"

        writer.write(b" second")
        assert reader.read() == b" second"

    def test_handle_survives_rename(self):
        """A handle keeps working on the node after its path moves."""
        fs = MemoryFS()
        fs.mkdir("/dir")
        f = fs.create("/dir/a.txt")
        fs.rename("/dir", "/moved")

        f.write(b"after move")

        assert fs.read("/moved/a.txt") == b"after move"

    def test_write_updates_modified_at(self):
        fs = MemoryFS()
        f = fs.create("/f")
        before = fs.stat("/f").modified_at

        f.write(b"x")

        assert fs.stat("/f").modified_at >= before


class TestTextMode:
    """Test text-mode wrapping in MemoryFS.open()."""

    def test_text_round_trip(self):
        fs = MemoryFS()

        with fs.open("/notes.txt", "w") as f:
            f.write("héllo\nworld\n")

        with fs.open("/notes.txt") as f:
            assert f.readlines() == ["héllo\n", "world\n"]
        assert fs.read("/notes.txt") == "héllo\nworld\n".encode("utf-8")

    def test_text_append(self):
        fs = MemoryFS()
        fs.write("/log.txt", b"a\n")

        with fs.open("/log.txt", "a") as f:
            f.write("b\n")

        assert fs.read("/log.txt") == b"a\nb\n"

    def test_binary_mode_returns_memory_file(self):
        fs = MemoryFS()

        with fs.open("/bin", "wb") as f:
            f.write(b"\x00\x01")
            assert f.mode == "wb"

        with fs.open("/bin", "rb") as f:
            assert f.read() == b"\x00\x01"

    def test_exclusive_mode(self):
        fs = MemoryFS()
        fs.write("/exists", b"")

        with pytest.raises(FileExistsError):
            fs.open("/exists", "x")

    def test_read_plus_mode(self):
        fs = MemoryFS()
        fs.write("/f", b"abc")

        with fs.open("/f", "r+b") as f:
            f.seek(1)
            f.write(b"Z")

        assert fs.read("/f") == b"aZc"

    def test_invalid_mode(self):
        fs = MemoryFS()

        with pytest.raises(ValueError, match="Invalid mode"):
            fs.open("/f", "rw")
