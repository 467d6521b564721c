"""File handle over a shared in-memory node."""

from __future__ import annotations

import errno
import io
import os
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .memory import MemoryFS
    from .storage import Node


class MemoryFile(io.RawIOBase):
    """Raw binary file object backed by a node's content buffer.

    Every handle keeps its own cursor; the bytes themselves live on the
    node, so writes through one handle are immediately visible through
    every other handle opened on the same path.

    Attributes:
        name: Path the file was opened with (canonical).
        mode: Python open mode string ('rb', 'r+b', 'wb', ...).
        flags: os.O_* flags the handle was opened with.
        position: Current cursor offset.
    """

    def __init__(
        self,
        fs: "MemoryFS | None",
        node: "Node",
        flags: int,
        mode: str = "",
    ):
        """Initialize a handle.

        Args:
            fs: Owning filesystem, consulted for the size limit. None
                disables the check.
            node: The node to read from and write to.
            flags: os.O_* flags (access mode and O_APPEND are honoured).
            mode: Python mode string, for display only.
        """
        super().__init__()
        self._fs = fs
        self._node = node
        self.name = node.path
        self.mode = mode
        self.flags = flags

        access = flags & 0o3  # O_RDONLY=0, O_WRONLY=1, O_RDWR=2
        self._readable = access in (os.O_RDONLY, os.O_RDWR)
        self._writable = access in (os.O_WRONLY, os.O_RDWR)
        self._append = bool(flags & os.O_APPEND)

        self.position = len(node.content) if self._append else 0

    def _check_open(self) -> None:
        if self.closed:
            raise ValueError(f"I/O operation on closed file: {self.name}")

    def readable(self) -> bool:
        self._check_open()
        return self._readable

    def writable(self) -> bool:
        self._check_open()
        return self._writable

    def seekable(self) -> bool:
        self._check_open()
        return True

    def readinto(self, b) -> int:
        """Read into ``b`` at the cursor; 0 means end of data."""
        self._check_open()
        if not self._readable:
            raise io.UnsupportedOperation("read")
        view = memoryview(b).cast("B")
        try:
            n = self._node.content.read_at(view, self.position)
        except EOFError:
            return 0
        self.position += n
        return n

    def readall(self) -> bytes:
        self._check_open()
        if not self._readable:
            raise io.UnsupportedOperation("read")
        data = self._node.content.getvalue()[self.position :]
        self.position += len(data)
        return data

    def write(self, b) -> int:
        """Write ``b`` at the cursor (at end of data in append mode)."""
        self._check_open()
        if not self._writable:
            raise io.UnsupportedOperation("write")
        data = memoryview(b).tobytes()
        content = self._node.content
        if self._append:
            self.position = len(content)

        if self._fs is not None:
            new_size = max(len(content), self.position + len(data))
            self._fs.check_size_limit(self._node, new_size)

        n = content.write_at(data, self.position)
        self.position += n
        self._node.touch()
        return n

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        self._check_open()
        if whence == io.SEEK_SET:
            target = offset
        elif whence == io.SEEK_CUR:
            target = self.position + offset
        elif whence == io.SEEK_END:
            target = len(self._node.content) + offset
        else:
            raise ValueError(f"invalid whence ({whence})")
        if target < 0:
            raise OSError(errno.EINVAL, "Invalid argument", self.name)
        self.position = target
        return target

    def tell(self) -> int:
        self._check_open()
        return self.position

    def truncate(self, size: int | None = None) -> int:
        """Resize the file; the cursor is left where it is."""
        self._check_open()
        if not self._writable:
            raise io.UnsupportedOperation("truncate")
        if size is None:
            size = self.position
        if self._fs is not None:
            self._fs.check_size_limit(self._node, size)
        self._node.content.truncate(size)
        self._node.touch()
        return size

    def pread(self, size: int, offset: int) -> bytes:
        """Read up to ``size`` bytes at ``offset`` without moving the cursor."""
        self._check_open()
        if not self._readable:
            raise io.UnsupportedOperation("read")
        buf = bytearray(size)
        try:
            n = self._node.content.read_at(buf, offset)
        except EOFError:
            return b""
        return bytes(buf[:n])

    def pwrite(self, data: bytes, offset: int) -> int:
        """Write ``data`` at ``offset`` without moving the cursor."""
        self._check_open()
        if not self._writable:
            raise io.UnsupportedOperation("write")
        content = self._node.content
        if self._fs is not None:
            self._fs.check_size_limit(
                self._node, max(len(content), offset + len(data))
            )
        n = content.write_at(data, offset)
        self._node.touch()
        return n

    def __repr__(self) -> str:
        return f"<MemoryFile name={self.name!r} mode={self.mode!r}>"
