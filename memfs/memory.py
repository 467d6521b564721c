"""In-memory filesystem implementation."""

from __future__ import annotations

import errno as _errno
import fnmatch
import io
import logging
import os
import posixpath
import stat as stat_mod
from typing import Any

from .base import FileInfo, FileMetadata
from .config import MemoryFSConfig
from .memoryfile import MemoryFile
from .storage import SEPARATOR, Node, PathStore, clean

logger = logging.getLogger(__name__)

DEFAULT_DIR_MODE = 0o755
DEFAULT_FILE_MODE = 0o666

# Python mode letter -> os.O_* flags (without O_RDONLY/O_WRONLY/O_RDWR)
_MODE_FLAGS = {
    "r": 0,
    "w": os.O_CREAT | os.O_TRUNC,
    "a": os.O_CREAT | os.O_APPEND,
    "x": os.O_CREAT | os.O_EXCL,
}


def mode_to_flags(mode: str) -> int:
    """Translate a Python open() mode string into os.O_* flags.

    Raises:
        ValueError: If mode is invalid.
    """
    kinds = [c for c in mode if c in _MODE_FLAGS]
    if len(kinds) != 1 or set(mode) - set("rwaxb+t") or ("b" in mode and "t" in mode):
        raise ValueError(f"Invalid mode: {mode}")
    kind = kinds[0]
    if "+" in mode:
        access = os.O_RDWR
    elif kind == "r":
        access = os.O_RDONLY
    else:
        access = os.O_WRONLY
    return access | _MODE_FLAGS[kind]


def _match_segments(path: str, parts: list[str]) -> bool:
    segments = path.split(SEPARATOR)
    return len(segments) == len(parts) and all(
        fnmatch.fnmatchcase(segment, part) for segment, part in zip(segments, parts)
    )


class MemoryFS:
    """In-memory filesystem.

    Keeps every file and directory in a PathStore and exposes os-style
    operations over it. Files are opened as MemoryFile handles sharing the
    stored node, so concurrent handles see each other's writes.

    Useful for testing and as a scratch filesystem for sandboxed code.

    Example:
        >>> fs = MemoryFS()
        >>> fs.write("/data/a.csv", b"a,b,c")
        >>> fs.list("/data")
        ['a.csv']
        >>> with fs.open("/data/a.csv") as f:
        ...     f.read()
        'a,b,c'
    """

    def __init__(self, max_size_mb: int | None = None, cwd: str = "/") -> None:
        """Initialize an empty filesystem containing only the root.

        Args:
            max_size_mb: Maximum total size of all files in megabytes.
                None means unlimited.
            cwd: Initial working directory, created if missing.
        """
        self._store = PathStore()
        self._store.new(SEPARATOR, stat_mod.S_IFDIR | DEFAULT_DIR_MODE)
        self._max_size_bytes: int | None = (
            max_size_mb * 1024 * 1024 if max_size_mb is not None else None
        )
        self._temp_count = 0
        self._cwd = SEPARATOR
        if clean(cwd) != SEPARATOR:
            self.makedirs(cwd)
            self._cwd = clean(cwd)

    @classmethod
    def from_config(cls, config: MemoryFSConfig) -> "MemoryFS":
        return cls(max_size_mb=config.max_size_mb, cwd=config.cwd)

    @property
    def store(self) -> PathStore:
        """The underlying path store."""
        return self._store

    # -------------------------------------------------------------------------
    # Opening files
    # -------------------------------------------------------------------------

    def open(
        self,
        path: str,
        mode: str = "r",
        encoding: str | None = None,
        newline: str | None = None,
        **kwargs: Any,
    ) -> Any:
        """Open a file, returning a file-like object.

        Binary modes return the MemoryFile itself; text modes wrap it in
        a buffered reader/writer and a TextIOWrapper.

        Args:
            path: File path to open.
            mode: File mode ('r', 'rb', 'w', 'a+', 'x', ...).
            encoding: Text encoding (default UTF-8).
            newline: Newline handling, as for builtins.open.
            **kwargs: Additional arguments (ignored for compatibility).

        Raises:
            FileNotFoundError: If the file (or its parent, when creating)
                doesn't exist.
            FileExistsError: For 'x' mode on an existing file.
            IsADirectoryError: If path is a directory.
            ValueError: If mode is invalid.
        """
        raw = self.open_file(path, mode_to_flags(mode))
        raw.mode = mode
        if "b" in mode:
            return raw

        if raw.readable() and raw.writable():
            buffered: io.BufferedIOBase = io.BufferedRandom(raw)
        elif raw.writable():
            buffered = io.BufferedWriter(raw)
        else:
            buffered = io.BufferedReader(raw)
        text = io.TextIOWrapper(buffered, encoding=encoding or "utf-8", newline=newline)
        text.mode = mode  # type: ignore[misc]
        return text

    def open_file(
        self, path: str, flags: int = os.O_RDONLY, perm: int = DEFAULT_FILE_MODE
    ) -> MemoryFile:
        """Open a file using os.O_* flags.

        Args:
            path: File path.
            flags: Access mode plus O_CREAT, O_EXCL, O_TRUNC, O_APPEND.
            perm: Permission bits for a newly created file.

        Returns:
            A MemoryFile handle positioned at 0 (or end, with O_APPEND).
        """
        path = self._resolve(path)
        node = self._store.get(path)

        if node is None:
            if not flags & os.O_CREAT:
                raise FileNotFoundError(_errno.ENOENT, "No such file", path)
            parent = posixpath.dirname(path)
            if not self.isdir(parent):
                raise FileNotFoundError(_errno.ENOENT, "No such directory", parent)
            node = self._store.new(
                path, stat_mod.S_IFREG | stat_mod.S_IMODE(perm), flags
            )
        else:
            if flags & os.O_CREAT and flags & os.O_EXCL:
                raise FileExistsError(_errno.EEXIST, "File exists", path)
            if node.is_dir:
                raise IsADirectoryError(_errno.EISDIR, "Is a directory", path)
            if flags & os.O_TRUNC and len(node.content):
                node.content.truncate()
                node.touch()

        return MemoryFile(self, node, flags)

    def create(self, path: str) -> MemoryFile:
        """Create (or truncate) a file and open it read/write."""
        return self.open_file(path, os.O_RDWR | os.O_CREAT | os.O_TRUNC)

    def tempfile(self, dir: str = "/", prefix: str = "") -> MemoryFile:
        """Create a new uniquely named file in ``dir`` and open it.

        Names are ``prefix`` followed by a per-filesystem counter.
        """
        while True:
            self._temp_count += 1
            path = posixpath.join(self._resolve(dir), f"{prefix}{self._temp_count}")
            if not self._store.has(path):
                break
        self.makedirs(posixpath.dirname(path))
        return self.open_file(path, os.O_RDWR | os.O_CREAT | os.O_EXCL)

    # -------------------------------------------------------------------------
    # Whole-file helpers
    # -------------------------------------------------------------------------

    def read(self, path: str) -> bytes:
        return self._get_file(path).content.getvalue()

    def write(self, path: str, content: bytes, mode: str = "w") -> None:
        """Write bytes to a file, creating parent directories.

        Args:
            path: File path to write.
            content: Content to write (must be bytes).
            mode: 'w' to overwrite, 'a' to append.

        Raises:
            TypeError: If content is not bytes.
            ValueError: If mode is invalid.
            OSError: If the write would exceed the size limit.
        """
        if not isinstance(content, bytes):
            raise TypeError(f"Expected bytes, got {type(content).__name__}")
        if mode not in ("w", "a"):
            raise ValueError(f"Invalid mode: {mode}")

        path = self._resolve(path)
        parent = posixpath.dirname(path)
        if not self.isdir(parent):
            self.makedirs(parent)

        node = self._store.get(path)
        if node is not None and node.is_dir:
            raise IsADirectoryError(_errno.EISDIR, "Is a directory", path)
        existing = len(node.content) if node is not None else 0
        offset = existing if mode == "a" else 0
        self._check_size_limit(path, existing, offset + len(content))

        flags = os.O_WRONLY | os.O_CREAT | (os.O_APPEND if mode == "a" else os.O_TRUNC)
        with self.open_file(path, flags) as f:
            f.write(content)

    def truncate(self, path: str, length: int) -> None:
        node = self._get_file(path)
        self.check_size_limit(node, length)
        node.content.truncate(length)
        node.touch()

    # -------------------------------------------------------------------------
    # Metadata
    # -------------------------------------------------------------------------

    def stat(self, path: str) -> FileMetadata:
        node = self._get(path)
        return FileMetadata(
            size=node.size,
            created_at=node.created_at,
            modified_at=node.modified_at,
            is_dir=node.is_dir,
            mode=node.mode,
        )

    def chmod(self, path: str, mode: int) -> None:
        """Store new permission bits (not enforced)."""
        node = self._get(path)
        node.mode = stat_mod.S_IFMT(node.mode) | stat_mod.S_IMODE(mode)

    def exists(self, path: str) -> bool:
        return self._store.has(self._resolve(path))

    def isfile(self, path: str) -> bool:
        node = self._store.get(self._resolve(path))
        return node is not None and not node.is_dir

    def isdir(self, path: str) -> bool:
        node = self._store.get(self._resolve(path))
        return node is not None and node.is_dir

    def getsize(self, path: str) -> int:
        return len(self._get_file(path).content)

    def realpath(self, path: str) -> str:
        return self._resolve(path)

    # -------------------------------------------------------------------------
    # Directories
    # -------------------------------------------------------------------------

    def list(self, path: str = ".") -> list[str]:
        """List immediate children of a directory, sorted by name."""
        return sorted(node.name for node in self._children(path))

    def listdir(self, path: str = ".") -> list[str]:
        return self.list(path)

    def list_detailed(self, path: str = ".") -> list[FileInfo]:
        """List immediate children with full metadata, sorted by name."""
        nodes = sorted(self._children(path), key=lambda n: n.name)
        return [
            FileInfo(
                name=node.name,
                path=node.path,
                size=node.size,
                created_at=node.created_at,
                modified_at=node.modified_at,
                is_dir=node.is_dir,
                mode=node.mode,
            )
            for node in nodes
        ]

    def glob(self, pattern: str) -> list[str]:
        """Return canonical paths matching a glob pattern.

        Wildcards match within a single path segment, so ``/a/*`` lists
        the direct entries of ``/a`` only.
        """
        parts = self._resolve(pattern).split(SEPARATOR)
        return sorted(
            node.path
            for node in self._store.nodes()
            if node.path != SEPARATOR and _match_segments(node.path, parts)
        )

    def mkdir(
        self,
        path: str,
        parents: bool = False,
        exist_ok: bool = False,
        mode: int = DEFAULT_DIR_MODE,
    ) -> None:
        """Create a directory.

        Raises:
            FileExistsError: If path exists (as file, or as dir when
                exist_ok=False).
            FileNotFoundError: If parent doesn't exist and parents=False.
        """
        path = self._resolve(path)
        if parents:
            self.makedirs(path, exist_ok=exist_ok, mode=mode)
            return

        node = self._store.get(path)
        if node is not None:
            if node.is_dir and exist_ok:
                return
            raise FileExistsError(_errno.EEXIST, "File exists", path)

        parent = posixpath.dirname(path)
        if not self.isdir(parent):
            raise FileNotFoundError(_errno.ENOENT, "No such directory", parent)
        self._store.new(path, stat_mod.S_IFDIR | stat_mod.S_IMODE(mode))

    def makedirs(
        self, path: str, exist_ok: bool = True, mode: int = DEFAULT_DIR_MODE
    ) -> None:
        """Create a directory and any missing parents.

        Raises:
            FileExistsError: If path, or a component of it, is a file, or
                path is a directory and exist_ok=False.
        """
        path = self._resolve(path)
        if self._store.new(path, stat_mod.S_IFDIR | stat_mod.S_IMODE(mode)) is None:
            if not exist_ok:
                raise FileExistsError(_errno.EEXIST, "File exists", path)

    def rmdir(self, path: str) -> None:
        """Remove an empty directory.

        Raises:
            FileNotFoundError: If directory doesn't exist.
            NotADirectoryError: If path is a file.
            OSError: If directory is not empty.
        """
        path = self._resolve(path)
        node = self._get(path)
        if not node.is_dir:
            raise NotADirectoryError(_errno.ENOTDIR, "Not a directory", path)
        if path == SEPARATOR:
            raise OSError(_errno.EBUSY, "Cannot remove root directory", path)
        self._store.remove(path)
        if not self.isdir(self._cwd):
            logger.debug("working directory %s removed, resetting to /", self._cwd)
            self._cwd = SEPARATOR

    def remove(self, path: str) -> None:
        """Remove a file.

        Raises:
            FileNotFoundError: If file doesn't exist.
            IsADirectoryError: If path is a directory.
        """
        path = self._resolve(path)
        node = self._get(path)
        if node.is_dir:
            raise IsADirectoryError(_errno.EISDIR, "Is a directory", path)
        self._store.remove(path)

    def unlink(self, path: str) -> None:
        self.remove(path)

    def rename(self, src: str, dst: str) -> None:
        """Rename/move a file or directory (and everything beneath it).

        Raises:
            FileNotFoundError: If source doesn't exist.
            OSError: If dst is inside src, or is a non-empty directory.
        """
        src = self._resolve(src)
        dst = self._resolve(dst)
        self._store.rename(src, dst)
        if self._cwd == src or self._cwd.startswith(src + SEPARATOR):
            self._cwd = dst + self._cwd[len(src) :]

    def replace(self, src: str, dst: str) -> None:
        self.rename(src, dst)

    # -------------------------------------------------------------------------
    # Working directory and size accounting
    # -------------------------------------------------------------------------

    def getcwd(self) -> str:
        return self._cwd

    def chdir(self, path: str) -> None:
        path = self._resolve(path)
        if not self.isdir(path):
            raise FileNotFoundError(_errno.ENOENT, "No such directory", path)
        self._cwd = path

    def used_bytes(self) -> int:
        """Total size of all regular files."""
        return sum(node.size for node in self._store.nodes())

    def check_size_limit(self, node: Node, new_size: int) -> None:
        """Check that resizing ``node`` to ``new_size`` stays within the limit.

        Raises:
            OSError: ENOSPC if the limit would be exceeded.
        """
        # A node removed while a handle was open no longer counts in used_bytes().
        current = len(node.content) if self._store.get(node.path) is node else 0
        self._check_size_limit(node.path, current, new_size)

    def _check_size_limit(self, path: str, current_size: int, new_size: int) -> None:
        if self._max_size_bytes is None:
            return

        new_total = self.used_bytes() - current_size + new_size
        if new_total > self._max_size_bytes:
            logger.warning(
                "size limit rejected write to %s (%d > %d bytes)",
                path,
                new_total,
                self._max_size_bytes,
            )
            raise OSError(
                _errno.ENOSPC,
                f"memfs size limit exceeded: {new_total / 1024 / 1024:.1f}MB > "
                f"{self._max_size_bytes / 1024 / 1024:.1f}MB",
                path,
            )

    def _resolve(self, path: str) -> str:
        """Resolve a path relative to cwd and normalize . and .. components."""
        if not path.startswith(SEPARATOR):
            path = self._cwd.rstrip(SEPARATOR) + SEPARATOR + path
        return clean(path)

    def _get(self, path: str) -> Node:
        path = self._resolve(path)
        node = self._store.get(path)
        if node is None:
            raise FileNotFoundError(_errno.ENOENT, "No such file or directory", path)
        return node

    def _get_file(self, path: str) -> Node:
        node = self._get(path)
        if node.is_dir:
            raise IsADirectoryError(_errno.EISDIR, "Is a directory", node.path)
        return node

    def _children(self, path: str) -> list[Node]:
        node = self._get(path)
        if not node.is_dir:
            raise NotADirectoryError(_errno.ENOTDIR, "Not a directory", node.path)
        return self._store.children(node.path)
