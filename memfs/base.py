"""Filesystem interface and metadata dataclasses."""

from __future__ import annotations

import os
import stat as stat_mod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol, runtime_checkable


def _epoch(iso_str: str) -> float:
    """Seconds since the epoch for a node timestamp ("" maps to 0.0)."""
    return datetime.fromisoformat(iso_str).timestamp() if iso_str else 0.0


@dataclass
class FileMetadata:
    """Metadata for a single file or directory.

    Field names follow the node they were read from; the ``st_*``
    properties expose the same values under os.stat_result names, and
    as_stat_result() packs them into a real one. Nodes have no owner, so
    uid and gid always report 0.

    Attributes:
        size: File size in bytes (0 for directories).
        created_at: ISO 8601 timestamp when file was created (UTC).
        modified_at: ISO 8601 timestamp when file was last modified (UTC).
        is_dir: True if this is a directory, False for files.
        mode: Stored permission and type bits.
    """

    size: int
    created_at: str
    modified_at: str
    is_dir: bool = False
    mode: int = 0o644

    @property
    def st_mode(self) -> int:
        kind = stat_mod.S_IFDIR if self.is_dir else stat_mod.S_IFREG
        return kind | stat_mod.S_IMODE(self.mode)

    @property
    def st_size(self) -> int:
        return self.size

    st_nlink = 1
    st_uid = 0
    st_gid = 0

    @property
    def st_mtime(self) -> float:
        return _epoch(self.modified_at)

    # No access tracking; reads report the last modification.
    st_atime = st_mtime

    @property
    def st_ctime(self) -> float:
        return _epoch(self.created_at)

    def as_stat_result(self) -> os.stat_result:
        return os.stat_result(
            (
                self.st_mode,
                0,
                0,
                self.st_nlink,
                self.st_uid,
                self.st_gid,
                self.size,
                int(self.st_atime),
                int(self.st_mtime),
                int(self.st_ctime),
            )
        )


@dataclass
class FileInfo:
    """Directory entry with full metadata.

    Attributes:
        name: File or directory name (basename).
        path: Canonical path to file or directory.
        size: File size in bytes (0 for directories).
        created_at: ISO 8601 timestamp when created (UTC).
        modified_at: ISO 8601 timestamp when last modified (UTC).
        is_dir: True if this is a directory, False if file.
        mode: Stored permission and type bits.
    """

    name: str
    path: str
    size: int
    created_at: str
    modified_at: str
    is_dir: bool
    mode: int


@runtime_checkable
class FileSystem(Protocol):
    """Minimal os-flavoured filesystem interface.

    MemoryFS implements this along with extras (read(), write(),
    glob(), list_detailed(), tempfile()).
    """

    def open(self, path: str, mode: str = "r", **kwargs: Any) -> Any:
        """Open a file."""
        ...

    def stat(self, path: str) -> FileMetadata:
        """Get file metadata."""
        ...

    def exists(self, path: str) -> bool:
        """Check if path exists."""
        ...

    def isfile(self, path: str) -> bool:
        """Check if path is a file."""
        ...

    def isdir(self, path: str) -> bool:
        """Check if path is a directory."""
        ...

    def list(self, path: str = ".") -> list[str]:
        """List directory contents (names only)."""
        ...

    def remove(self, path: str) -> None:
        """Remove a file."""
        ...

    def rmdir(self, path: str) -> None:
        """Remove an empty directory."""
        ...

    def mkdir(self, path: str, parents: bool = False, exist_ok: bool = False) -> None:
        """Create a directory."""
        ...

    def makedirs(self, path: str, exist_ok: bool = True) -> None:
        """Create directory tree."""
        ...

    def rename(self, src: str, dst: str) -> None:
        """Rename/move a file or directory."""
        ...

    def getcwd(self) -> str:
        """Get current working directory."""
        ...

    def chdir(self, path: str) -> None:
        """Change current working directory."""
        ...
