"""Configuration for in-memory filesystems.

Provides the MemoryFSConfig dataclass and the connect_fs factory used to
build one from keyword arguments.
"""

from dataclasses import dataclass
from typing import Literal


@dataclass
class MemoryFSConfig:
    """Configuration for an in-memory filesystem.

    Attributes:
        type: Always "memory".
        max_size_mb: Maximum total size of all files in megabytes.
            None means unlimited.
        cwd: Initial working directory (created if missing).
    """

    type: Literal["memory"] = "memory"
    max_size_mb: int | None = None
    cwd: str = "/"


def connect_fs(
    type: Literal["memory"] = "memory",
    **kwargs,
) -> MemoryFSConfig:
    """Configure an in-memory filesystem.

    Args:
        type: FileSystem type. Only "memory" is supported.
        **kwargs: Additional configuration:
            - max_size_mb (int): Optional cap on total file bytes.
            - cwd (str): Optional initial working directory.

    Returns:
        MemoryFSConfig for initialization.

    Examples:
        >>> connect_fs(max_size_mb=4)
        MemoryFSConfig(type='memory', max_size_mb=4, cwd='/')
    """
    if type != "memory":
        raise ValueError(f"Unsupported filesystem type: {type}. Use 'memory'.")

    max_size_mb = kwargs.pop("max_size_mb", None)
    cwd = kwargs.pop("cwd", "/")
    if kwargs:
        raise ValueError(f"Unexpected arguments for memory fs: {list(kwargs.keys())}")

    if max_size_mb is not None and max_size_mb < 0:
        raise ValueError(f"max_size_mb must be non-negative, got {max_size_mb}")
    if not cwd.startswith("/"):
        raise ValueError(f"cwd must be an absolute path, got {cwd!r}")

    return MemoryFSConfig(type=type, max_size_mb=max_size_mb, cwd=cwd)
