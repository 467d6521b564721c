"""memfs: In-memory filesystem with a path-indexed storage engine."""

from .base import FileInfo, FileMetadata, FileSystem
from .config import MemoryFSConfig, connect_fs
from .memory import MemoryFS, mode_to_flags
from .memoryfile import MemoryFile
from .storage import ContentBuffer, Node, PathStore, clean

__all__ = [
    "clean",
    "connect_fs",
    "ContentBuffer",
    "FileInfo",
    "FileMetadata",
    "FileSystem",
    "MemoryFile",
    "MemoryFS",
    "MemoryFSConfig",
    "mode_to_flags",
    "Node",
    "PathStore",
]
