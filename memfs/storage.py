"""Path-indexed storage engine.

Holds every file and directory node in two indices: a flat map from
canonical path to node, and a per-directory map from child name to node.
All structural mutations go through PathStore so the two never drift.
"""

from __future__ import annotations

import errno
import logging
import posixpath
import stat as stat_mod
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime, timezone

logger = logging.getLogger(__name__)

SEPARATOR = "/"

# Mode given to directories synthesised while relocating a subtree.
RENAME_PARENT_MODE = 0o644


def clean(path: str) -> str:
    """Return the canonical absolute form of ``path``.

    Relative paths are taken relative to the root, so ``a/b`` and
    ``/a/./b/`` both clean to ``/a/b``.
    """
    path = posixpath.normpath(SEPARATOR + path)
    # normpath keeps a leading "//" (POSIX implementation-defined)
    return SEPARATOR + path.lstrip(SEPARATOR)


def is_beneath(path: str, ancestor: str) -> bool:
    """True if ``path`` lies strictly below ``ancestor`` (both canonical)."""
    if ancestor == SEPARATOR:
        return path != SEPARATOR
    return path.startswith(ancestor + SEPARATOR)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ContentBuffer:
    """Byte payload of a single node.

    Supports offset-based reads and writes. Writing past the end
    zero-fills the gap; reading at or past the end raises EOFError.
    """

    def __init__(self, data: bytes = b"") -> None:
        self._data = bytearray(data)

    def __len__(self) -> int:
        return len(self._data)

    def getvalue(self) -> bytes:
        return bytes(self._data)

    def write_at(self, data: bytes, offset: int) -> int:
        """Write ``data`` starting at ``offset``.

        Returns:
            Number of bytes written, always ``len(data)``.

        Raises:
            ValueError: If offset is negative.
        """
        if offset < 0:
            raise ValueError(f"negative offset: {offset}")
        gap = offset - len(self._data)
        if gap > 0:
            self._data.extend(bytes(gap))
        self._data[offset : offset + len(data)] = data
        return len(data)

    def read_at(self, dest: bytearray | memoryview, offset: int) -> int:
        """Copy bytes starting at ``offset`` into ``dest``.

        Returns:
            Number of bytes copied, ``min(len(dest), len(self) - offset)``.

        Raises:
            EOFError: If offset is at or beyond the end of the data.
            ValueError: If offset is negative.
        """
        if offset < 0:
            raise ValueError(f"negative offset: {offset}")
        size = len(self._data)
        if offset >= size:
            raise EOFError(f"offset {offset} at or past end of data ({size} bytes)")
        n = min(len(dest), size - offset)
        dest[:n] = self._data[offset : offset + n]
        return n

    def truncate(self, size: int = 0) -> None:
        """Resize to exactly ``size`` bytes, zero-extending if needed."""
        if size < 0:
            raise ValueError(f"negative size: {size}")
        if size <= len(self._data):
            del self._data[size:]
        else:
            self._data.extend(bytes(size - len(self._data)))


@dataclass(eq=False)
class Node:
    """A single file or directory entry.

    Nodes are shared, never copied: every caller asking for the same path
    gets the same instance and sees the same content.

    Attributes:
        path: Canonical absolute path the node is stored under.
        mode: Permission bits plus stat type bits.
        flags: os.O_* flags given at creation (not interpreted here).
        content: The node's byte payload (unused for directories).
    """

    path: str
    mode: int
    flags: int = 0
    content: ContentBuffer = field(default_factory=ContentBuffer)
    created_at: str = field(default_factory=_now_iso)
    modified_at: str = ""

    def __post_init__(self) -> None:
        if not self.modified_at:
            self.modified_at = self.created_at

    @property
    def name(self) -> str:
        return posixpath.basename(self.path) or SEPARATOR

    @property
    def is_dir(self) -> bool:
        return stat_mod.S_ISDIR(self.mode)

    @property
    def size(self) -> int:
        return 0 if self.is_dir else len(self.content)

    def touch(self) -> None:
        self.modified_at = _now_iso()


class PathStore:
    """Namespace of nodes keyed by canonical path.

    ``files`` maps every canonical path to its node. ``children`` maps a
    directory path to ``{name: node}`` for its direct entries. Creating a
    node creates its missing ancestors; directories can only be removed
    once empty.
    """

    def __init__(self) -> None:
        self.files: dict[str, Node] = {}
        self.children_index: dict[str, dict[str, Node]] = {}

    def __len__(self) -> int:
        return len(self.files)

    def has(self, path: str) -> bool:
        return clean(path) in self.files

    def get(self, path: str) -> Node | None:
        return self.files.get(clean(path))

    def must_get(self, path: str) -> Node:
        """Return the node at ``path``; absence is an internal error."""
        node = self.get(path)
        if node is None:
            raise RuntimeError(f"couldn't find {clean(path)!r}")
        return node

    def nodes(self) -> Iterator[Node]:
        return iter(list(self.files.values()))

    def children(self, path: str) -> list[Node]:
        """Direct children of a directory, in no particular order."""
        return list(self.children_index.get(clean(path), {}).values())

    def new(self, path: str, mode: int, flags: int = 0) -> Node | None:
        """Create a node at ``path`` along with any missing ancestors.

        Returns:
            The new node, or None if a directory already exists there.

        Raises:
            FileExistsError: If a non-directory exists at ``path`` or at
                one of its ancestors.
        """
        path = clean(path)
        existing = self.files.get(path)
        if existing is not None:
            if not existing.is_dir:
                raise FileExistsError(errno.EEXIST, "File already exists", path)
            return None

        if path != SEPARATOR:
            self._check_ancestors(path)

        node = Node(path=path, mode=mode, flags=flags)
        self.files[path] = node
        self._create_parent(node, mode)
        return node

    def rename(self, src: str, dst: str) -> None:
        """Move the node at ``src``, and everything beneath it, to ``dst``.

        Raises:
            FileNotFoundError: If nothing exists at ``src``.
            OSError: EINVAL if ``dst`` is inside ``src``; ENOTEMPTY if
                ``dst`` is a non-empty directory.
            NotADirectoryError: If ``src`` is a directory and ``dst`` a file.
            IsADirectoryError: If ``src`` is a file and ``dst`` a directory.
            FileExistsError: If an ancestor of ``dst`` is not a directory.
        """
        src = clean(src)
        dst = clean(dst)

        if src not in self.files:
            raise FileNotFoundError(errno.ENOENT, "No such file or directory", src)
        if src == dst:
            return
        if is_beneath(dst, src):
            raise OSError(errno.EINVAL, "Cannot move a directory into itself", dst)

        self._check_ancestors(dst)
        target = self.files.get(dst)
        if target is not None:
            source = self.files[src]
            if source.is_dir and not target.is_dir:
                raise NotADirectoryError(errno.ENOTDIR, "Not a directory", dst)
            if target.is_dir and not source.is_dir:
                raise IsADirectoryError(errno.EISDIR, "Is a directory", dst)
            if self.children_index.get(dst):
                raise OSError(errno.ENOTEMPTY, "Directory not empty", dst)
            self._detach(target)

        # Parents before children: a leaf is inserted into ``files`` ahead
        # of the ancestors synthesised for it.
        descendants = sorted(
            (p for p in self.files if is_beneath(p, src)),
            key=lambda p: p.count(SEPARATOR),
        )
        moves = [(src, dst)] + [(p, dst + p[len(src) :]) for p in descendants]

        logger.debug("rename %s -> %s (%d nodes)", src, dst, len(moves))
        for old, new in moves:
            self._move(old, new)

    def remove(self, path: str) -> None:
        """Remove a file or an empty directory.

        Raises:
            FileNotFoundError: If nothing exists at ``path``.
            OSError: ENOTEMPTY if ``path`` is a directory with entries.
        """
        path = clean(path)
        node = self.files.get(path)
        if node is None:
            raise FileNotFoundError(errno.ENOENT, "No such file or directory", path)

        if node.is_dir and self.children_index.get(path):
            raise OSError(errno.ENOTEMPTY, "Directory not empty", path)

        self._detach(node)
        logger.debug("removed %s", path)

    def _move(self, src: str, dst: str) -> None:
        node = self.files.pop(src)
        entries = self.children_index.pop(src, None)

        parent = self.children_index.get(posixpath.dirname(src))
        if parent is not None and parent.get(node.name) is node:
            del parent[node.name]

        node.path = dst
        self.files[dst] = node
        if entries is not None:
            self.children_index[dst] = entries
        self._create_parent(node, RENAME_PARENT_MODE)

    def _create_parent(self, node: Node, mode: int) -> None:
        """Ensure the parent of ``node`` exists and lists it."""
        if node.name == SEPARATOR:
            return

        base = posixpath.dirname(node.path)
        if self.new(base, stat_mod.S_IMODE(mode) | stat_mod.S_IFDIR) is not None:
            logger.debug("synthesised directory %s", base)

        self.children_index.setdefault(base, {})[node.name] = node

    def _check_ancestors(self, path: str) -> None:
        parent = posixpath.dirname(path)
        while True:
            node = self.files.get(parent)
            if node is not None:
                if not node.is_dir:
                    raise FileExistsError(errno.EEXIST, "File already exists", parent)
                return
            if parent == SEPARATOR:
                return
            parent = posixpath.dirname(parent)

    def _detach(self, node: Node) -> None:
        del self.files[node.path]
        self.children_index.pop(node.path, None)
        parent = self.children_index.get(posixpath.dirname(node.path))
        if parent is not None:
            parent.pop(node.name, None)
