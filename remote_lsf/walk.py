"""
Directory traversal over a RemoteClient.

Walker lists one directory per step, breadth first, and hands each step
to the caller as soon as it is available. A directory that can't be
listed produces an error step instead of stopping the walk.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Protocol

from .entries import Directory, Entry, File
from .hashing import HashKind
from .remote_client import FileStats, RemoteClient, join_path

logger = logging.getLogger(__name__)

UNLIMITED_DEPTH = -1


@dataclass
class WalkStep:
    """One directory's worth of entries, or the error listing it."""

    path: str
    entries: list[Entry] | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class TraversalSource(Protocol):
    def walk(self, path: str, max_depth: int) -> Iterator[WalkStep]: ...


def config_max_depth(recursive: bool, max_depth: int = UNLIMITED_DEPTH) -> int:
    """Depth to walk: a single level unless recursing."""
    if not recursive:
        return 1
    return max_depth


class Walker:
    """
    Walks a RemoteClient starting at a root directory.

    Entry paths are relative to the root and use forward slashes.
    """

    def __init__(self, client: RemoteClient, root: str = "/"):
        self.client = client
        self.root = root or "/"

    def _remote_path(self, rel_path: str) -> str:
        return join_path(self.root, rel_path)

    def _make_entry(self, rel_path: str, stats: FileStats) -> Entry:
        if stats.is_dir:
            return Directory(path=rel_path, mod_time=stats.mtime)

        remote_path = self._remote_path(rel_path)

        def _hasher(kind: HashKind) -> str:
            return self.client.hash_file(remote_path, kind)

        return File(
            path=rel_path,
            size=stats.size,
            mod_time=stats.mtime,
            hashes=dict(stats.hashes),
            supported_hashes=frozenset(self.client.supported_hashes),
            hasher=_hasher,
        )

    def check_root(self) -> None:
        """
        Make sure the root exists and is a directory.

        Raises:
            FileNotFoundError: If the root doesn't exist.
            NotADirectoryError: If the root is a file.
        """
        info = self.client.get_file_info(self.root)
        if not info.is_dir:
            raise NotADirectoryError(f"Not a directory: {self.root}")

    def walk(self, path: str = "", max_depth: int = UNLIMITED_DEPTH) -> Iterator[WalkStep]:
        """
        Yield one WalkStep per directory visited.

        Args:
            path: Start directory relative to the root, "" for the root.
            max_depth: 1 lists a single level, -1 is unlimited.

        Raises:
            Any error from check_root, before the first step.
        """
        self.check_root()

        queue: deque[tuple[str, int]] = deque([(path, 1)])
        while queue:
            rel_dir, depth = queue.popleft()
            try:
                listing = self.client.list_dir(self._remote_path(rel_dir))
            except OSError as e:
                # Clients report every listing failure as an OSError subclass
                logger.debug("Listing %s failed: %s", rel_dir or "/", e)
                yield WalkStep(path=rel_dir, error=e)
                continue

            entries = []
            for stats in sorted(listing, key=lambda s: s.name):
                rel_path = join_path(rel_dir, stats.name) if rel_dir else stats.name
                entry = self._make_entry(rel_path, stats)
                entries.append(entry)
                if isinstance(entry, Directory) and (
                    max_depth == UNLIMITED_DEPTH or depth < max_depth
                ):
                    queue.append((rel_path, depth + 1))

            logger.debug("Walked %s: %d entries", rel_dir or "/", len(entries))
            yield WalkStep(path=rel_dir, entries=entries)
