"""
Local filesystem client.

Implements the RemoteClient interface over os.scandir so a plain
directory can be listed the same way as a remote one.
"""

import logging
import os
from datetime import datetime

from .cache import HashCache
from .hashing import HashKind, hash_local_file
from .remote_client import FileStats

logger = logging.getLogger(__name__)


class LocalClient:
    """Read-only RemoteClient for directories on the local disk."""

    supported_hashes = frozenset(HashKind)

    def __init__(self, hash_cache: HashCache | None = None):
        self._hash_cache = hash_cache or HashCache()

    def connect(self) -> None:
        """Nothing to connect to."""

    def disconnect(self) -> None:
        self._hash_cache.clear()

    def _stats_from_stat(self, name: str, st: os.stat_result, is_dir: bool) -> FileStats:
        return FileStats(
            name=name,
            size=0 if is_dir else st.st_size,
            mtime=datetime.fromtimestamp(st.st_mtime),
            is_dir=is_dir,
        )

    def list_dir(self, path: str) -> list[FileStats]:
        """List contents of a directory."""
        logger.debug("Listing directory: %s", path)
        results = []
        with os.scandir(path) as it:
            for entry in it:
                try:
                    is_dir = entry.is_dir()
                    st = entry.stat()
                except OSError as e:
                    # Broken symlinks and races with deletion
                    logger.warning("Skipping %s: %s", entry.path, e)
                    continue
                if is_dir and entry.is_symlink():
                    # A link back up the tree would make a recursive walk endless
                    logger.warning("Skipping symlinked directory %s", entry.path)
                    continue
                results.append(self._stats_from_stat(entry.name, st, is_dir))

        logger.debug("Listed %d entries in %s", len(results), path)
        return results

    def get_file_info(self, path: str) -> FileStats:
        """Get metadata for a single file or directory."""
        st = os.stat(path)
        name = os.path.basename(os.path.normpath(path))
        return self._stats_from_stat(name, st, os.path.isdir(path))

    def hash_file(self, path: str, kind: HashKind) -> str:
        """Hash a local file by reading it."""
        return self._hash_cache.get_or_compute(path, kind, lambda: hash_local_file(kind, path))
