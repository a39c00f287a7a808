"""
Remote client protocol definition.

Defines the read-only interface that every backend (local, FTP, SFTP,
Google Drive) implements, allowing the walker to list any of them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol, runtime_checkable

from .hashing import HashKind


@dataclass
class FileStats:
    """Standardized file statistics independent of backend"""

    name: str
    size: int
    mtime: datetime | None
    is_dir: bool
    # Checksums returned by the server along with the listing
    hashes: dict[HashKind, str] = field(default_factory=dict)


def join_path(base: str, name: str) -> str:
    """Join a directory path and a child name with a forward slash. Names are kept verbatim."""
    base = base.rstrip("/")
    if not name:
        return base or "/"
    return f"{base}/{name}"


@runtime_checkable
class RemoteClient(Protocol):
    """Protocol defining the remote filesystem client interface.

    Any class implementing these methods can be walked by Walker,
    regardless of the underlying transport.
    """

    supported_hashes: frozenset[HashKind]

    def connect(self) -> None:
        """Establish connection to the remote server."""
        ...

    def disconnect(self) -> None:
        """Close connection to the remote server."""
        ...

    def list_dir(self, path: str) -> list[FileStats]:
        """List contents of a directory.

        Args:
            path: Absolute remote path.

        Returns:
            List of FileStats objects for directory entries.

        Raises:
            FileNotFoundError: If path does not exist.
            PermissionError: If access denied.
        """
        ...

    def get_file_info(self, path: str) -> FileStats:
        """Get metadata for a single file or directory.

        Args:
            path: Absolute remote path.

        Returns:
            FileStats object.

        Raises:
            FileNotFoundError: If path does not exist.
        """
        ...

    def hash_file(self, path: str, kind: HashKind) -> str:
        """Compute or fetch the hash of a file.

        Args:
            path: Absolute remote path.
            kind: Hash kind, must be in supported_hashes.

        Returns:
            Lowercase hex digest, or "" if the object has no such hash.

        Raises:
            OSError: If reading the hash failed.
        """
        ...
