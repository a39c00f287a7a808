"""
Hash kinds understood by the `h` format field and helpers to compute them.

Backends that cannot get a checksum from the server compute it locally
by streaming the object's content through one of these hashers.
"""

import hashlib
from collections.abc import Iterable
from enum import Enum
from pathlib import Path

# Dropbox content hash works on 4 MiB blocks
DROPBOX_BLOCK_SIZE = 4 * 1024 * 1024

READ_CHUNK_SIZE = 1024 * 1024


class HashKind(Enum):
    MD5 = "MD5"
    SHA1 = "SHA-1"
    SHA256 = "SHA-256"
    DROPBOX = "DropboxHash"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, name: str) -> "HashKind":
        """
        Look up a hash kind by its display name, case-insensitively.

        Raises:
            ValueError: If the name is not a known hash kind.
        """
        wanted = name.strip().lower()
        for kind in cls:
            if kind.value.lower() == wanted or kind.name.lower() == wanted:
                return kind
        choices = "|".join(kind.value for kind in cls)
        raise ValueError(f"Unknown hash type '{name}' - must be one of {choices}")


class DropboxContentHasher:
    """
    Dropbox content hash.

    SHA-256 of the concatenated SHA-256 digests of each 4 MiB block.
    Exposes the same update/hexdigest API as hashlib objects.
    """

    def __init__(self):
        self._overall = hashlib.sha256()
        self._block = hashlib.sha256()
        self._block_pos = 0

    def update(self, data: bytes) -> None:
        view = memoryview(data)
        while view:
            if self._block_pos == DROPBOX_BLOCK_SIZE:
                self._overall.update(self._block.digest())
                self._block = hashlib.sha256()
                self._block_pos = 0

            room = DROPBOX_BLOCK_SIZE - self._block_pos
            part = view[:room]
            self._block.update(part)
            self._block_pos += len(part)
            view = view[room:]

    def hexdigest(self) -> str:
        overall = self._overall.copy()
        if self._block_pos > 0:
            overall.update(self._block.digest())
        return overall.hexdigest()


def new_hasher(kind: HashKind):
    """Return a fresh hashlib-style object for the given kind."""
    if kind is HashKind.MD5:
        return hashlib.md5()
    if kind is HashKind.SHA1:
        return hashlib.sha1()
    if kind is HashKind.SHA256:
        return hashlib.sha256()
    if kind is HashKind.DROPBOX:
        return DropboxContentHasher()
    raise ValueError(f"Unsupported hash kind: {kind}")


def hash_chunks(kind: HashKind, chunks: Iterable[bytes]) -> str:
    """Hash a stream of byte chunks and return the hex digest."""
    hasher = new_hasher(kind)
    for chunk in chunks:
        hasher.update(chunk)
    return hasher.hexdigest()


def hash_local_file(kind: HashKind, path: str | Path) -> str:
    """Hash a file on the local filesystem without loading it whole."""
    with open(path, "rb") as f:
        return hash_chunks(kind, iter(lambda: f.read(READ_CHUNK_SIZE), b""))
