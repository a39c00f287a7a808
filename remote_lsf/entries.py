"""
Directory entries produced by a traversal.

An entry is either a File or a Directory. The set is closed: code that
needs to tell them apart checks isinstance against exactly these two.
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime

from .hashing import HashKind


class HashUnsupportedError(Exception):
    """The backend cannot produce this hash kind for the object."""

    def __init__(self, kind: HashKind, path: str = ""):
        self.kind = kind
        self.path = path
        super().__init__(f"hash type {kind} not supported for {path or 'object'}")


@dataclass(frozen=True)
class File:
    path: str
    size: int = 0
    mod_time: datetime | None = None
    # Checksums the backend returned with the listing
    hashes: Mapping[HashKind, str] = field(default_factory=dict, compare=False, repr=False)
    supported_hashes: frozenset[HashKind] = field(default_factory=frozenset, compare=False)
    # Lazy hash computation, only called when a hash field is rendered
    hasher: Callable[[HashKind], str] | None = field(default=None, compare=False, repr=False)

    def hash(self, kind: HashKind) -> str:
        """
        Return the hex hash of the given kind.

        An empty string means the hash is not available for this object.

        Raises:
            HashUnsupportedError: If the backend doesn't support the kind.
            Exception: Whatever the hasher raised if computing it failed.
        """
        if kind not in self.supported_hashes:
            raise HashUnsupportedError(kind, self.path)
        if kind in self.hashes:
            return self.hashes[kind]
        if self.hasher is None:
            return ""
        return self.hasher(kind)


@dataclass(frozen=True)
class Directory:
    path: str
    mod_time: datetime | None = None
    size: int = 0


Entry = File | Directory
