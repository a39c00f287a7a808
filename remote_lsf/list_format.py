"""
Formatted listing lines.

A format string is a sequence of single-character field codes:

    p - path
    t - modification time
    s - size
    h - hash

compile_format() turns the string into a FormatSpec, and render_line()
produces one line for an entry by extracting each field in order and
joining the values with the separator. Separators inside values are not
escaped, so putting the path last is the safe choice.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass

from .entries import Directory, Entry, File, HashUnsupportedError
from .hashing import HashKind

logger = logging.getLogger(__name__)

FIELD_PATH = "p"
FIELD_MOD_TIME = "t"
FIELD_SIZE = "s"
FIELD_HASH = "h"

TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

HASH_ERROR = "ERROR"
HASH_UNSUPPORTED = "UNSUPPORTED"


class FormatError(ValueError):
    """Raised when a format string contains an unknown field code."""

    def __init__(self, char: str):
        self.char = char
        super().__init__(f"Unknown format character {char!r}")


@dataclass(frozen=True)
class RenderConfig:
    separator: str = ";"
    dir_slash: bool = True
    hash_kind: HashKind = HashKind.MD5


def extract_path(entry: Entry, config: RenderConfig) -> str:
    if isinstance(entry, Directory) and config.dir_slash:
        return entry.path + "/"
    return entry.path


def extract_mod_time(entry: Entry, config: RenderConfig) -> str:
    mod_time = entry.mod_time
    if mod_time is None:
        return ""
    if mod_time.tzinfo is not None:
        mod_time = mod_time.astimezone()
    return mod_time.strftime(TIME_FORMAT)


def extract_size(entry: Entry, config: RenderConfig) -> str:
    if isinstance(entry, Directory):
        return "0"
    return str(entry.size)


def extract_hash(entry: Entry, config: RenderConfig) -> str:
    if isinstance(entry, Directory):
        return ""

    try:
        return entry.hash(config.hash_kind)
    except HashUnsupportedError:
        return HASH_UNSUPPORTED
    except Exception as e:
        logger.debug("%s: failed to read hash: %s", entry.path, e)
        return HASH_ERROR


Extractor = Callable[[Entry, RenderConfig], str]

EXTRACTORS: dict[str, Extractor] = {
    FIELD_PATH: extract_path,
    FIELD_MOD_TIME: extract_mod_time,
    FIELD_SIZE: extract_size,
    FIELD_HASH: extract_hash,
}


def extract(code: str, entry: Entry, config: RenderConfig) -> str:
    """Extract a single field from an entry."""
    try:
        extractor = EXTRACTORS[code]
    except KeyError:
        raise FormatError(code) from None
    return extractor(entry, config)


@dataclass(frozen=True)
class FormatSpec:
    """Compiled format: the field codes in output column order."""

    codes: tuple[str, ...]

    def __post_init__(self):
        if not self.codes:
            raise ValueError("Format must contain at least one field")
        for code in self.codes:
            if code not in EXTRACTORS:
                raise FormatError(code)

    def __len__(self) -> int:
        return len(self.codes)

    def __str__(self) -> str:
        return "".join(self.codes)


def compile_format(text: str) -> FormatSpec:
    """
    Compile a format string into a FormatSpec.

    Duplicate codes are allowed and order is preserved.

    Raises:
        FormatError: On the first character that isn't a field code.
        ValueError: If the format string is empty.
    """
    codes = []
    for char in text:
        if char not in EXTRACTORS:
            raise FormatError(char)
        codes.append(char)
    return FormatSpec(tuple(codes))


def render_line(entry: Entry, spec: FormatSpec, config: RenderConfig) -> str:
    """Render one entry as its fields joined by the separator."""
    return config.separator.join(extract(code, entry, config) for code in spec.codes)


def describe_entry(entry: Entry) -> str:
    """Short human description used in debug logs."""
    kind = "dir" if isinstance(entry, Directory) else "file"
    if isinstance(entry, File):
        return f"{kind} {entry.path} ({entry.size} bytes)"
    return f"{kind} {entry.path}"
