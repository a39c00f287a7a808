"""
Listing driver.

Consumes traversal steps, filters each entry by type, renders the kept
ones with a FormatSpec and writes one line per entry to the output, in
the order the traversal delivered them.

A step that failed is recorded in the ListingStats and skipped; the
listing carries on with the next step. Exceptions raised by the traversal
itself (it could not start) or by the output stream are fatal and
propagate to the caller.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TextIO

from .entries import Directory, Entry, File
from .list_format import FormatSpec, RenderConfig, describe_entry, render_line
from .walk import UNLIMITED_DEPTH, TraversalSource, config_max_depth

logger = logging.getLogger(__name__)


class FilterMode(Enum):
    ALL = "all"
    FILES_ONLY = "files-only"
    DIRS_ONLY = "dirs-only"


def filter_mode_from_flags(files_only: bool, dirs_only: bool) -> FilterMode:
    """
    Map the --files-only/--dirs-only flags to a FilterMode.

    Raises:
        ValueError: If both flags are set.
    """
    if files_only and dirs_only:
        raise ValueError("files_only and dirs_only are mutually exclusive")
    if files_only:
        return FilterMode.FILES_ONLY
    if dirs_only:
        return FilterMode.DIRS_ONLY
    return FilterMode.ALL


def keep(entry: Entry, mode: FilterMode) -> bool:
    """Whether an entry belongs in a listing with the given filter mode."""
    if mode is FilterMode.FILES_ONLY:
        return isinstance(entry, File)
    if mode is FilterMode.DIRS_ONLY:
        return isinstance(entry, Directory)
    return True


@dataclass
class ListingStats:
    """Counts for one listing, and the sink for per-directory errors."""

    listed: int = 0
    filtered: int = 0
    errors: int = 0

    def record_error(self, path: str, error: Exception) -> None:
        self.errors += 1
        logger.error("%s: error listing: %s", path or "/", error)


def lsf(
    source: TraversalSource,
    spec: FormatSpec,
    config: RenderConfig,
    filter_mode: FilterMode,
    recursive: bool,
    out: TextIO,
    stats: ListingStats | None = None,
    max_depth: int = UNLIMITED_DEPTH,
) -> ListingStats:
    """
    List every entry under the source root in the given format.

    Args:
        source: Traversal to consume, walked from its root.
        spec: Compiled format.
        config: Separator, directory slash and hash kind.
        filter_mode: Which entry types to list.
        recursive: Walk subdirectories, otherwise a single level.
        out: Text stream the lines are written to.
        stats: Error sink and counters, a fresh one if None.
        max_depth: Depth limit when recursive, -1 for unlimited.

    Returns:
        The ListingStats, with errors counting directories not listed.

    Raises:
        Exception: Whatever starting the traversal or writing output raised.
    """
    if stats is None:
        stats = ListingStats()

    depth = config_max_depth(recursive, max_depth)
    for step in source.walk("", depth):
        if step.error is not None:
            stats.record_error(step.path, step.error)
            continue

        for entry in step.entries:
            if not keep(entry, filter_mode):
                stats.filtered += 1
                continue
            logger.debug("Listing %s", describe_entry(entry))
            out.write(render_line(entry, spec, config) + "\n")
            stats.listed += 1

    return stats
