"""Recursive walks over the VFS, used by tree and du"""

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional, Set

from . import paths
from .models import Entry, EntryKind
from .result import ChellError, Err, Ok, Result

if TYPE_CHECKING:
    from .vfs import VFS

logger = logging.getLogger(__name__)


@dataclass
class ScanRecord:
    """One entry found below the scan root"""

    path: str
    entry: Entry
    # 1 for direct children of the root
    depth: int


def scan(vfs: "VFS", root: str, follow: bool = False, max_depth: Optional[int] = None) -> Result[List[ScanRecord]]:
    """
    Walk everything below a canonical path, depth first

    Listings go through the router, so they are served from the cache when
    warm. Paths in the records hang off root as given; the walk itself lists
    the dereferenced directories.

    Args:
        vfs: Router to list through
        root: Canonical path to start from
        follow: Descend into links as well as directories
        max_depth: Stop descending below this depth (None walks everything)

    Returns:
        Result holding the records in pre-order. The first listing that
        fails ends the walk; its error is already on the error log.
    """
    records: List[ScanRecord] = []
    start = vfs.links.resolve_links(root)
    # physical directories already listed, so link cycles end
    visited: Set[str] = {start}

    def walk(logical: str, physical: str, depth: int) -> Optional[ChellError]:
        result = vfs.list(physical)
        if not result.ok:
            return result.error
        for entry in result.value:
            record = ScanRecord(paths.join(logical, entry.name), entry, depth)
            records.append(record)
            if max_depth is not None and depth >= max_depth:
                continue
            if entry.kind.is_container:
                target = paths.join(physical, entry.name)
            elif follow and entry.is_link and entry.link_target:
                target = vfs.links.resolve_links(paths.join(physical, entry.link_target))
            else:
                continue
            if target in visited:
                logger.debug(f"scan: {record.path} already visited as {target}")
                continue
            visited.add(target)
            error = walk(record.path, target, depth + 1)
            if error is not None:
                return error
        return None

    error = walk(root, start, 1)
    if error is not None:
        return Err(error)
    return Ok(records)


def total_size(records: List[ScanRecord]) -> int:
    """Sum of the file sizes in a scan"""
    return sum(r.entry.size for r in records if r.entry.kind is EntryKind.FILE)
