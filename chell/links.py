"""Link dereferencing for physical addressing"""

import logging
from typing import TYPE_CHECKING, List, Optional

from . import paths
from .models import Entry
from .paths import ROOT
from .result import Err, ErrorKind, Ok, Result

if TYPE_CHECKING:
    from .vfs import VFS

logger = logging.getLogger(__name__)


def _find(entries: List[Entry], name: str) -> Optional[Entry]:
    for entry in entries:
        if entry.name == name:
            return entry
    return None


class LinkResolver:
    """Walks a path one component at a time, substituting link targets

    Each component is consumed once, so the walk always terminates; a link
    pointing at one of its own ancestors gives a wrong path, not a hang.
    """

    def __init__(self, vfs: "VFS"):
        self.vfs = vfs

    def _follow(self, parent: str, component: str, entries: List[Entry]) -> str:
        entry = _find(entries, component)
        if entry is not None and entry.is_link and entry.link_target:
            # absolute targets replace the path, relative ones hang off the parent
            return paths.join(parent, entry.link_target)
        return paths.join(parent, component)

    def resolve_links(self, path: str) -> str:
        """
        Fully dereference a canonical path, best effort

        A parent that can't be listed is skipped and the walk carries on
        with the path built so far; that listing's error is taken back off
        the error log.
        """
        current = ROOT
        for component in [c for c in path.split("/") if c]:
            parent = current
            pushed = len(self.vfs.errors)
            result = self.vfs.list(parent)
            if not result.ok:
                while len(self.vfs.errors) > pushed:
                    self.vfs.errors.pop()
                logger.debug(f"resolve_links: cannot list {parent}, keeping {component} as-is")
                current = paths.join(parent, component)
                continue
            current = self._follow(parent, component, result.value)
        return current

    def to_physical(self, path: str) -> Result[str]:
        """
        Strictly translate a logical path to its physical address

        Unlike resolve_links, a parent that can't be listed fails the whole
        translation: a missing parent keeps its NotFound error, anything else
        becomes InvalidPath.
        """
        current = ROOT
        for component in [c for c in path.split("/") if c]:
            parent = current
            pushed = len(self.vfs.errors)
            result = self.vfs.list(parent)
            if not result.ok:
                if result.error is not None and result.error.kind is ErrorKind.NOT_FOUND:
                    return result
                while len(self.vfs.errors) > pushed:
                    self.vfs.errors.pop()
                return Err(self.vfs.errors.push(ErrorKind.INVALID_PATH, f"{path}: Invalid path"))

            entry = _find(result.value, component)
            if entry is not None and entry.is_link and not entry.link_target:
                return Err(self.vfs.errors.push(ErrorKind.INVALID_PATH, f"{path}: Invalid path"))
            current = self._follow(parent, component, result.value)
        return Ok(current)
