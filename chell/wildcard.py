"""Glob expansion against remote directory listings"""

import fnmatch
import logging
import re
from typing import TYPE_CHECKING, List

from . import paths
from .models import AddressingMode
from .paths import PathContext
from .result import Ok, Result

if TYPE_CHECKING:
    from .vfs import VFS

logger = logging.getLogger(__name__)

_GLOB_CHARS = re.compile(r"[*?\[\]]")


def has_wildcard(token: str) -> bool:
    """Check whether token contains any glob metacharacter"""
    return bool(_GLOB_CHARS.search(token))


def matches(name: str, pattern: str) -> bool:
    """Shell-style match; leading dots must be matched explicitly"""
    if name.startswith(".") and not pattern.startswith("."):
        return False
    return fnmatch.fnmatchcase(name, pattern)


class WildcardExpander:
    """Expands glob tokens using cache-first VFS listings"""

    def __init__(self, vfs: "VFS"):
        self.vfs = vfs

    def expand(self, token: str, ctx: PathContext) -> Result[List[str]]:
        """
        Expand one glob token

        Args:
            token: Argument as typed, e.g. "*.txt" or "data/run?.log"
            ctx: Path context the token is relative to

        Returns:
            Ok([token]) if there is nothing to expand, Ok(matches) otherwise
            (possibly empty), or the failed listing Result
        """
        if not has_wildcard(token):
            return Ok([token])

        search_dir = ctx.cwd
        pattern = token
        if "/" in token:
            dir_part, pattern = token.rsplit("/", 1)
            pattern = pattern or "*"
            if has_wildcard(dir_part):
                logger.warning(f"wildcards in directory part are not supported: {token}")
                return Ok([])
            search_dir = paths.resolve(dir_part or paths.ROOT, ctx)

        # links in the search directory are followed in either mode
        result = self.vfs.list(search_dir, mode=AddressingMode.PHYSICAL)
        if not result.ok:
            return result

        found = []
        for entry in result.value:
            if not matches(entry.name, pattern):
                continue
            if search_dir != ctx.cwd:
                found.append(paths.join(search_dir, entry.name))
            else:
                found.append(entry.name)
        return Ok(found)

    def expand_all(self, tokens: List[str], ctx: PathContext) -> Result[List[str]]:
        """
        Expand every token in order

        A token that matches nothing is kept literally so the command can
        report it as missing; the first listing failure fails the batch.
        """
        expanded: List[str] = []
        for token in tokens:
            result = self.expand(token, ctx)
            if not result.ok:
                return result
            if result.value:
                expanded.extend(result.value)
            else:
                expanded.append(token)
        return Ok(expanded)
