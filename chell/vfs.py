"""Virtual filesystem router

Decides which provider serves a canonical path (an overlay mount such as the
executable catalog, or the remote tree), consults the listing cache first,
and assembles one uniformly sorted entry list for callers.
"""

import logging
from typing import Callable, Dict, List, Optional

from . import paths
from .cache import FreshnessCache
from .links import LinkResolver
from .models import AddressingMode, Entry, EntryKind, ListOptions, SortField
from .paths import ROOT, PathContext
from .providers import ListingProvider, OverlayProvider, ProviderError
from .result import Err, ErrorKind, ErrorStack, Ok, Result

logger = logging.getLogger(__name__)

SORT_KEYS: Dict[SortField, Callable[[Entry], tuple]] = {
    SortField.NAME: lambda e: (e.name.casefold(), e.name),
    SortField.SIZE: lambda e: (e.size, e.name),
    SortField.DATE: lambda e: (e.modified, e.name),
    SortField.OWNER: lambda e: (e.owner.casefold(), e.owner, e.name),
}


def sort_entries(entries: List[Entry], field: SortField = SortField.NAME, reverse: bool = False) -> List[Entry]:
    return sorted(entries, key=SORT_KEYS[field], reverse=reverse)


class VFS:
    """Routes listings to the overlay or remote provider"""

    def __init__(
        self,
        remote: ListingProvider,
        overlays: Dict[str, OverlayProvider],
        cache: FreshnessCache,
        errors: ErrorStack,
    ):
        """
        Args:
            remote: Provider for everything that isn't an overlay mount
            overlays: Routing table, mount point -> overlay provider
            cache: Listing cache consulted before any provider call
            errors: Error log that failures are pushed onto
        """
        self.remote = remote
        self.overlays = dict(overlays)
        self.cache = cache
        self.errors = errors
        self.links = LinkResolver(self)

    def provider_for(self, path: str) -> ListingProvider:
        for mount, provider in self.overlays.items():
            if paths.is_within(path, mount):
                return provider
        return self.remote

    def is_overlay_mount(self, path: str) -> bool:
        return path in self.overlays

    def resolve(self, token: str, ctx: PathContext) -> str:
        """Resolve a token, following links when ctx is in physical mode"""
        path = paths.resolve(token, ctx)
        if ctx.mode is AddressingMode.PHYSICAL:
            path = self.links.resolve_links(path)
        return path

    def list(
        self,
        path: str,
        options: Optional[ListOptions] = None,
        mode: AddressingMode = AddressingMode.LOGICAL,
    ) -> Result[List[Entry]]:
        """
        List a canonical path

        Args:
            path: Canonical path to list
            options: Sort field, reverse flag, and self_only to describe the
                node itself instead of its children
            mode: In physical mode links in path are followed first

        Returns:
            Result holding the sorted entries; failures are also pushed onto
            the error log
        """
        options = options or ListOptions()
        if mode is AddressingMode.PHYSICAL:
            path = self.links.resolve_links(path)

        if options.self_only:
            return self._describe(path, options)

        result = self.fetch(path)
        if not result.ok:
            return result
        return Ok(self._compose(path, result.value, options))

    def fetch(self, path: str) -> Result[List[Entry]]:
        """Provider entries for path, served from the cache when present"""
        cached = self.cache.get(path)
        if cached is not None:
            logger.debug(f"cache hit: {path}")
            return Ok(list(cached.entries))
        logger.debug(f"cache miss: {path}")
        return self._fetch_from_provider(path)

    def refresh(self, path: str) -> Result[List[Entry]]:
        """Re-fetch path from its provider and replace the cached listing"""
        return self._fetch_from_provider(path)

    def _fetch_from_provider(self, path: str) -> Result[List[Entry]]:
        provider = self.provider_for(path)
        logger.debug(f"listing {path} via {type(provider).__name__}")
        try:
            entries = provider.list(path)
        except ProviderError as e:
            logger.warning(f"listing {path} failed: {e}")
            return Err(self.errors.push(e.kind, str(e)))
        except Exception as e:
            logger.warning(f"listing {path} failed: {e}", exc_info=True)
            return Err(self.errors.push(ErrorKind.PROVIDER_FAILURE, f"Failed to list {path}: {e}"))

        self.cache.set(path, entries)
        return Ok(list(entries))

    def make_folder(self, path: str) -> Result[str]:
        """
        Create a folder through the provider that owns path

        On success the parent's cached listing is dropped. An unexplained
        provider failure leaves the outcome unknown and marks the parent
        listing dirty instead.
        """
        parent = paths.parent(path)
        provider = self.provider_for(path)
        logger.debug(f"creating {path} via {type(provider).__name__}")
        try:
            provider.make_folder(path)
        except ProviderError as e:
            logger.warning(f"creating {path} failed: {e}")
            if e.kind is ErrorKind.PROVIDER_FAILURE:
                self.cache.mark_dirty(parent)
            return Err(self.errors.push(e.kind, str(e)))
        except Exception as e:
            logger.warning(f"creating {path} failed: {e}", exc_info=True)
            self.cache.mark_dirty(parent)
            return Err(self.errors.push(ErrorKind.PROVIDER_FAILURE, f"Failed to create {path}: {e}"))

        self.cache.invalidate(parent)
        return Ok(path)

    def _compose(self, path: str, entries: List[Entry], options: ListOptions) -> List[Entry]:
        """Inject overlay mount entries under their parent, then sort"""
        composed = list(entries)
        for mount, provider in self.overlays.items():
            if mount == ROOT or paths.parent(mount) != path:
                continue
            mount_entry = provider.mount_entry()
            if not any(e.name == mount_entry.name and e.kind is EntryKind.OVERLAY_DIRECTORY for e in composed):
                composed.append(mount_entry)
        return sort_entries(composed, options.sort, options.reverse)

    def _describe(self, path: str, options: ListOptions) -> Result[List[Entry]]:
        """Entry for path itself, looked up in its parent's listing"""
        if path == ROOT:
            return Ok([Entry(name=ROOT, kind=EntryKind.DIRECTORY, owner="root")])

        parent = paths.parent(path)
        result = self.fetch(parent)
        if not result.ok:
            return result

        name = paths.basename(path)
        for entry in self._compose(parent, result.value, options):
            if entry.name == name:
                return Ok([entry])
        return Err(self.errors.push(ErrorKind.NOT_FOUND, f"{path}: No such file or directory"))
