"""Listing providers behind the VFS router"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List

from .client import ChrisClient, ChrisClientError
from .models import Entry, EntryKind, parse_timestamp
from .paths import basename, is_within, parent
from .result import ErrorKind

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """A listing could not be produced"""

    def __init__(self, message: str, kind: ErrorKind = ErrorKind.PROVIDER_FAILURE):
        super().__init__(message)
        self.kind = kind


class ListingProvider(ABC):
    """Something that can list the members of a canonical path"""

    @abstractmethod
    def list(self, path: str) -> List[Entry]:
        """Return the entries directly under path.

        Raises:
            ProviderError: path is missing or could not be listed
        """

    def make_folder(self, path: str) -> None:
        """Create a folder at path.

        Raises:
            ProviderError: the folder could not be created
        """
        raise ProviderError(f"{path}: Read-only file system")


class RemoteTreeProvider(ListingProvider):
    """Lists folders of the remote filebrowser"""

    def __init__(self, client: ChrisClient):
        self.client = client

    def list(self, path: str) -> List[Entry]:
        try:
            folder = self.client.folder_get(path)
            if folder is None:
                raise ProviderError(f"{path}: No such file or directory", ErrorKind.NOT_FOUND)

            entries = [Entry.from_remote(EntryKind.DIRECTORY, r) for r in self.client.folder_children(folder)]
            entries += [Entry.from_remote(EntryKind.FILE, r) for r in self.client.folder_files(folder)]
            entries += [Entry.from_remote(EntryKind.LINK, r) for r in self.client.folder_links(folder)]
        except ChrisClientError as e:
            if e.status_code == 404:
                raise ProviderError(f"{path}: No such file or directory", ErrorKind.NOT_FOUND) from e
            raise ProviderError(f"{path}: {e}") from e
        return entries

    def make_folder(self, path: str) -> None:
        try:
            self.client.folder_create(path)
        except ChrisClientError as e:
            if e.status_code == 400:
                raise ProviderError(f"{path}: {e}", ErrorKind.INVALID_PATH) from e
            raise ProviderError(f"{path}: {e}") from e


class OverlayProvider(ListingProvider):
    """A synthetic directory of executables, mounted at a fixed path

    The catalog callable returns plugin records (``name``, ``version``,
    ``creation_date``); it is only called when the router has nothing cached.
    """

    def __init__(self, mount: str, catalog: Callable[[], List[Dict[str, Any]]]):
        self.mount = mount
        self.catalog = catalog
        self.mounted_at = datetime.now(timezone.utc)

    def mount_entry(self) -> Entry:
        """Entry that represents the mount point inside its parent"""
        return Entry(
            name=basename(self.mount),
            kind=EntryKind.OVERLAY_DIRECTORY,
            owner="root",
            modified=self.mounted_at,
        )

    def _executables(self) -> List[Entry]:
        try:
            records = self.catalog()
        except ChrisClientError as e:
            raise ProviderError(f"Failed to list plugins: {e}") from e
        return [
            Entry(
                name=record.get("name", ""),
                kind=EntryKind.EXECUTABLE,
                owner="system",
                modified=parse_timestamp(record.get("creation_date")),
                version=record.get("version") or "",
            )
            for record in records
        ]

    def list(self, path: str) -> List[Entry]:
        if path == self.mount:
            return self._executables()

        if not is_within(path, self.mount) or parent(path) != self.mount:
            raise ProviderError(f"{path}: No such file or directory", ErrorKind.NOT_FOUND)

        name = basename(path)
        if any(entry.name == name for entry in self._executables()):
            raise ProviderError(f"{path}: Not a directory")
        raise ProviderError(f"{path}: No such file or directory", ErrorKind.NOT_FOUND)
