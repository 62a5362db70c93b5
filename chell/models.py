"""Data types shared by the path/VFS core"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

LINK_SUFFIX = ".chrislink"


class EntryKind(Enum):
    FILE = "file"
    DIRECTORY = "directory"
    LINK = "link"
    OVERLAY_DIRECTORY = "overlay-directory"
    EXECUTABLE = "executable"

    @property
    def letter(self) -> str:
        """Single-letter type column used by long listings"""
        return _KIND_LETTERS[self]

    @property
    def is_container(self) -> bool:
        return self in (EntryKind.DIRECTORY, EntryKind.OVERLAY_DIRECTORY)


_KIND_LETTERS = {
    EntryKind.FILE: "f",
    EntryKind.DIRECTORY: "d",
    EntryKind.LINK: "l",
    EntryKind.OVERLAY_DIRECTORY: "d",
    EntryKind.EXECUTABLE: "p",
}


class AddressingMode(Enum):
    """How navigation treats links

    logical keeps the path the user typed; physical stores the fully
    dereferenced path.
    """

    LOGICAL = "logical"
    PHYSICAL = "physical"


class SortField(Enum):
    NAME = "name"
    SIZE = "size"
    DATE = "date"
    OWNER = "owner"

    @classmethod
    def parse(cls, value: str) -> Optional["SortField"]:
        try:
            return cls(value)
        except ValueError:
            return None


def parse_timestamp(value: Optional[str]) -> datetime:
    """Parse an ISO-8601 timestamp from the server, falling back to the epoch"""
    if not value:
        return EPOCH
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return EPOCH
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class Entry:
    """One member of a directory listing"""

    name: str
    kind: EntryKind
    size: int = 0
    owner: str = ""
    modified: datetime = EPOCH
    link_target: str = ""
    version: str = ""

    def __post_init__(self):
        if self.size < 0:
            raise ValueError(f"negative size for entry {self.name!r}")

    @property
    def is_link(self) -> bool:
        return self.kind is EntryKind.LINK

    @classmethod
    def from_remote(cls, kind: EntryKind, record: Dict[str, Any]) -> "Entry":
        """Build an entry from a filebrowser record

        Folder records carry their own ``path``; file and link records carry
        ``fname``. For link records ``path`` is the stored target, which the
        server keeps relative to the filesystem root.
        """
        if kind is EntryKind.DIRECTORY:
            raw_name = record.get("path") or record.get("fname") or ""
        else:
            raw_name = record.get("fname") or record.get("path") or ""
        name = raw_name.rstrip("/").split("/")[-1]

        link_target = ""
        if kind is EntryKind.LINK:
            if name.endswith(LINK_SUFFIX):
                name = name[: -len(LINK_SUFFIX)]
            target = record.get("path") or ""
            if target and not target.startswith("/"):
                target = "/" + target
            link_target = target

        return cls(
            name=name,
            kind=kind,
            size=int(record.get("fsize") or 0),
            owner=record.get("owner_username") or "",
            modified=parse_timestamp(record.get("creation_date")),
            link_target=link_target,
        )


@dataclass(frozen=True)
class ListOptions:
    """Options accepted by VFS.list"""

    sort: SortField = SortField.NAME
    reverse: bool = False
    self_only: bool = False


@dataclass
class CacheEntry:
    """A cached listing, owned by the freshness cache"""

    path: str
    entries: List[Entry]
    timestamp: float
    dirty: bool = False
