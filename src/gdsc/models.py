#!/usr/bin/env python3
"""Data model for the Drive listing engine.

Entries are plain dataclasses built from Drive v3 ``files`` resources. Query
shapes are separate classes so a corpus-wide search can never carry a parent
restriction.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import List, Optional, Tuple, Union


FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"


class EntryKind(Enum):
    """Folder/file discriminator."""
    FOLDER = "folder"
    FILE = "file"


@dataclass(frozen=True)
class DirectoryEntry:
    """One node of the remote hierarchy as observed by the client.

    ``size_bytes`` and ``content_type`` only carry meaning for files.
    """
    id: str
    name: str
    kind: EntryKind
    last_modified: datetime
    external_url: str = ""
    created_at: Optional[datetime] = None
    size_bytes: Optional[int] = None
    content_type: Optional[str] = None
    icon_link: Optional[str] = None
    thumbnail_link: Optional[str] = None

    @property
    def is_folder(self) -> bool:
        return self.kind is EntryKind.FOLDER


@dataclass
class ListingPage:
    """Result of a single listing request."""
    entries: List[DirectoryEntry] = field(default_factory=list)
    continuation_cursor: Optional[str] = None

    @property
    def has_more(self) -> bool:
        return bool(self.continuation_cursor)


# Query shapes

@dataclass(frozen=True)
class BrowseChildren:
    """Direct children of a container, no name filter."""
    container_id: str


@dataclass(frozen=True)
class SearchWithin:
    """Name containment restricted to direct children of a container."""
    container_id: str
    text: str


@dataclass(frozen=True)
class SearchGlobal:
    """Name containment across the whole accessible corpus."""
    text: str


ListingQuery = Union[BrowseChildren, SearchWithin, SearchGlobal]

SCOPE_CURRENT = "current"
SCOPE_GLOBAL = "global"


def build_query(container_id: str, name_filter: Optional[str] = None,
                scope: str = SCOPE_CURRENT) -> ListingQuery:
    """Pick the query shape for a container, an optional filter and a scope.

    An empty or blank filter always browses direct children, whatever the scope.
    """
    text = (name_filter or "").strip()
    if not text:
        return BrowseChildren(container_id)
    if scope == SCOPE_GLOBAL:
        return SearchGlobal(text)
    if scope != SCOPE_CURRENT:
        raise ValueError(f"Unknown search scope: {scope}")
    return SearchWithin(container_id, text)


class TimeRange(Enum):
    """Modification-time window presets. ``ALL`` means unbounded."""
    DAYS_7 = "7"
    DAYS_14 = "14"
    DAYS_30 = "30"
    DAYS_90 = "90"
    DAYS_180 = "180"
    DAYS_365 = "365"
    ALL = "all"

    @property
    def days(self) -> Optional[int]:
        if self is TimeRange.ALL:
            return None
        return int(self.value)

    def to_bound(self, now: Optional[datetime] = None) -> Optional[datetime]:
        """Compute the lower bound for ``modifiedTime``, or None when unbounded."""
        if self.days is None:
            return None
        now = now or datetime.now(timezone.utc)
        return now - timedelta(days=self.days)

    @classmethod
    def parse(cls, value: Union[str, int, "TimeRange"]) -> "TimeRange":
        if isinstance(value, TimeRange):
            return value
        text = str(value).strip().lower()
        for member in cls:
            if member.value == text:
                return member
        raise ValueError(f"Unsupported time range: {value}")


ITEM_CAP_PRESETS = (100, 500, 1000, 2000, 3000, 5000)


class ChildCount:
    """Outcome of a child-folder count request.

    ``Counted(n)`` carries the number; ``Unknown`` means the request failed and
    must not be read as zero.
    """

    __slots__ = ("value",)

    def __init__(self, value: Optional[int]):
        if value is not None and value < 0:
            raise ValueError("Child count cannot be negative")
        self.value = value

    @classmethod
    def counted(cls, value: int) -> "ChildCount":
        return cls(value)

    @classmethod
    def unknown(cls) -> "ChildCount":
        return cls(None)

    @property
    def is_known(self) -> bool:
        return self.value is not None

    def __eq__(self, other) -> bool:
        return isinstance(other, ChildCount) and self.value == other.value

    def __hash__(self) -> int:
        return hash(self.value)

    def __repr__(self) -> str:
        if self.value is None:
            return "Unknown"
        return f"Counted({self.value})"


@dataclass
class ListingBatch:
    """One batch delivered by the pagination driver.

    ``modified_since`` is the bound actually in effect for the load, which
    differs from the requested one when the empty-result fallback widened it.
    """
    entries: List[DirectoryEntry]
    modified_since: Optional[datetime] = None
    widened: bool = False
    widen_suggested: bool = False
    truncated: bool = False
    is_first: bool = False


class NavigationPath:
    """Breadcrumb trail from the configured root to the current container."""

    def __init__(self, root_id: str, root_name: str):
        if not root_id:
            raise ValueError("Root container ID is required")
        self._items: List[Tuple[str, str]] = [(root_id, root_name)]

    @property
    def current(self) -> Tuple[str, str]:
        return self._items[-1]

    @property
    def current_id(self) -> str:
        return self._items[-1][0]

    def push(self, container_id: str, name: str) -> None:
        self._items.append((container_id, name))

    def truncate(self, index: int) -> None:
        """Keep elements ``0..index``. The root is never removed."""
        if index < 0 or index >= len(self._items):
            raise IndexError(f"Navigation index out of range: {index}")
        del self._items[index + 1:]

    def names(self) -> List[str]:
        return [name for _, name in self._items]

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self):
        return iter(list(self._items))

    def __repr__(self) -> str:
        return " / ".join(self.names())
