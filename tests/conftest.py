"""Shared fixtures: an in-memory Drive remote and a fake keyring."""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest

from gdsc.models import (
    BrowseChildren,
    ChildCount,
    DirectoryEntry,
    EntryKind,
    ListingPage,
    SearchGlobal,
    SearchWithin,
)

NOW = datetime.now(timezone.utc).replace(microsecond=0)


def make_folder(entry_id: str, days_ago: float = 1, name: Optional[str] = None,
                created_days_ago: Optional[float] = None) -> DirectoryEntry:
    return DirectoryEntry(
        id=entry_id,
        name=name or f"Folder {entry_id}",
        kind=EntryKind.FOLDER,
        last_modified=NOW - timedelta(days=days_ago),
        created_at=NOW - timedelta(days=created_days_ago) if created_days_ago is not None else None,
        external_url=f"https://drive.google.com/drive/folders/{entry_id}",
    )


def make_file(entry_id: str, days_ago: float = 1, size: int = 100,
              content_type: str = "application/pdf", name: Optional[str] = None) -> DirectoryEntry:
    return DirectoryEntry(
        id=entry_id,
        name=name or f"File {entry_id}",
        kind=EntryKind.FILE,
        last_modified=NOW - timedelta(days=days_ago),
        size_bytes=size,
        content_type=content_type,
        external_url=f"https://drive.google.com/file/d/{entry_id}/view",
    )


class FakeRemote:
    """Async listing client over a fixed snapshot.

    Cursors are string offsets into the filtered listing. Requests for a
    container listed in ``holds`` wait until that event is set.
    """

    MAX_PAGE_SIZE = 1000

    def __init__(self, api_key: str = "test-key"):
        self.api_key = api_key
        self.tree: Dict[str, List[DirectoryEntry]] = {}
        self.calls: List[tuple] = []
        self.cursor_errors: Dict[str, Exception] = {}
        self.root_errors: Dict[str, Exception] = {}
        self.holds: Dict[str, asyncio.Event] = {}
        self.page_size_override: Optional[int] = None

        self.child_counts: Dict[str, int] = {}
        self.count_errors: Dict[str, Exception] = {}
        self.count_calls: List[str] = []
        self.count_hold: Optional[asyncio.Event] = None
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    def _listing(self, query, modified_since) -> List[DirectoryEntry]:
        if isinstance(query, BrowseChildren):
            entries = self.tree.get(query.container_id, [])
        elif isinstance(query, SearchWithin):
            entries = [e for e in self.tree.get(query.container_id, [])
                       if query.text.lower() in e.name.lower()]
        elif isinstance(query, SearchGlobal):
            entries = [e for children in self.tree.values() for e in children
                       if query.text.lower() in e.name.lower()]
        else:
            raise TypeError(query)
        if modified_since is not None:
            entries = [e for e in entries if e.last_modified > modified_since]
        return sorted(entries, key=lambda e: (not e.is_folder, -e.last_modified.timestamp()))

    async def fetch_page(self, query, modified_since=None, page_size=1000, page_token=None) -> ListingPage:
        self.calls.append((query, modified_since, page_size, page_token))
        container = getattr(query, 'container_id', None)
        if container in self.holds:
            await self.holds[container].wait()
        else:
            await asyncio.sleep(0)

        if page_token is None and container in self.root_errors:
            raise self.root_errors[container]
        if page_token in self.cursor_errors:
            raise self.cursor_errors[page_token]

        size = self.page_size_override or min(page_size, self.MAX_PAGE_SIZE)
        entries = self._listing(query, modified_since)
        offset = int(page_token) if page_token else 0
        chunk = entries[offset:offset + size]
        next_offset = offset + size
        cursor = str(next_offset) if next_offset < len(entries) else None
        return ListingPage(entries=chunk, continuation_cursor=cursor)

    async def fetch_child_folder_count(self, container_id: str) -> ChildCount:
        self.count_calls.append(container_id)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.count_hold is not None:
                await self.count_hold.wait()
            else:
                await asyncio.sleep(0)
            if container_id in self.count_errors:
                raise self.count_errors[container_id]
            children = self.tree.get(container_id)
            if children is None:
                return ChildCount.counted(self.child_counts.get(container_id, 0))
            return ChildCount.counted(sum(1 for e in children if e.is_folder))
        finally:
            self.in_flight -= 1

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def remote():
    return FakeRemote()


@pytest.fixture
def fake_keyring(monkeypatch):
    """Replace the system keyring with an in-memory store."""
    store = {}

    def get_password(service, name):
        return store.get((service, name))

    def set_password(service, name, value):
        store[(service, name)] = value

    monkeypatch.setattr("keyring.get_password", get_password)
    monkeypatch.setattr("keyring.set_password", set_password)
    return store
