#!/usr/bin/env python3
"""Browse session: the single owner of listing state.

A session holds the navigation path, the loaded entries, the child-folder
count cache and the active query (container, name filter, time bound, item
cap). Every root load takes a fresh generation token and only the newest
load may change the entries or the error state.
"""

import asyncio
import logging
from contextlib import aclosing
from datetime import datetime
from typing import Callable, Dict, List, Optional, Union

from .enrichment import EnrichmentScheduler
from .errors import DriveError, NoCredentialError
from .fallback import EmptyResultFallback
from .generation import GenerationGuard
from .models import (
    SCOPE_CURRENT,
    ChildCount,
    DirectoryEntry,
    ListingQuery,
    NavigationPath,
    TimeRange,
    build_query,
)
from .pagination import PaginationDriver
from .services.stats_cache import StatsCache

logger = logging.getLogger(__name__)


class BrowseSession:
    """Coordinates loads, navigation and enrichment for one root container."""

    def __init__(self, client, root_id: str, root_name: str = "Root",
                 time_range: TimeRange = TimeRange.DAYS_14,
                 item_cap: Optional[int] = 1000,
                 search_scope: str = SCOPE_CURRENT,
                 auto_widen: bool = True,
                 batch_size: int = EnrichmentScheduler.BATCH_SIZE,
                 page_delay: float = PaginationDriver.PAGE_DELAY,
                 batch_delay: float = EnrichmentScheduler.BATCH_DELAY,
                 on_batch: Optional[Callable[[List[DirectoryEntry]], None]] = None,
                 on_stats: Optional[Callable[[Dict[str, ChildCount]], None]] = None):
        """Initialize a session.

        Args:
            client: Async listing client
            root_id: Configured root container ID
            root_name: Display name of the root
            time_range: Initial modification-time window
            item_cap: Maximum entries per load (None = no cap)
            search_scope: "current" or "global" for name searches
            auto_widen: Apply the empty-result fallback instead of only suggesting it
            batch_size: Enrichment batch width
            page_delay: Pause between continuation fetches
            batch_delay: Pause between enrichment batches
            on_batch: Called with the full entry list after each merged page
            on_stats: Called with each merged enrichment batch
        """
        self.client = client
        self.path = NavigationPath(root_id, root_name)
        self.stats = StatsCache()
        self.entries: List[DirectoryEntry] = []

        self.time_range = time_range
        self.item_cap = item_cap
        self.search_text = ''
        self.search_scope = search_scope
        self.local_filter = ''

        self.error: Optional[DriveError] = None
        self.is_loading = False
        self.truncated = False
        self.widen_suggestion: Optional[TimeRange] = None

        self.on_batch = on_batch
        self.on_stats = on_stats

        # Fixed for the whole load so continuation cursors stay valid
        self._modified_since: Optional[datetime] = time_range.to_bound()

        self._loads = GenerationGuard("load")
        self._driver = PaginationDriver(
            client, page_delay=page_delay,
            fallback=EmptyResultFallback(client, apply=auto_widen))
        self._enricher = EnrichmentScheduler(
            client, self.stats, batch_size=batch_size, batch_delay=batch_delay,
            on_batch=self._on_counts)

    # -- state -------------------------------------------------------------

    @property
    def current_folder_id(self) -> str:
        return self.path.current_id

    @property
    def modified_since(self) -> Optional[datetime]:
        return self._modified_since

    def query(self) -> ListingQuery:
        return build_query(self.path.current_id, self.search_text, self.search_scope)

    def visible_entries(self) -> List[DirectoryEntry]:
        """Loaded entries narrowed by the local name filter."""
        needle = self.local_filter.strip().lower()
        if not needle:
            return list(self.entries)
        return [entry for entry in self.entries if needle in entry.name.lower()]

    def folder_count(self, folder_id: str) -> Optional[int]:
        return self.stats.get(folder_id)

    # -- loading -----------------------------------------------------------

    async def load(self) -> List[DirectoryEntry]:
        """Run a root load of the current container.

        Returns:
            Entries of this load, or the newer load's entries if this one was superseded
        """
        token = self._loads.next_token()
        self._enricher.cancel()

        self.entries = []
        self.truncated = False
        self.widen_suggestion = None

        if not self.client.api_key:
            self.error = NoCredentialError("No API key configured.")
            self.is_loading = False
            logger.error("Cannot load listing: no API key configured")
            return []

        self.error = None
        self.is_loading = True
        query = self.query()

        try:
            async with aclosing(self._driver.load_all(
                    query, self._modified_since, self.item_cap, token)) as batches:
                async for batch in batches:
                    if not token.is_current:
                        logger.debug(f"Dropping batch of superseded load {token.value}")
                        break
                    if batch.is_first:
                        if batch.widened:
                            self._apply_widened_range()
                        if batch.widen_suggested:
                            self.widen_suggestion = TimeRange.ALL
                    self.entries = self.entries + batch.entries
                    self.truncated = batch.truncated
                    if self.on_batch:
                        self.on_batch(self.entries)
        except DriveError as e:
            if token.is_current:
                self.error = e
                logger.error(f"Listing failed: {e}")
            else:
                logger.debug(f"Ignoring failure of superseded load {token.value}: {e}")
        finally:
            if token.is_current:
                self.is_loading = False

        if token.is_current:
            logger.info(f"Loaded {len(self.entries)} entries from {self.path.current[1]}")
        return self.entries

    def _apply_widened_range(self) -> None:
        logger.info("Time range reset to unbounded to match the displayed listing")
        self.time_range = TimeRange.ALL
        self._modified_since = None

    async def refresh(self) -> List[DirectoryEntry]:
        """Drop cached counts, recompute the time bound and reload."""
        self.stats.clear()
        self._modified_since = self.time_range.to_bound()
        return await self.load()

    # -- navigation and query changes --------------------------------------

    async def open_folder(self, entry: DirectoryEntry) -> List[DirectoryEntry]:
        if not entry.is_folder:
            raise ValueError(f"Not a folder: {entry.name}")
        self.path.push(entry.id, entry.name)
        self._reset_filters()
        return await self.load()

    async def navigate_to(self, index: int) -> List[DirectoryEntry]:
        """Go back up the breadcrumb trail to ``index`` (0 = root)."""
        self.path.truncate(index)
        self._reset_filters()
        return await self.load()

    async def change_root(self, root_id: str, root_name: str = "Root") -> List[DirectoryEntry]:
        self.path = NavigationPath(root_id, root_name)
        self.stats.clear()
        self._reset_filters()
        return await self.load()

    async def set_time_range(self, time_range: Union[TimeRange, str]) -> List[DirectoryEntry]:
        self.time_range = TimeRange.parse(time_range)
        self._modified_since = self.time_range.to_bound()
        return await self.load()

    async def accept_widen_suggestion(self) -> List[DirectoryEntry]:
        if self.widen_suggestion is None:
            return self.entries
        return await self.set_time_range(self.widen_suggestion)

    async def set_item_cap(self, item_cap: Optional[int]) -> List[DirectoryEntry]:
        if item_cap is not None and item_cap <= 0:
            raise ValueError("Item cap must be positive")
        self.item_cap = item_cap
        return await self.load()

    async def set_search(self, text: str, scope: Optional[str] = None) -> List[DirectoryEntry]:
        scope = scope or self.search_scope
        # Raises on an unknown scope before any state changes
        build_query(self.path.current_id, text, scope)
        self.search_text = text or ''
        self.search_scope = scope
        return await self.load()

    def set_local_filter(self, text: str) -> None:
        """Narrow the visible set; a running enrichment pass becomes stale."""
        self.local_filter = text or ''
        self._enricher.cancel()

    def _reset_filters(self) -> None:
        self.search_text = ''
        self.local_filter = ''

    # -- enrichment --------------------------------------------------------

    def start_enrichment(self) -> Optional[asyncio.Task]:
        if not self.client.api_key:
            return None
        if self._enricher.running:
            logger.debug("Superseding the running enrichment pass")
        return self._enricher.start(self.visible_entries())

    @property
    def is_enriching(self) -> bool:
        return self._enricher.running

    async def enrich(self) -> None:
        """Count child folders of every visible folder not yet cached."""
        if self.start_enrichment() is not None:
            await self._enricher.wait()

    def _on_counts(self, update: Dict[str, ChildCount]) -> None:
        if self.on_stats:
            self.on_stats(update)

    def close(self) -> None:
        self._enricher.cancel()
        self._loads.invalidate()
