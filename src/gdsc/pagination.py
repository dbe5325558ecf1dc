#!/usr/bin/env python3
"""Pagination driver: turns cursor-chained pages into a stream of batches."""

import asyncio
import logging
from datetime import datetime
from typing import AsyncIterator, Optional, Set

from .errors import DriveError
from .fallback import EmptyResultFallback
from .generation import GenerationToken
from .models import ListingBatch, ListingQuery, ListingPage

logger = logging.getLogger(__name__)


class PaginationDriver:
    """Load a listing page by page until the cursor ends or the cap is hit.

    Continuation fetches are strictly sequential and separated by
    ``page_delay`` seconds so the remote rate limiter is not hammered.
    """

    PAGE_DELAY = 0.1
    MAX_PAGE_SIZE = 1000

    def __init__(self, client, page_delay: float = PAGE_DELAY,
                 fallback: Optional[EmptyResultFallback] = None):
        """Initialize the driver.

        Args:
            client: Async listing client (``fetch_page`` coroutine)
            page_delay: Pause before each continuation fetch, in seconds
            fallback: Optional empty-result policy applied to the root page
        """
        self._client = client
        self.page_delay = page_delay
        self.fallback = fallback

    def page_size_for(self, item_cap: Optional[int]) -> int:
        max_size = getattr(self._client, 'MAX_PAGE_SIZE', self.MAX_PAGE_SIZE)
        if item_cap is None:
            return max_size
        return max(1, min(item_cap, max_size))

    async def load_all(self, query: ListingQuery, modified_since: Optional[datetime] = None,
                       item_cap: Optional[int] = None,
                       token: Optional[GenerationToken] = None) -> AsyncIterator[ListingBatch]:
        """Yield batches of entries for a query.

        The root fetch error propagates. A continuation error ends the stream
        quietly and keeps every batch already yielded.

        Args:
            query: Query shape
            modified_since: Lower bound for modification time (None = unbounded)
            item_cap: Maximum number of entries to emit (None = no cap)
            token: Generation token; no further pages are requested once it goes stale

        Yields:
            ListingBatch per page, the first one flagged ``is_first``
        """
        if item_cap is not None and item_cap <= 0:
            raise ValueError("Item cap must be positive")

        page_size = self.page_size_for(item_cap)
        logger.info(f"Loading {query} (since={modified_since}, cap={item_cap})")

        page: ListingPage = await self._client.fetch_page(query, modified_since, page_size, None)

        widened = False
        widen_suggested = False
        if self.fallback is not None:
            outcome = await self.fallback.resolve(query, modified_since, page, page_size)
            page = outcome.page
            modified_since = outcome.modified_since
            widened = outcome.widened
            widen_suggested = outcome.widen_suggested

        seen: Set[str] = set()
        emitted = 0
        first = True

        while True:
            entries = []
            for entry in page.entries:
                if entry.id in seen:
                    logger.debug(f"Dropping duplicate entry {entry.id} across page boundary")
                    continue
                seen.add(entry.id)
                entries.append(entry)

            cursor = page.continuation_cursor
            truncated = False
            if item_cap is not None and emitted + len(entries) >= item_cap:
                remaining = item_cap - emitted
                truncated = len(entries) > remaining or bool(cursor)
                entries = entries[:remaining]
                cursor = None

            emitted += len(entries)
            yield ListingBatch(
                entries=entries,
                modified_since=modified_since,
                widened=widened,
                widen_suggested=widen_suggested,
                truncated=truncated,
                is_first=first,
            )
            first = False

            if not cursor:
                logger.debug(f"Listing complete with {emitted} entries")
                return

            await asyncio.sleep(self.page_delay)
            if token is not None and not token.is_current:
                logger.debug(f"Load superseded after {emitted} entries")
                return

            try:
                page = await self._client.fetch_page(query, modified_since, page_size, cursor)
            except DriveError as e:
                logger.warning(f"Pagination stopped after {emitted} entries: {e}")
                return
