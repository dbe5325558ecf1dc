#!/usr/bin/env python3
"""Retry an empty time-bounded root fetch without its time bound."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .models import ListingPage, ListingQuery

logger = logging.getLogger(__name__)


@dataclass
class FallbackOutcome:
    """Root page to use and the time bound it was fetched with."""
    page: ListingPage
    modified_since: Optional[datetime]
    widened: bool = False
    widen_suggested: bool = False


class EmptyResultFallback:
    """Re-issue an empty, time-bounded root fetch with unbounded history.

    With ``apply`` set (the default) a non-empty unbounded result replaces the
    empty one and the load continues unbounded. Otherwise the empty result
    stands and the outcome only records that widening would find entries.
    """

    def __init__(self, client, apply: bool = True):
        self._client = client
        self.apply = apply

    async def resolve(self, query: ListingQuery, modified_since: Optional[datetime],
                      first_page: ListingPage, page_size: int) -> FallbackOutcome:
        """Decide which root page a load continues from.

        Args:
            query: Query shape of the root fetch
            modified_since: Time bound the root fetch used (None = unbounded)
            first_page: Page returned by the root fetch
            page_size: Page size used by the root fetch

        Returns:
            FallbackOutcome for the load

        Raises:
            DriveError: If the unbounded retry itself fails
        """
        if modified_since is None or first_page.entries:
            return FallbackOutcome(first_page, modified_since)

        logger.info("Empty result with time filter, retrying with unbounded history")
        retry_page = await self._client.fetch_page(query, None, page_size, None)

        if not retry_page.entries:
            logger.info("Unbounded retry is empty too, keeping the empty result")
            return FallbackOutcome(first_page, modified_since)

        if not self.apply:
            logger.info(f"Unbounded history has {len(retry_page.entries)}+ entries, suggesting a wider range")
            return FallbackOutcome(first_page, modified_since, widen_suggested=True)

        logger.info(f"Widened to unbounded history ({len(retry_page.entries)} entries on first page)")
        return FallbackOutcome(retry_page, None, widened=True)
