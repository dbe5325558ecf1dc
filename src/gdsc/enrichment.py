#!/usr/bin/env python3
"""Batched, cancellable child-folder count enrichment."""

import asyncio
import contextlib
import logging
from typing import Callable, Dict, Iterable, List, Optional

from .errors import DriveError
from .generation import GenerationGuard, GenerationToken
from .models import ChildCount, DirectoryEntry
from .services.stats_cache import StatsCache

logger = logging.getLogger(__name__)

BatchCallback = Callable[[Dict[str, ChildCount]], None]


class EnrichmentScheduler:
    """Fetch child-folder counts for visible folders missing from the cache.

    Folders are processed in fixed-size batches. Requests inside a batch run
    concurrently; batches run one after another with a short pause, and each
    batch is merged into the cache as soon as it completes. Starting a new
    run or calling ``cancel`` makes the previous run stale: whatever it
    fetches afterwards is dropped.
    """

    BATCH_SIZE = 20
    BATCH_DELAY = 0.05

    def __init__(self, client, cache: StatsCache, batch_size: int = BATCH_SIZE,
                 batch_delay: float = BATCH_DELAY, on_batch: Optional[BatchCallback] = None):
        if batch_size < 1:
            raise ValueError("Batch size must be at least 1")
        self._client = client
        self._cache = cache
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.on_batch = on_batch
        self._guard = GenerationGuard("enrichment")
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def plan(self, entries: Iterable[DirectoryEntry]) -> List[List[DirectoryEntry]]:
        """Split the folders missing from the cache into batches."""
        pending = self._cache.missing(entries)
        return [pending[i:i + self.batch_size] for i in range(0, len(pending), self.batch_size)]

    async def _count(self, folder_id: str) -> ChildCount:
        try:
            return await self._client.fetch_child_folder_count(folder_id)
        except DriveError as e:
            logger.debug(f"Count for {folder_id} failed: {e}")
            return ChildCount.unknown()

    async def run(self, entries: Iterable[DirectoryEntry],
                  token: Optional[GenerationToken] = None) -> int:
        """Enrich the given entries.

        Args:
            entries: Visible entries; files and cached folders are skipped
            token: Liveness token; a fresh one is taken when omitted

        Returns:
            Number of folder counts merged into the cache
        """
        if token is None:
            token = self._guard.next_token()

        batches = self.plan(entries)
        if not batches:
            return 0

        logger.debug(f"Enriching {sum(len(b) for b in batches)} folders in {len(batches)} batches")
        merged = 0
        for index, batch in enumerate(batches):
            if not token.is_current:
                break

            results = await asyncio.gather(*(self._count(entry.id) for entry in batch))

            if not token.is_current:
                logger.debug(f"Discarding batch {index + 1} of stale enrichment run")
                break

            update = {entry.id: result for entry, result in zip(batch, results)}
            self._cache.merge(update)
            merged += len(update)
            if self.on_batch:
                self.on_batch(update)

            if index < len(batches) - 1:
                await asyncio.sleep(self.batch_delay)

        return merged

    def start(self, entries: Iterable[DirectoryEntry]) -> asyncio.Task:
        """Start a background run, superseding any run in progress."""
        entries = list(entries)
        token = self._guard.next_token()
        task = asyncio.create_task(self.run(entries, token))
        task.add_done_callback(self._on_done)
        self._task = task
        return task

    def _on_done(self, finished: asyncio.Task) -> None:
        with contextlib.suppress(asyncio.CancelledError):
            exc = finished.exception()
            if exc is not None:
                logger.error(f"Enrichment run crashed: {exc}", exc_info=exc)

    def cancel(self) -> None:
        """Make the current run stale; in-flight results are not merged."""
        self._guard.invalidate()

    async def wait(self) -> None:
        """Wait for the most recently started run to finish."""
        if self._task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
