"""Child-folder count cache shared by the session and the enrichment pass.

The cache is owned by one BrowseSession. Readers use ``get``/``lookup``;
only the enrichment scheduler writes, through ``merge``.
"""

import logging
from typing import Dict, Iterable, List, Optional

from ..models import ChildCount, DirectoryEntry

logger = logging.getLogger(__name__)


class StatsCache:
    """Mapping from folder ID to its child-folder count.

    A missing key means "not computed yet", never zero. Failed counts are
    kept as ``Unknown`` so they are not requested again until the cache is
    cleared.
    """

    def __init__(self):
        self._counts: Dict[str, ChildCount] = {}

    def get(self, folder_id: str) -> Optional[int]:
        """Return the known count, or None if absent or unknown."""
        result = self._counts.get(folder_id)
        if result is None:
            return None
        return result.value

    def lookup(self, folder_id: str) -> Optional[ChildCount]:
        """Return the raw ChildCount, or None if never computed."""
        return self._counts.get(folder_id)

    def missing(self, entries: Iterable[DirectoryEntry]) -> List[DirectoryEntry]:
        """Folder entries without a cached result, in input order, without repeats."""
        pending = []
        queued = set()
        for entry in entries:
            if not entry.is_folder or entry.id in self._counts or entry.id in queued:
                continue
            queued.add(entry.id)
            pending.append(entry)
        return pending

    def merge(self, results: Dict[str, ChildCount]) -> None:
        """Apply one batch of results at once."""
        self._counts.update(results)
        logger.debug(f"Merged {len(results)} counts, cache size {len(self._counts)}")

    def clear(self) -> None:
        if self._counts:
            logger.debug(f"Clearing {len(self._counts)} cached counts")
        self._counts.clear()

    def __contains__(self, folder_id: str) -> bool:
        return folder_id in self._counts

    def __len__(self) -> int:
        return len(self._counts)
