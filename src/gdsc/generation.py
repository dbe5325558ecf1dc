#!/usr/bin/env python3
"""Generation tokens for superseding in-flight loads."""

import itertools
import logging

logger = logging.getLogger(__name__)


class GenerationToken:
    """Handle carried by one logical load.

    The token stays current until its guard issues a newer one or is
    invalidated. Results are merged only while ``is_current`` holds; the
    underlying requests are never aborted.
    """

    __slots__ = ("_guard", "value")

    def __init__(self, guard: "GenerationGuard", value: int):
        self._guard = guard
        self.value = value

    @property
    def is_current(self) -> bool:
        return self._guard.current == self.value

    @property
    def cancelled(self) -> bool:
        return not self.is_current

    def __repr__(self) -> str:
        state = "current" if self.is_current else "stale"
        return f"<GenerationToken {self.value} {state}>"


class GenerationGuard:
    """Allocates monotonically increasing generation tokens."""

    def __init__(self, name: str = "load"):
        self.name = name
        self._counter = itertools.count(1)
        self._current = 0

    @property
    def current(self) -> int:
        return self._current

    def next_token(self) -> GenerationToken:
        """Start a new generation, superseding every earlier token."""
        self._current = next(self._counter)
        logger.debug(f"{self.name} generation {self._current} started")
        return GenerationToken(self, self._current)

    def invalidate(self) -> None:
        """Supersede the current token without starting new work."""
        self._current = next(self._counter)
        logger.debug(f"{self.name} generation invalidated (now {self._current})")
