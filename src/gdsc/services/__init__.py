"""Shared services for GDSC."""

from .stats_cache import StatsCache

__all__ = ['StatsCache']
