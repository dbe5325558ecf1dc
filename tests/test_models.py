#!/usr/bin/env python3
"""Tests for query shapes, time ranges, navigation and generation tokens."""

from datetime import datetime, timedelta, timezone

import pytest

from gdsc.generation import GenerationGuard
from gdsc.models import (
    BrowseChildren,
    ChildCount,
    NavigationPath,
    SearchGlobal,
    SearchWithin,
    TimeRange,
    build_query,
)


class TestBuildQuery:
    def test_blank_filter_browses(self):
        assert build_query("abc", "   ", "global") == BrowseChildren("abc")
        assert build_query("abc") == BrowseChildren("abc")

    def test_scoped_search(self):
        assert build_query("abc", " report ") == SearchWithin("abc", "report")

    def test_global_search_drops_container(self):
        assert build_query("abc", "report", "global") == SearchGlobal("report")

    def test_unknown_scope(self):
        with pytest.raises(ValueError):
            build_query("abc", "report", "drive")


class TestTimeRange:
    def test_bound(self):
        now = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)
        assert TimeRange.DAYS_14.to_bound(now) == now - timedelta(days=14)
        assert TimeRange.ALL.to_bound(now) is None

    def test_parse(self):
        assert TimeRange.parse("30") is TimeRange.DAYS_30
        assert TimeRange.parse(90) is TimeRange.DAYS_90
        assert TimeRange.parse(" ALL ") is TimeRange.ALL
        with pytest.raises(ValueError):
            TimeRange.parse("10")


class TestChildCount:
    def test_unknown_is_not_zero(self):
        assert ChildCount.unknown() != ChildCount.counted(0)
        assert not ChildCount.unknown().is_known
        assert repr(ChildCount.counted(3)) == "Counted(3)"

    def test_negative_rejected(self):
        with pytest.raises(ValueError):
            ChildCount.counted(-1)


class TestNavigationPath:
    def test_push_and_truncate(self):
        path = NavigationPath("root", "Root")
        path.push("a", "A")
        path.push("b", "B")
        assert path.current_id == "b"

        path.truncate(1)
        assert path.names() == ["Root", "A"]

        path.truncate(0)
        assert path.current == ("root", "Root")

    def test_out_of_range(self):
        path = NavigationPath("root", "Root")
        with pytest.raises(IndexError):
            path.truncate(1)
        with pytest.raises(IndexError):
            path.truncate(-1)

    def test_root_required(self):
        with pytest.raises(ValueError):
            NavigationPath("", "Root")


class TestGeneration:
    def test_newer_token_supersedes(self):
        guard = GenerationGuard()
        first = guard.next_token()
        assert first.is_current

        second = guard.next_token()
        assert first.cancelled
        assert second.is_current
        assert second.value > first.value

    def test_invalidate(self):
        guard = GenerationGuard("enrichment")
        token = guard.next_token()
        guard.invalidate()
        assert not token.is_current
