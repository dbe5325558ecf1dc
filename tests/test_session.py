#!/usr/bin/env python3
"""Tests for the browse session coordinator."""

import asyncio

import pytest

from conftest import FakeRemote, make_file, make_folder
from gdsc.errors import AccessDeniedError, NoCredentialError, QuotaExceededError
from gdsc.models import SearchGlobal, SearchWithin, TimeRange
from gdsc.session import BrowseSession


def new_session(remote, **kwargs):
    kwargs.setdefault("page_delay", 0)
    kwargs.setdefault("batch_delay", 0)
    kwargs.setdefault("time_range", TimeRange.ALL)
    return BrowseSession(remote, "root", "Root", **kwargs)


@pytest.mark.asyncio
async def test_load_lists_current_folder(remote):
    remote.tree["root"] = [make_folder("a"), make_file("b")]
    session = new_session(remote)

    entries = await session.load()

    assert [e.id for e in entries] == ["a", "b"]
    assert session.error is None
    assert not session.is_loading


@pytest.mark.asyncio
async def test_superseded_load_never_mixes_results(remote):
    """A slow load that finishes last must not overwrite the newer one."""
    remote.tree["slow"] = [make_file("slow-1"), make_file("slow-2")]
    remote.tree["fast"] = [make_file("fast-1")]
    remote.holds["slow"] = asyncio.Event()
    session = new_session(remote)

    session.path.push("slow", "Slow")
    load_a = asyncio.create_task(session.load())
    await asyncio.sleep(0)

    session.path.truncate(0)
    session.path.push("fast", "Fast")
    load_b = asyncio.create_task(session.load())
    await load_b

    remote.holds["slow"].set()
    await load_a

    assert [e.id for e in session.entries] == ["fast-1"]
    assert not session.is_loading


@pytest.mark.asyncio
async def test_superseded_load_error_is_ignored(remote):
    remote.tree["fast"] = [make_file("fast-1")]
    remote.holds["bad"] = asyncio.Event()
    remote.root_errors["bad"] = AccessDeniedError("Access denied", 403)
    session = new_session(remote)

    session.path.push("bad", "Bad")
    load_a = asyncio.create_task(session.load())
    await asyncio.sleep(0)
    session.path.truncate(0)
    session.path.push("fast", "Fast")
    await session.load()
    remote.holds["bad"].set()
    await load_a

    assert session.error is None
    assert [e.id for e in session.entries] == ["fast-1"]


@pytest.mark.asyncio
async def test_root_failure_is_surfaced(remote):
    remote.root_errors["root"] = AccessDeniedError("Access denied", 403)
    session = new_session(remote)

    await session.load()

    assert isinstance(session.error, AccessDeniedError)
    assert session.error.needs_reconfigure
    assert session.entries == []


@pytest.mark.asyncio
async def test_transient_failure_asks_for_retry(remote):
    remote.root_errors["root"] = QuotaExceededError("API quota exceeded", 403)
    session = new_session(remote)

    await session.load()

    assert not session.error.needs_reconfigure


@pytest.mark.asyncio
async def test_missing_credential_fails_before_any_request():
    remote = FakeRemote(api_key="")
    session = new_session(remote)

    await session.load()

    assert isinstance(session.error, NoCredentialError)
    assert remote.calls == []


@pytest.mark.asyncio
async def test_empty_filtered_load_widens_time_range(remote):
    remote.tree["root"] = [make_folder("old-1", days_ago=400), make_file("old-2", days_ago=500)]
    session = new_session(remote, time_range=TimeRange.DAYS_14)

    entries = await session.load()

    assert sorted(e.id for e in entries) == ["old-1", "old-2"]
    assert session.time_range is TimeRange.ALL
    assert session.modified_since is None


@pytest.mark.asyncio
async def test_empty_everywhere_is_not_an_error(remote):
    remote.tree["root"] = []
    session = new_session(remote, time_range=TimeRange.DAYS_7)

    entries = await session.load()

    assert entries == []
    assert session.error is None
    assert session.time_range is TimeRange.DAYS_7
    assert len(remote.calls) == 2


@pytest.mark.asyncio
async def test_widening_can_be_a_suggestion(remote):
    remote.tree["root"] = [make_file("old", days_ago=400)]
    session = new_session(remote, time_range=TimeRange.DAYS_30, auto_widen=False)

    entries = await session.load()

    assert entries == []
    assert session.time_range is TimeRange.DAYS_30
    assert session.widen_suggestion is TimeRange.ALL

    entries = await session.accept_widen_suggestion()
    assert [e.id for e in entries] == ["old"]
    assert session.widen_suggestion is None


@pytest.mark.asyncio
async def test_time_bound_is_stable_across_continuations(remote):
    remote.tree["root"] = [make_file(f"f{i}", days_ago=1) for i in range(5)]
    remote.page_size_override = 2
    session = new_session(remote, time_range=TimeRange.DAYS_30)

    await session.load()

    bounds = {call[1] for call in remote.calls}
    assert len(bounds) == 1
    assert bounds.pop() == session.modified_since


@pytest.mark.asyncio
async def test_refresh_recomputes_bound_and_clears_stats(remote):
    remote.tree["root"] = [make_folder("a")]
    session = new_session(remote, time_range=TimeRange.DAYS_365)
    await session.load()
    await session.enrich()
    assert "a" in session.stats
    first_bound = session.modified_since

    await asyncio.sleep(0.01)
    await session.refresh()

    assert "a" not in session.stats
    assert session.modified_since > first_bound


@pytest.mark.asyncio
async def test_navigation(remote):
    child = make_folder("child", name="Child")
    remote.tree["root"] = [child]
    remote.tree["child"] = [make_folder("grandchild", name="Grandchild")]
    remote.tree["grandchild"] = [make_file("leaf")]
    session = new_session(remote)

    await session.load()
    await session.open_folder(child)
    assert session.current_folder_id == "child"
    await session.open_folder(session.entries[0])
    assert session.path.names() == ["Root", "Child", "Grandchild"]
    assert [e.id for e in session.entries] == ["leaf"]

    await session.navigate_to(0)
    assert session.path.names() == ["Root"]
    assert [e.id for e in session.entries] == ["child"]


@pytest.mark.asyncio
async def test_open_folder_rejects_files(remote):
    session = new_session(remote)
    with pytest.raises(ValueError):
        await session.open_folder(make_file("x"))


@pytest.mark.asyncio
async def test_change_root_resets_state(remote):
    remote.tree["root"] = [make_folder("a")]
    remote.tree["other"] = [make_file("b")]
    session = new_session(remote)
    await session.load()
    await session.enrich()

    await session.change_root("other", "Other")

    assert session.path.names() == ["Other"]
    assert len(session.stats) == 0
    assert [e.id for e in session.entries] == ["b"]


@pytest.mark.asyncio
async def test_search_uses_query_shape_for_scope(remote):
    remote.tree["root"] = [make_file("r1", name="Report 2024")]
    remote.tree["elsewhere"] = [make_file("r2", name="report final")]
    session = new_session(remote)

    entries = await session.set_search("report")
    assert isinstance(remote.calls[-1][0], SearchWithin)
    assert [e.id for e in entries] == ["r1"]

    entries = await session.set_search("report", scope="global")
    assert isinstance(remote.calls[-1][0], SearchGlobal)
    assert sorted(e.id for e in entries) == ["r1", "r2"]


@pytest.mark.asyncio
async def test_invalid_scope_is_rejected_before_request(remote):
    session = new_session(remote)
    with pytest.raises(ValueError):
        await session.set_search("x", scope="everywhere")
    assert remote.calls == []


@pytest.mark.asyncio
async def test_local_filter_narrows_visible_set_and_enrichment(remote):
    remote.tree["root"] = [make_folder("a", name="Alpha"), make_folder("b", name="Beta")]
    session = new_session(remote)
    await session.load()

    session.set_local_filter("alp")
    assert [e.id for e in session.visible_entries()] == ["a"]

    await session.enrich()
    assert remote.count_calls == ["a"]


@pytest.mark.asyncio
async def test_item_cap_marks_truncation(remote):
    remote.tree["root"] = [make_file(f"f{i}") for i in range(12)]
    remote.page_size_override = 5
    session = new_session(remote)

    entries = await session.set_item_cap(8)

    assert len(entries) == 8
    assert session.truncated


@pytest.mark.asyncio
async def test_stats_listener_sees_each_batch(remote):
    remote.tree["root"] = [make_folder(f"f{i}") for i in range(5)]
    updates = []
    pages = []
    session = new_session(remote, batch_size=2, on_stats=updates.append, on_batch=lambda e: pages.append(len(e)))

    await session.load()
    await session.enrich()

    assert [len(u) for u in updates] == [2, 2, 1]
    assert pages == [5]
    assert all(session.folder_count(f"f{i}") == 0 for i in range(5))


@pytest.mark.asyncio
async def test_new_load_cancels_enrichment(remote):
    remote.tree["root"] = [make_folder("a")]
    remote.count_hold = asyncio.Event()
    session = new_session(remote)
    await session.load()

    task = session.start_enrichment()
    await asyncio.sleep(0)
    assert session.is_enriching
    await session.load()
    remote.count_hold.set()
    await task

    assert not session.is_enriching
    assert "a" not in session.stats
