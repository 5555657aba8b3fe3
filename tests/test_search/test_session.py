"""Tests for SearchSession debouncing, stale-result suppression and publishing."""

from __future__ import annotations

import asyncio
import threading
from typing import List

import pytest

from donor_search.catalog.store import RecordStore
from donor_search.search.evaluator import QueryEvaluator
from donor_search.search.models import FilterSet, SearchMode, SearchOptions, SearchSnapshot
from donor_search.search.session import SearchSession, SessionState
from donor_search.utils.config import Config, NormalizationConfig, SearchConfig


def make_session(store: RecordStore, config: Config, **kwargs) -> tuple[SearchSession, List[SearchSnapshot]]:
    session = SearchSession(store, config=config, **kwargs)
    published: List[SearchSnapshot] = []
    session.subscribe(published.append)
    return session, published


class GatedEvaluator(QueryEvaluator):
    """Evaluator that blocks on a gate for the query ``"slow"``."""

    def __init__(self, gate: threading.Event, **kwargs) -> None:
        super().__init__(**kwargs)
        self.gate = gate

    def evaluate(self, records, query, *args, **kwargs):
        if query == "slow":
            self.gate.wait(timeout=5)
        return super().evaluate(records, query, *args, **kwargs)


@pytest.mark.asyncio
async def test_query_is_stored_before_debounce(store: RecordStore, config: Config) -> None:
    session, published = make_session(store, config)

    session.set_query("uni")

    assert session.query == "uni"
    assert session.state is SessionState.DEBOUNCING
    assert published == []

    snapshot = await session.wait_settled(timeout=2)
    assert session.state is SessionState.SETTLED
    assert snapshot.query == "uni"


@pytest.mark.asyncio
async def test_debounce_collapses_rapid_typing(store: RecordStore, config: Config) -> None:
    session, published = make_session(store, config)

    session.set_query("u")
    await asyncio.sleep(0.01)
    session.set_query("un")
    await asyncio.sleep(0.01)
    session.set_query("united")

    snapshot = await session.wait_settled(timeout=2)

    assert [s.query for s in published] == ["united"]
    assert [r.record.code for r in snapshot.results][:2] == ["GBR", "UN01"]
    assert snapshot.stats is not None
    assert snapshot.stats.query == "united"


@pytest.mark.asyncio
async def test_superseded_evaluation_is_never_published(
    store: RecordStore, config: Config
) -> None:
    session, published = make_session(store, config)

    first = session.search_from_suggestion("united")
    second = session.search_from_suggestion("japan")
    await asyncio.gather(first, second)

    assert [s.query for s in published] == ["japan"]
    assert session.latest.query == "japan"


@pytest.mark.asyncio
async def test_late_completion_cannot_overwrite_newer_results(store: RecordStore) -> None:
    config = Config(
        search=SearchConfig(debounce_ms=200, offload_to_thread=True),
        normalization=NormalizationConfig(rules_file=None),
    )
    gate = threading.Event()
    evaluator = GatedEvaluator(gate, config=config)
    session, published = make_session(store, config, evaluator=evaluator)

    slow = session.search_from_suggestion("slow")
    await asyncio.sleep(0.05)
    fast = session.search_from_suggestion("japan")
    await fast

    assert [s.query for s in published] == ["japan"]

    gate.set()
    await slow

    assert [s.query for s in published] == ["japan"]
    assert session.latest.query == "japan"


@pytest.mark.asyncio
async def test_option_change_evaluates_immediately(store: RecordStore, config: Config) -> None:
    session, published = make_session(store, config)

    session.set_query("united")
    await session.set_mode(SearchMode.EXACT)

    assert len(published) == 1
    snapshot = published[0]
    assert snapshot.options.mode is SearchMode.EXACT
    assert snapshot.is_empty_result is True
    assert snapshot.stats.total_results == 0

    # The cancelled debounce timer must not publish a second snapshot later.
    await asyncio.sleep(0.3)
    assert len(published) == 1


@pytest.mark.asyncio
async def test_set_field_and_filters(store: RecordStore, config: Config) -> None:
    session, published = make_session(store, config)
    session.search("united", mode=SearchMode.PARTIAL)
    await session.wait_settled(timeout=2)

    await session.set_filters(FilterSet().toggle_government())
    assert [r.record.code for r in published[-1].results] == ["GBR"]

    await session.set_field("code")
    assert published[-1].results == []
    assert published[-1].options.filters.government_only is True


@pytest.mark.asyncio
async def test_suggestions_are_published_with_results(
    store: RecordStore, config: Config
) -> None:
    session, _ = make_session(store, config)

    await session.search_from_suggestion("uni")

    assert [s.text for s in session.latest.suggestions] == ["United Kingdom", "United Nations"]


@pytest.mark.asyncio
async def test_clear_cancels_pending_and_publishes_browse_set(
    store: RecordStore, config: Config
) -> None:
    session, published = make_session(store, config)

    session.set_query("united")
    snapshot = session.clear()

    assert snapshot.stats is None
    assert snapshot.has_query is False
    assert snapshot.is_empty_result is False
    assert len(snapshot.results) == len(store)
    assert session.query == ""

    await asyncio.sleep(0.3)
    assert [s.query for s in published] == [""]


def test_clear_respects_filters_without_event_loop(store: RecordStore, config: Config) -> None:
    session = SearchSession(
        store, config=config, options=SearchOptions(filters=FilterSet(government_only=True))
    )

    snapshot = session.clear()

    assert [r.record.name for r in snapshot.results] == ["Germany", "Japan", "United Kingdom"]


@pytest.mark.asyncio
async def test_history_keeps_recent_distinct_queries(store: RecordStore, config: Config) -> None:
    session, _ = make_session(store, config)

    for query in ("japan", "united", "JAPAN"):
        await session.search_from_suggestion(query)

    assert session.history == ["JAPAN", "united"]

    session.clear_history()
    assert session.history == []


@pytest.mark.asyncio
async def test_failing_subscriber_does_not_block_others(
    store: RecordStore, config: Config
) -> None:
    session = SearchSession(store, config=config)
    received: List[SearchSnapshot] = []

    def broken(snapshot: SearchSnapshot) -> None:
        raise RuntimeError("render failed")

    session.subscribe(broken)
    unsubscribe = session.subscribe(received.append)

    await session.search_from_suggestion("japan")
    assert len(received) == 1

    unsubscribe()
    await session.search_from_suggestion("germany")
    assert len(received) == 1
