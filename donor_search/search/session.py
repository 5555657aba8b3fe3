"""Interactive search session: debouncing, stale-result suppression and publishing.

A session owns the current query and options for one user. Keystrokes go through
``set_query`` and are debounced; option changes re-evaluate immediately. Every input
bumps a generation counter, and an evaluation only publishes if its generation is still
the latest when it finishes, so a slow, older evaluation can never overwrite a newer one.

States: idle -> debouncing -> evaluating -> settled (-> debouncing on the next input).
Requires a running asyncio event loop for everything except ``clear``.
"""

from __future__ import annotations

import asyncio
from collections import deque
from enum import Enum
from typing import Any, Callable, Deque, List, Optional, Set

from loguru import logger

from donor_search.catalog.store import RecordStore
from donor_search.search.evaluator import QueryEvaluator
from donor_search.search.models import (
    FilterSet,
    SearchField,
    SearchMode,
    SearchOptions,
    SearchSnapshot,
    Suggestion,
)
from donor_search.search.suggestions import SuggestionGenerator
from donor_search.utils.config import Config, SearchConfig

Subscriber = Callable[[SearchSnapshot], None]


class SessionState(str, Enum):
    """Lifecycle of the current input."""

    IDLE = "idle"
    DEBOUNCING = "debouncing"
    EVALUATING = "evaluating"
    SETTLED = "settled"


class SearchSession:
    """Single-writer owner of one user's query, options and published results."""

    def __init__(
        self,
        store: RecordStore,
        config: Optional[Config] = None,
        evaluator: Optional[QueryEvaluator] = None,
        suggester: Optional[SuggestionGenerator] = None,
        options: Optional[SearchOptions] = None,
    ) -> None:
        """Initialize a search session.

        Args:
            store: Read-only record store to search
            config: Configuration object (defaults are used when omitted)
            evaluator: Query evaluator (created if None)
            suggester: Suggestion generator (created if None, sharing the evaluator's normalizer)
            options: Initial mode/field/filters
        """
        self.config = config or Config()
        self.search_config: SearchConfig = self.config.search
        self.store = store
        self.evaluator = evaluator or QueryEvaluator(config=self.config)
        self.suggester = suggester or SuggestionGenerator(
            config=self.config, normalizer=self.evaluator.normalizer
        )

        self._query = ""
        self._options = options or SearchOptions()
        self._state = SessionState.IDLE
        self._generation = 0
        self._timer: asyncio.TimerHandle | None = None
        self._inflight: asyncio.Task[None] | None = None
        self._tasks: Set[asyncio.Task[None]] = set()
        self._subscribers: List[Subscriber] = []
        self._latest: SearchSnapshot | None = None
        self._settled = asyncio.Event()
        self._settled.set()
        self._history: Deque[str] | None = (
            deque(maxlen=self.search_config.history_size)
            if self.search_config.history_size
            else None
        )

    @property
    def query(self) -> str:
        """Latest text typed by the user (updated before debouncing)."""
        return self._query

    @property
    def options(self) -> SearchOptions:
        return self._options

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def latest(self) -> SearchSnapshot | None:
        """Most recently published snapshot."""
        return self._latest

    @property
    def history(self) -> List[str]:
        """Recently settled queries, most recent first."""
        return list(self._history) if self._history is not None else []

    @property
    def debounce_seconds(self) -> float:
        return self.search_config.debounce_ms / 1000.0

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback for published snapshots; returns an unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def set_query(self, text: str) -> None:
        """Store ``text`` now and evaluate once typing has paused."""
        self._query = text if isinstance(text, str) else ""
        self._schedule(debounce=True)

    def search(
        self,
        query: str,
        mode: SearchMode | str | None = None,
        field: SearchField | str | None = None,
        filters: FilterSet | None = None,
    ) -> None:
        """Set query and options together; evaluation is debounced like typing."""
        self._options = self._merged_options(mode=mode, field=field, filters=filters)
        self.set_query(query)

    def set_mode(self, mode: SearchMode | str) -> asyncio.Task[None]:
        """Switch matching strategy and re-evaluate immediately."""
        self._options = self._merged_options(mode=mode)
        return self._schedule(debounce=False)

    def set_field(self, field: SearchField | str) -> asyncio.Task[None]:
        """Switch field scope and re-evaluate immediately."""
        self._options = self._merged_options(field=field)
        return self._schedule(debounce=False)

    def set_filters(self, filters: FilterSet) -> asyncio.Task[None]:
        """Replace the filter set and re-evaluate immediately."""
        self._options = self._merged_options(filters=filters)
        return self._schedule(debounce=False)

    def search_from_suggestion(self, suggestion: Suggestion | str) -> asyncio.Task[None]:
        """Adopt a suggestion as the query and evaluate without waiting."""
        self._query = suggestion.text if isinstance(suggestion, Suggestion) else str(suggestion)
        return self._schedule(debounce=False)

    def clear(self) -> SearchSnapshot:
        """Reset the query and synchronously publish the filter-only record set."""
        self._cancel_pending()
        self._generation += 1
        self._query = ""

        results, _ = self.evaluator.evaluate(
            self.store.get_all(),
            "",
            self._options.mode,
            self._options.field,
            self._options.filters,
        )
        snapshot = SearchSnapshot(
            query="", options=self._options, results=results, generation=self._generation
        )
        self._publish(snapshot)
        return snapshot

    def clear_history(self) -> None:
        if self._history is not None:
            self._history.clear()

    async def wait_settled(self, timeout: float | None = None) -> SearchSnapshot | None:
        """Wait until the latest input has been published."""
        if timeout is None:
            await self._settled.wait()
        else:
            await asyncio.wait_for(self._settled.wait(), timeout)
        return self._latest

    def close(self) -> None:
        """Drop pending work and subscribers."""
        self._cancel_pending()
        for task in list(self._tasks):
            task.cancel()
        self._generation += 1
        self._subscribers.clear()
        self._settled.set()

    def _merged_options(
        self,
        mode: SearchMode | str | None = None,
        field: SearchField | str | None = None,
        filters: FilterSet | None = None,
    ) -> SearchOptions:
        update: dict[str, Any] = {}
        if mode is not None:
            update["mode"] = SearchMode.parse(mode, default=self._options.mode)
        if field is not None:
            update["field"] = SearchField.parse(field, default=self._options.field)
        if filters is not None:
            update["filters"] = filters
        return self._options.model_copy(update=update) if update else self._options

    def _schedule(self, debounce: bool) -> asyncio.Task[None] | None:
        loop = asyncio.get_running_loop()
        self._cancel_timer()
        self._generation += 1
        self._settled.clear()

        if debounce:
            self._state = SessionState.DEBOUNCING
            self._timer = loop.call_later(self.debounce_seconds, self._fire, self._generation)
            return None
        return self._start_evaluation(self._generation)

    def _fire(self, generation: int) -> None:
        self._timer = None
        if generation != self._generation:
            return
        self._start_evaluation(generation)

    def _start_evaluation(self, generation: int) -> asyncio.Task[None]:
        self._state = SessionState.EVALUATING
        task = asyncio.get_running_loop().create_task(
            self._evaluate(generation, self._query, self._options)
        )
        self._inflight = task
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _evaluate(self, generation: int, query: str, options: SearchOptions) -> None:
        records = self.store.get_all()
        try:
            (results, stats), suggestions = await asyncio.gather(
                self._run(
                    self.evaluator.evaluate,
                    records,
                    query,
                    options.mode,
                    options.field,
                    options.filters,
                ),
                self._run(self.suggester.suggest, records, query),
            )
        except Exception as e:
            logger.error(f"Search evaluation failed for {query!r}: {e}")
            if generation == self._generation:
                self._state = SessionState.SETTLED
                self._settled.set()
            return

        if generation != self._generation:
            logger.debug(
                f"Discarding stale results for {query!r} "
                f"(generation {generation}, current {self._generation})"
            )
            return

        has_query = not self.evaluator.normalizer.normalize(query).is_empty
        self._publish(
            SearchSnapshot(
                query=query,
                options=options,
                results=results,
                stats=stats if has_query else None,
                suggestions=suggestions,
                generation=generation,
            )
        )

    async def _run(self, func: Callable[..., Any], *args: Any) -> Any:
        if self.search_config.offload_to_thread:
            return await asyncio.to_thread(func, *args)
        # Yield once so newer input queued on the loop can supersede this evaluation.
        await asyncio.sleep(0)
        return func(*args)

    def _publish(self, snapshot: SearchSnapshot) -> None:
        self._latest = snapshot
        self._state = SessionState.SETTLED
        if snapshot.stats is not None:
            self._remember(snapshot.query)

        for callback in list(self._subscribers):
            try:
                callback(snapshot)
            except Exception as e:
                logger.error(f"Search subscriber {callback!r} failed: {e}")

        self._settled.set()

    def _remember(self, query: str) -> None:
        if self._history is None:
            return
        text = query.strip()
        for existing in list(self._history):
            if existing.casefold() == text.casefold():
                self._history.remove(existing)
        self._history.appendleft(text)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _cancel_pending(self) -> None:
        self._cancel_timer()
        if self._inflight is not None and not self._inflight.done():
            self._inflight.cancel()
        self._inflight = None
