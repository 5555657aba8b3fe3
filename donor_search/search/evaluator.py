"""Query evaluation over the donor catalog.

Pipeline per call:
1. Filter records (government / non-government / contributor types)
2. Empty query: return every filtered record unscored, sorted by name
3. Score the selected field(s) with the matcher for the selected mode
4. Keep matches, one result per donor code
5. Order by score (binary strategies rank as 1.0), then name, then code
6. Stamp SearchStats
"""

from __future__ import annotations

import time
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from loguru import logger

from donor_search.catalog.models import Record
from donor_search.normalization.string_normalizer import NormalizationResult, StringNormalizer
from donor_search.search.matchers import BaseMatcher, build_matcher, render_highlight
from donor_search.search.models import (
    FilterSet,
    MatchOutcome,
    MatchResult,
    SearchField,
    SearchMode,
    SearchStats,
)
from donor_search.utils.config import CatalogConfig, Config, SearchConfig


class QueryEvaluator:
    """Apply a matching strategy, field scope and filter set to a record collection."""

    def __init__(
        self,
        config: Optional[Config] = None,
        normalizer: Optional[StringNormalizer] = None,
    ) -> None:
        """Initialize the evaluator.

        Args:
            config: Configuration object (defaults are used when omitted)
            normalizer: Shared normalizer (created from config if None)
        """
        self.config = config or Config()
        self.search_config: SearchConfig = self.config.search
        self.catalog_config: CatalogConfig = self.config.catalog
        self.normalizer = normalizer or StringNormalizer(config=self.config.normalization)
        self.government_codes = frozenset(self.catalog_config.government_type_codes)

        self._matchers: Dict[SearchMode, BaseMatcher] = {
            mode: build_matcher(mode, config=self.search_config, normalizer=self.normalizer)
            for mode in SearchMode
        }

    def matcher_for(self, mode: SearchMode | str) -> BaseMatcher:
        """Shared matcher instance for ``mode`` (unknown modes map to fuzzy)."""
        return self._matchers[SearchMode.parse(mode)]

    def apply_filters(self, records: Iterable[Record], filters: FilterSet | None) -> List[Record]:
        """Keep searchable records that satisfy ``filters``."""
        filters = filters or FilterSet()
        return [
            record
            for record in records
            if record.is_complete and filters.allows(record, self.government_codes)
        ]

    def evaluate(
        self,
        records: Sequence[Record],
        query: str | None,
        mode: SearchMode | str = SearchMode.FUZZY,
        field: SearchField | str = SearchField.ALL,
        filters: FilterSet | None = None,
    ) -> Tuple[List[MatchResult], SearchStats]:
        """Search ``records`` and return ordered results with statistics.

        Never raises for any query string; unknown modes/fields fall back to defaults.
        """
        start_time = time.perf_counter()
        raw_query = query if isinstance(query, str) else ""
        mode = SearchMode.parse(mode)
        field = SearchField.parse(field)

        candidates = self.apply_filters(records, filters)
        normalized_query = self.normalizer.normalize(raw_query)

        if normalized_query.is_empty:
            results = [MatchResult(record=record) for record in _unique_by_code(candidates)]
            results.sort(key=lambda result: result.record.sort_key)
            return results, self._stats(results, start_time, mode, raw_query)

        matcher = self.matcher_for(mode)
        results = []
        for record in _unique_by_code(candidates):
            result = self._evaluate_record(record, normalized_query, matcher, field)
            if result is not None:
                results.append(result)

        results.sort(key=lambda result: (-result.rank_score, *result.record.sort_key))

        stats = self._stats(results, start_time, mode, raw_query)
        logger.debug(
            f"Evaluated {mode.value} search over {len(candidates)} records: "
            f"{stats.total_results} results in {stats.search_time:.2f}ms"
        )
        return results, stats

    def _evaluate_record(
        self,
        record: Record,
        query: NormalizationResult,
        matcher: BaseMatcher,
        field: SearchField,
    ) -> MatchResult | None:
        name_outcome = MatchOutcome.no_match()
        code_outcome = MatchOutcome.no_match()

        if field in (SearchField.ALL, SearchField.NAME):
            name_outcome = matcher.match_normalized(self._normalize(record.name), query)
        if field in (SearchField.ALL, SearchField.CODE):
            code_outcome = matcher.match_normalized(self._normalize(record.code), query)

        if not (name_outcome.is_match or code_outcome.is_match):
            return None

        # Name wins ties so the reported field is stable.
        if code_outcome.rank_score > name_outcome.rank_score:
            best, matched_field = code_outcome, "code"
        else:
            best, matched_field = name_outcome, "name"

        name_spans = name_outcome.spans if name_outcome.is_match else ()
        code_spans = code_outcome.spans if code_outcome.is_match else ()
        open_marker = self.search_config.highlight_open
        close_marker = self.search_config.highlight_close

        return MatchResult(
            record=record,
            score=best.score if matcher.mode in (SearchMode.FUZZY, SearchMode.PHONETIC) else None,
            highlighted_name=render_highlight(record.name, name_spans, open_marker, close_marker),
            highlighted_code=render_highlight(record.code, code_spans, open_marker, close_marker),
            name_spans=name_spans,
            code_spans=code_spans,
            matched_field=matched_field,
        )

    def _normalize(self, value: str | None) -> NormalizationResult:
        # Records are immutable, so normalized field values can be reused across queries.
        return self.normalizer.normalize_cached(value)

    @staticmethod
    def _stats(
        results: List[MatchResult], start_time: float, mode: SearchMode, query: str
    ) -> SearchStats:
        return SearchStats(
            total_results=len(results),
            search_time=(time.perf_counter() - start_time) * 1000,
            search_type=mode,
            query=query,
        )


def _unique_by_code(records: Iterable[Record]) -> List[Record]:
    seen: set[str] = set()
    unique: List[Record] = []
    for record in records:
        if record.code in seen:
            continue
        seen.add(record.code)
        unique.append(record)
    return unique
