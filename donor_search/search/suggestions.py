"""Autosuggestions for the interactive search box."""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from loguru import logger

from donor_search.catalog.models import Record
from donor_search.normalization.string_normalizer import NormalizationResult, StringNormalizer
from donor_search.search.matchers import FuzzyMatcher
from donor_search.search.models import Suggestion, SuggestionKind
from donor_search.utils.config import Config, SearchConfig


class SuggestionGenerator:
    """Derive completions and corrections for a partially typed query.

    Prefix completions come first (shortest candidate first); remaining slots are filled
    with fuzzy corrections that clear a stricter floor than the main search.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        normalizer: Optional[StringNormalizer] = None,
    ) -> None:
        self.config = config or Config()
        self.search_config: SearchConfig = self.config.search
        self.normalizer = normalizer or StringNormalizer(config=self.config.normalization)
        self.fuzzy = FuzzyMatcher(
            config=self.search_config,
            normalizer=self.normalizer,
            threshold=self.search_config.suggestion_threshold,
        )

    def suggest(
        self, records: Sequence[Record], query: str | None, limit: int | None = None
    ) -> List[Suggestion]:
        """Return up to ``limit`` distinct suggestions for ``query``."""
        limit = self.search_config.suggestion_limit if limit is None else limit
        normalized_query = self.normalizer.normalize(query if isinstance(query, str) else "")
        if normalized_query.is_empty or limit <= 0:
            return []

        candidates = list(self._candidates(records))
        prefix = normalized_query.normalized

        prefix_hits: Dict[str, str] = {}
        for text, normalized in candidates:
            if normalized.normalized.startswith(prefix) and normalized.normalized not in prefix_hits:
                prefix_hits[normalized.normalized] = text

        ordered_prefix = sorted(prefix_hits.items(), key=lambda item: (len(item[0]), item[0]))
        suggestions = [
            Suggestion(text=text, kind=SuggestionKind.PREFIX)
            for _, text in ordered_prefix[:limit]
        ]
        if len(suggestions) >= limit:
            return suggestions

        corrections: Dict[str, Tuple[float, str]] = {}
        for text, normalized in candidates:
            key = normalized.normalized
            if key in prefix_hits:
                continue
            score = self.fuzzy.similarity(normalized, normalized_query)
            if score < self.fuzzy.threshold:
                continue
            if key not in corrections or score > corrections[key][0]:
                corrections[key] = (score, text)

        ordered_corrections = sorted(corrections.items(), key=lambda item: (-item[1][0], item[0]))
        for _, (score, text) in ordered_corrections[: limit - len(suggestions)]:
            suggestions.append(Suggestion(text=text, kind=SuggestionKind.CORRECTION, score=score))

        logger.debug(f"Generated {len(suggestions)} suggestions for {query!r}")
        return suggestions

    def _candidates(self, records: Iterable[Record]) -> Iterable[Tuple[str, NormalizationResult]]:
        for record in records:
            if not record.is_complete:
                continue
            for value in (record.name, record.code):
                yield value, self.normalizer.normalize_cached(value)
