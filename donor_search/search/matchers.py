"""Matching strategies used by the query evaluator.

Each matcher scores one field value against one query:

- ExactMatcher: normalized equality
- PartialMatcher: literal normalized substring, every occurrence highlighted
- FuzzyMatcher: normalized Levenshtein similarity (RapidFuzz) with a tunable threshold
- PhoneticMatcher: Soundex code equality per whitespace token

All comparisons run on StringNormalizer output, so they are case- and accent-insensitive
and ignore surrounding whitespace. Highlights are reported as spans over the original
field value; ``render_highlight`` turns them into marker-wrapped strings.
"""

from __future__ import annotations

from difflib import SequenceMatcher
from typing import Dict, Iterable, List, Sequence, Tuple

from rapidfuzz.distance import Levenshtein

from donor_search.normalization.string_normalizer import NormalizationResult, StringNormalizer
from donor_search.search.models import HighlightSpan, MatchOutcome, SearchMode
from donor_search.utils.config import SearchConfig

SOUNDEX_CODES: Dict[str, str] = {
    **dict.fromkeys("BFPV", "1"),
    **dict.fromkeys("CGJKQSXZ", "2"),
    **dict.fromkeys("DT", "3"),
    "L": "4",
    **dict.fromkeys("MN", "5"),
    "R": "6",
}
SOUNDEX_LENGTH = 4
# Uncoded letters that do not separate two consonants with the same code.
SOUNDEX_TRANSPARENT = frozenset("HW")


def soundex(value: str) -> str:
    """Encode ``value`` with American Soundex.

    Only ASCII letters are considered. Returns an empty string when there are none.
    """
    letters = [char for char in value.upper() if "A" <= char <= "Z"]
    if not letters:
        return ""

    first = letters[0]
    encoded = [first]
    previous = SOUNDEX_CODES.get(first, "")

    for letter in letters[1:]:
        code = SOUNDEX_CODES.get(letter)
        if code:
            if code != previous:
                encoded.append(code)
                if len(encoded) == SOUNDEX_LENGTH:
                    break
            previous = code
        elif letter not in SOUNDEX_TRANSPARENT:
            previous = ""

    return "".join(encoded).ljust(SOUNDEX_LENGTH, "0")


def merge_spans(spans: Iterable[Tuple[int, int]]) -> List[Tuple[int, int]]:
    """Merge overlapping or touching half-open spans."""
    merged: List[Tuple[int, int]] = []
    for start, end in sorted(spans):
        if end <= start:
            continue
        if merged and start <= merged[-1][1]:
            merged[-1] = (merged[-1][0], max(merged[-1][1], end))
        else:
            merged.append((start, end))
    return merged


def render_highlight(
    text: str,
    spans: Sequence[HighlightSpan],
    open_marker: str = "<mark>",
    close_marker: str = "</mark>",
) -> str:
    """Wrap each span of ``text`` in the given markers.

    Returns ``text`` unchanged when there is nothing to highlight.
    """
    if not spans:
        return text

    pieces: List[str] = []
    cursor = 0
    for start, end in merge_spans((span.start, span.end) for span in spans):
        start = max(start, cursor)
        end = min(end, len(text))
        if start >= end:
            continue
        pieces.append(text[cursor:start])
        pieces.append(f"{open_marker}{text[start:end]}{close_marker}")
        cursor = end
    pieces.append(text[cursor:])
    return "".join(pieces)


def normalized_similarity(left: str, right: str) -> float:
    """``1 - levenshtein / longest`` clamped to ``[0, 1]``."""
    longest = max(len(left), len(right))
    if longest == 0:
        return 0.0
    distance = Levenshtein.distance(left, right)
    return max(0.0, 1.0 - distance / longest)


class BaseMatcher:
    """Common normalization and span mapping for all strategies."""

    mode: SearchMode

    def __init__(
        self,
        config: SearchConfig | None = None,
        normalizer: StringNormalizer | None = None,
    ) -> None:
        self.config = config or SearchConfig()
        self.normalizer = normalizer or StringNormalizer()

    def match(self, field_value: str | None, query: str | None) -> MatchOutcome:
        """Score raw ``field_value`` against raw ``query``."""
        return self.match_normalized(
            self.normalizer.normalize(field_value), self.normalizer.normalize(query)
        )

    def match_normalized(
        self, field: NormalizationResult, query: NormalizationResult
    ) -> MatchOutcome:
        """Score already-normalized inputs (lets callers normalize the query once)."""
        if field.is_empty or query.is_empty:
            return MatchOutcome.no_match()
        return self._match(field, query)

    def _match(self, field: NormalizationResult, query: NormalizationResult) -> MatchOutcome:
        raise NotImplementedError

    def _spans(
        self, field: NormalizationResult, normalized_spans: Iterable[Tuple[int, int]]
    ) -> Tuple[HighlightSpan, ...]:
        original = [
            self.normalizer.to_original_span(field, start, end)
            for start, end in normalized_spans
        ]
        return tuple(HighlightSpan(start=start, end=end) for start, end in merge_spans(original))


class ExactMatcher(BaseMatcher):
    """Whole-value equality."""

    mode = SearchMode.EXACT

    def _match(self, field: NormalizationResult, query: NormalizationResult) -> MatchOutcome:
        if field.normalized != query.normalized:
            return MatchOutcome.no_match()
        return MatchOutcome(
            is_match=True, spans=self._spans(field, [(0, len(field.normalized))])
        )


class PartialMatcher(BaseMatcher):
    """Literal substring containment."""

    mode = SearchMode.PARTIAL

    def _match(self, field: NormalizationResult, query: NormalizationResult) -> MatchOutcome:
        haystack = field.normalized
        needle = query.normalized

        found: List[Tuple[int, int]] = []
        index = haystack.find(needle)
        while index != -1:
            found.append((index, index + len(needle)))
            index = haystack.find(needle, index + 1)

        if not found:
            return MatchOutcome.no_match()
        return MatchOutcome(is_match=True, spans=self._spans(field, found))


class FuzzyMatcher(BaseMatcher):
    """Normalized edit-distance similarity.

    A single-word query is also compared against each word of a multi-word field, so
    ``"helth"`` finds ``"World Health Organization"``. Multi-word queries are compared
    against the whole value only.
    """

    mode = SearchMode.FUZZY

    def __init__(
        self,
        config: SearchConfig | None = None,
        normalizer: StringNormalizer | None = None,
        threshold: float | None = None,
    ) -> None:
        super().__init__(config=config, normalizer=normalizer)
        self.threshold = self.config.fuzzy_threshold if threshold is None else threshold

    def similarity(self, field: NormalizationResult, query: NormalizationResult) -> float:
        """Best similarity between the query and the field (or one of its words)."""
        if field.is_empty or query.is_empty:
            return 0.0

        candidates = [field.normalized]
        field_tokens = field.tokens
        if len(field_tokens) > 1 and len(query.tokens) == 1:
            candidates.extend(field_tokens)

        return max(normalized_similarity(query.normalized, candidate) for candidate in candidates)

    def _match(self, field: NormalizationResult, query: NormalizationResult) -> MatchOutcome:
        score = self.similarity(field, query)
        if score < self.threshold:
            return MatchOutcome(is_match=False, score=score)
        return MatchOutcome(is_match=True, score=score, spans=self._common_run(field, query))

    def _common_run(
        self, field: NormalizationResult, query: NormalizationResult
    ) -> Tuple[HighlightSpan, ...]:
        matcher = SequenceMatcher(None, query.normalized, field.normalized, autojunk=False)
        block = matcher.find_longest_match(0, len(query.normalized), 0, len(field.normalized))
        if block.size < self.config.min_highlight_length:
            return ()
        return self._spans(field, [(block.b, block.b + block.size)])


class PhoneticMatcher(BaseMatcher):
    """Soundex "sounds like" matching on whitespace tokens.

    The code of the whole query must equal the code of some word of the field. A
    multi-word query also matches when every one of its words shares a code with some
    word of the field.
    """

    mode = SearchMode.PHONETIC

    def _match(self, field: NormalizationResult, query: NormalizationResult) -> MatchOutcome:
        field_codes = {code for code in map(soundex, field.tokens) if code}
        if not field_codes:
            return MatchOutcome.no_match()

        if soundex(query.normalized) in field_codes:
            return MatchOutcome(is_match=True, score=1.0)

        query_codes = [code for code in map(soundex, query.tokens) if code]
        if len(query.tokens) > 1 and query_codes and all(
            code in field_codes for code in query_codes
        ):
            return MatchOutcome(is_match=True, score=1.0)
        return MatchOutcome.no_match()


MATCHERS: Dict[SearchMode, type[BaseMatcher]] = {
    SearchMode.EXACT: ExactMatcher,
    SearchMode.PARTIAL: PartialMatcher,
    SearchMode.FUZZY: FuzzyMatcher,
    SearchMode.PHONETIC: PhoneticMatcher,
}


def build_matcher(
    mode: SearchMode | str,
    config: SearchConfig | None = None,
    normalizer: StringNormalizer | None = None,
) -> BaseMatcher:
    """Create the matcher for ``mode`` (unknown modes fall back to fuzzy)."""
    matcher_cls = MATCHERS[SearchMode.parse(mode)]
    return matcher_cls(config=config, normalizer=normalizer)
