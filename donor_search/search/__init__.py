"""Interactive donor search engine."""

from donor_search.search.evaluator import QueryEvaluator
from donor_search.search.export import export_results_csv, score_band
from donor_search.search.matchers import (
    ExactMatcher,
    FuzzyMatcher,
    PartialMatcher,
    PhoneticMatcher,
    build_matcher,
    render_highlight,
    soundex,
)
from donor_search.search.models import (
    FilterSet,
    HighlightSpan,
    MatchOutcome,
    MatchResult,
    SearchField,
    SearchMode,
    SearchOptions,
    SearchSnapshot,
    SearchStats,
    Suggestion,
    SuggestionKind,
)
from donor_search.search.session import SearchSession, SessionState
from donor_search.search.suggestions import SuggestionGenerator

__all__ = [
    "ExactMatcher",
    "FilterSet",
    "FuzzyMatcher",
    "HighlightSpan",
    "MatchOutcome",
    "MatchResult",
    "PartialMatcher",
    "PhoneticMatcher",
    "QueryEvaluator",
    "SearchField",
    "SearchMode",
    "SearchOptions",
    "SearchSession",
    "SearchSnapshot",
    "SearchStats",
    "SessionState",
    "Suggestion",
    "SuggestionGenerator",
    "SuggestionKind",
    "build_matcher",
    "export_results_csv",
    "render_highlight",
    "score_band",
    "soundex",
]
