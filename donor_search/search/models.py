"""Shared models for the donor search engine."""

from __future__ import annotations

from enum import Enum
from typing import FrozenSet, Iterable, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

from donor_search.catalog.models import Record


class SearchMode(str, Enum):
    """Matching strategy."""

    EXACT = "exact"
    PARTIAL = "partial"
    FUZZY = "fuzzy"
    PHONETIC = "phonetic"  # Soundex "sounds like"

    @classmethod
    def parse(cls, value: str | SearchMode | None, default: SearchMode | None = None) -> SearchMode:
        """Coerce user input to a mode, falling back to ``default`` (fuzzy) when unknown."""
        fallback = default or cls.FUZZY
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return fallback
        key = value.strip().lower()
        if key == "soundex":
            return cls.PHONETIC
        try:
            return cls(key)
        except ValueError:
            return fallback


class SearchField(str, Enum):
    """Record attribute(s) compared against the query."""

    ALL = "all"
    NAME = "name"
    CODE = "code"

    @classmethod
    def parse(
        cls, value: str | SearchField | None, default: SearchField | None = None
    ) -> SearchField:
        """Coerce user input to a field scope, falling back to ``default`` (all)."""
        fallback = default or cls.ALL
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return fallback
        try:
            return cls(value.strip().lower())
        except ValueError:
            return fallback


class FilterSet(BaseModel):
    """Pre-filter applied before any scoring."""

    model_config = ConfigDict(frozen=True)

    government_only: bool = False
    non_government_only: bool = False
    contributor_types: FrozenSet[str] = Field(default_factory=frozenset)

    @model_validator(mode="after")
    def _check_exclusive(self) -> FilterSet:
        if self.government_only and self.non_government_only:
            raise ValueError("government_only and non_government_only are mutually exclusive")
        return self

    @property
    def is_active(self) -> bool:
        return self.government_only or self.non_government_only or bool(self.contributor_types)

    def toggle_government(self) -> FilterSet:
        """Flip the government-only flag; turning it on clears non-government-only."""
        return self.model_copy(
            update={"government_only": not self.government_only, "non_government_only": False}
        )

    def toggle_non_government(self) -> FilterSet:
        """Flip the non-government-only flag; turning it on clears government-only."""
        return self.model_copy(
            update={
                "non_government_only": not self.non_government_only,
                "government_only": False,
            }
        )

    def with_contributor_types(self, codes: Iterable[str]) -> FilterSet:
        return self.model_copy(update={"contributor_types": frozenset(codes)})

    def cleared(self) -> FilterSet:
        return FilterSet()

    def allows(self, record: Record, government_codes: Iterable[str]) -> bool:
        """Return True when ``record`` passes every active predicate."""
        code = record.contributor_type_code
        if self.government_only or self.non_government_only:
            is_government = record.is_government(government_codes)
            if self.government_only and not is_government:
                return False
            if self.non_government_only and is_government:
                return False
        if self.contributor_types and code not in self.contributor_types:
            return False
        return True


class HighlightSpan(BaseModel):
    """Half-open character range ``[start, end)`` of a matched region."""

    model_config = ConfigDict(frozen=True)

    start: int = Field(..., ge=0)
    end: int = Field(..., ge=0)


class MatchOutcome(BaseModel):
    """Result of scoring one field value against one query."""

    model_config = ConfigDict(frozen=True)

    is_match: bool
    score: Optional[float] = Field(None, ge=0.0, le=1.0)
    spans: Tuple[HighlightSpan, ...] = ()

    @property
    def rank_score(self) -> float:
        """Score used for ordering; binary strategies rank as 1.0."""
        if not self.is_match:
            return 0.0
        return 1.0 if self.score is None else self.score

    @classmethod
    def no_match(cls) -> MatchOutcome:
        return cls(is_match=False)


class MatchResult(BaseModel):
    """A record that matched the current query."""

    model_config = ConfigDict(frozen=True)

    record: Record
    score: Optional[float] = Field(None, ge=0.0, le=1.0, description="Absent for exact/partial")
    highlighted_name: Optional[str] = None
    highlighted_code: Optional[str] = None
    name_spans: Tuple[HighlightSpan, ...] = ()
    code_spans: Tuple[HighlightSpan, ...] = ()
    matched_field: Optional[Literal["name", "code"]] = None

    @property
    def rank_score(self) -> float:
        return 1.0 if self.score is None else self.score


class SearchStats(BaseModel):
    """Statistics for one evaluation."""

    model_config = ConfigDict(frozen=True)

    total_results: int = Field(..., ge=0)
    search_time: float = Field(..., ge=0.0, description="Elapsed wall time in milliseconds")
    search_type: SearchMode
    query: str

    @property
    def formatted_time(self) -> str:
        """Human-friendly elapsed time (``<1ms``, ``42ms``, ``1.25s``)."""
        if self.search_time < 1:
            return "<1ms"
        if self.search_time < 1000:
            return f"{round(self.search_time)}ms"
        return f"{self.search_time / 1000:.2f}s"


class SuggestionKind(str, Enum):
    """Origin of an autosuggestion."""

    PREFIX = "prefix"
    CORRECTION = "correction"


class Suggestion(BaseModel):
    """Likely completion or correction for the current query."""

    model_config = ConfigDict(frozen=True)

    text: str
    kind: SuggestionKind
    score: Optional[float] = Field(None, ge=0.0, le=1.0)


class SearchOptions(BaseModel):
    """Discrete user choices that accompany a query."""

    model_config = ConfigDict(frozen=True)

    mode: SearchMode = SearchMode.FUZZY
    field: SearchField = SearchField.ALL
    filters: FilterSet = Field(default_factory=FilterSet)


class SearchSnapshot(BaseModel):
    """What a session publishes to its subscribers.

    ``stats`` is ``None`` while no query has been entered (browse state); a query with no
    hits has stats with ``total_results == 0``.
    """

    model_config = ConfigDict(frozen=True)

    query: str
    options: SearchOptions
    results: List[MatchResult] = Field(default_factory=list)
    stats: Optional[SearchStats] = None
    suggestions: List[Suggestion] = Field(default_factory=list)
    generation: int = 0

    @property
    def has_query(self) -> bool:
        return self.stats is not None

    @property
    def is_empty_result(self) -> bool:
        """True when a query ran and matched nothing."""
        return self.stats is not None and self.stats.total_results == 0
