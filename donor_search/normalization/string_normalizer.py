"""String normalization for case- and accent-insensitive matching.

Every normalized character remembers the index of the original character it came
from, so matchers can compare normalized text and still report highlight spans
against the raw field value.
"""

from __future__ import annotations

import unicodedata
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Tuple

import yaml
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, field_validator

from donor_search.utils.config import NormalizationConfig


class NormalizationResult(BaseModel):
    """Result of a normalization call."""

    model_config = ConfigDict(frozen=True)

    original: str
    normalized: str
    offsets: Tuple[int, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.normalized

    @property
    def tokens(self) -> List[str]:
        return self.normalized.split()


class NormalizationRules(BaseModel):
    """Normalization rule set loaded from YAML."""

    model_config = ConfigDict(extra="ignore")

    lowercase: bool = True
    unicode_form: str = "NFKD"
    strip_combining_marks: bool = True
    collapse_whitespace: bool = True
    punctuation_replacements: Dict[str, str] = Field(
        default_factory=lambda: {
            "“": '"',
            "”": '"',
            "‘": "'",
            "’": "'",
            "–": "-",
            "—": "-",
            "−": "-",
        }
    )
    strip_characters: List[str] = Field(default_factory=lambda: ["\u200b", "\ufeff"])

    @classmethod
    def from_yaml(cls, rules_file: Path | None) -> NormalizationRules:
        """Load rules from YAML, merging with defaults."""
        base = cls()

        if rules_file is None:
            return base

        if not rules_file.exists():
            raise FileNotFoundError(f"Normalization rules file not found: {rules_file}")

        loaded = yaml.safe_load(rules_file.read_text(encoding="utf-8")) or {}
        if not isinstance(loaded, dict):
            raise ValueError("Normalization rules must be a mapping/dict.")

        merged = base.model_dump()
        for key, value in loaded.items():
            if key not in merged:
                continue
            if isinstance(merged[key], dict) and isinstance(value, dict):
                merged[key] = {**merged[key], **value}
            else:
                merged[key] = value

        return cls(**merged)

    @field_validator("unicode_form")
    @classmethod
    def _validate_unicode_form(cls, value: str) -> str:
        valid_forms = {"NFC", "NFD", "NFKC", "NFKD"}
        upper_value = value.upper()
        if upper_value not in valid_forms:
            raise ValueError(f"Invalid unicode_form '{value}'. Must be one of {valid_forms}.")
        return upper_value


class StringNormalizer:
    """Normalize catalog strings and queries while tracking source offsets."""

    def __init__(
        self,
        config: NormalizationConfig | None = None,
        rules_path: str | Path | None = None,
        rules: NormalizationRules | None = None,
    ) -> None:
        self.config = config or NormalizationConfig()

        if rules is not None:
            self.rules = rules
            source = "explicit rules"
        else:
            path = rules_path or self.config.rules_file
            rules_file = Path(path) if path else None
            if rules_file is not None and not rules_file.exists() and rules_path is None:
                # Configured default that was never created: fall back to built-in rules.
                rules_file = None
            self.rules = NormalizationRules.from_yaml(rules_file)
            source = str(rules_file) if rules_file else "built-in defaults"

        self._punctuation_translation = {
            ord(src): dest for src, dest in self.rules.punctuation_replacements.items()
        }
        self._strip = frozenset(self.rules.strip_characters)
        # Bounded memo for catalog field values, which are normalized once per query.
        self._cached_normalize = lru_cache(maxsize=self.config.cache_size)(self.normalize)

        logger.debug(f"Loaded normalization rules from {source}")

    def normalize(self, text: str | None) -> NormalizationResult:
        """Normalize a single string."""
        if text is None:
            return NormalizationResult(original="", normalized="")

        chars: List[str] = []
        offsets: List[int] = []

        for index, char in enumerate(text):
            for out in self._expand(char):
                if out.isspace():
                    # Leading whitespace is trimmed; runs collapse to one space.
                    if not chars:
                        continue
                    if self.rules.collapse_whitespace:
                        if chars[-1] == " ":
                            continue
                        out = " "
                chars.append(out)
                offsets.append(index)

        while chars and chars[-1].isspace():
            chars.pop()
            offsets.pop()

        return NormalizationResult(
            original=text, normalized="".join(chars), offsets=tuple(offsets)
        )

    def normalize_cached(self, text: str | None) -> NormalizationResult:
        """Normalize ``text`` through a bounded LRU cache."""
        return self._cached_normalize(text)

    def cache_info(self):
        return self._cached_normalize.cache_info()

    def fold(self, text: str | None) -> str:
        """Return only the normalized form of ``text``."""
        return self.normalize(text).normalized

    def normalize_batch(self, texts: List[str | None]) -> List[NormalizationResult]:
        """Normalize a batch of strings."""
        return [self.normalize(text) for text in texts]

    @staticmethod
    def to_original_span(result: NormalizationResult, start: int, end: int) -> Tuple[int, int]:
        """Map a half-open span over ``result.normalized`` back onto ``result.original``."""
        if end <= start or not result.offsets:
            return (0, 0)
        start = max(0, min(start, len(result.offsets) - 1))
        end = max(start + 1, min(end, len(result.offsets)))
        return (result.offsets[start], result.offsets[end - 1] + 1)

    def _expand(self, char: str) -> str:
        if char in self._strip:
            return ""
        piece = unicodedata.normalize(self.rules.unicode_form, char)
        if self.rules.strip_combining_marks:
            piece = "".join(c for c in piece if not unicodedata.combining(c))
        if self._punctuation_translation:
            piece = piece.translate(self._punctuation_translation)
        if self.rules.lowercase:
            piece = piece.lower()
        return piece
