"""Normalization package."""

from donor_search.normalization.string_normalizer import (
    NormalizationResult,
    NormalizationRules,
    StringNormalizer,
)

__all__ = [
    "NormalizationResult",
    "NormalizationRules",
    "StringNormalizer",
]
