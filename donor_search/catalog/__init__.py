"""Donor catalog package."""

from donor_search.catalog.models import ContributorTypeInfo, Record
from donor_search.catalog.store import RecordStore, load_contributor_types

__all__ = [
    "ContributorTypeInfo",
    "Record",
    "RecordStore",
    "load_contributor_types",
]
