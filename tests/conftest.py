"""Shared fixtures for donor search tests."""

from __future__ import annotations

from typing import List

import pytest

from donor_search.catalog.models import ContributorTypeInfo, Record
from donor_search.catalog.store import RecordStore
from donor_search.utils.config import Config, NormalizationConfig, SearchConfig

GOVERNMENT = ContributorTypeInfo(name="Government", definition="National governments")
MULTILATERAL = ContributorTypeInfo(name="Multilateral", definition="Intergovernmental bodies")
NGO = ContributorTypeInfo(name="NGOs", definition="Non-governmental organizations")
PRIVATE = ContributorTypeInfo(name="Private Sector", definition="Companies")

TYPE_INFOS = {"C01": GOVERNMENT, "C02": MULTILATERAL, "C03": NGO, "C04": PRIVATE}


def make_record(name: str | None, code: str | None, type_code: str | None = "C02") -> Record:
    return Record(
        name=name,
        code=code,
        contributor_type_code=type_code,
        contributor_type_info=TYPE_INFOS.get(type_code) if type_code else None,
    )


@pytest.fixture
def records() -> List[Record]:
    return [
        make_record("Germany", "DEU", "C01"),
        make_record("Japan", "JPN", "C01"),
        make_record("United Kingdom", "GBR", "C01"),
        make_record("United Nations", "UN01", "C02"),
        make_record("World Health Organization", "WH02", "C02"),
        make_record("European Commission", "EC01", "C02"),
        make_record("Médecins Sans Frontières", "MSF01", "C03"),
        make_record("Bill & Melinda Gates Foundation", "BMGF", "C03"),
        make_record("Smith Family Trust", "SFT01", "C04"),
    ]


@pytest.fixture
def store(records: List[Record]) -> RecordStore:
    return RecordStore(records)


@pytest.fixture
def config() -> Config:
    """Configuration that ignores any rules file on disk."""
    return Config(
        search=SearchConfig(debounce_ms=200),
        normalization=NormalizationConfig(rules_file=None),
    )
