"""Tests for RecordStore and the CSV catalog loader."""

from __future__ import annotations

from pathlib import Path

import pytest

from donor_search.catalog.models import Record
from donor_search.catalog.store import RecordStore, load_contributor_types

DONORS_CSV = """NAME,TYPE,CEB CODE,CONTRIBUTOR TYPE
Germany,1,DEU,C01
World Health Organization,0,WH02,C02
 Smith Family Trust ,0, SFT01 ,C99
Orphan Donor,0,,C03
Germany (duplicate),1,DEU,C01
"""

TYPES_CSV = """CODE,NAME,DEFINITION
C01,Government,National governments
C02,Multilateral,Intergovernmental bodies
,Nameless,Skipped
"""


@pytest.fixture
def catalog_files(tmp_path: Path) -> tuple[Path, Path]:
    donors = tmp_path / "DONORS.csv"
    types = tmp_path / "CONTRIBUTOR_TYPES.csv"
    # Spreadsheet exports often carry a byte-order mark.
    donors.write_text("\ufeff" + DONORS_CSV, encoding="utf-8")
    types.write_text(TYPES_CSV, encoding="utf-8")
    return donors, types


def test_loads_records_in_file_order(catalog_files: tuple[Path, Path]) -> None:
    donors, types = catalog_files

    store = RecordStore.from_csv(donors, types)

    assert [record.code for record in store] == ["DEU", "WH02", "SFT01", None]
    assert len(store) == 4


def test_resolves_contributor_types(catalog_files: tuple[Path, Path]) -> None:
    donors, types = catalog_files

    store = RecordStore.from_csv(donors, types)

    germany = store.get("DEU")
    assert germany.contributor_type_info.name == "Government"
    assert germany.contributor_type_name == "Government"
    assert germany.type_flag == "1"

    trust = store.get("SFT01")
    assert trust.name == "Smith Family Trust"
    assert trust.contributor_type_info is None
    assert trust.contributor_type_name == "Unknown"


def test_incomplete_rows_kept_but_flagged(catalog_files: tuple[Path, Path]) -> None:
    donors, _ = catalog_files

    store = RecordStore.from_csv(donors)

    orphan = store.get_all()[-1]
    assert orphan.name == "Orphan Donor"
    assert orphan.is_complete is False


def test_duplicate_codes_keep_first_row(catalog_files: tuple[Path, Path]) -> None:
    donors, _ = catalog_files

    store = RecordStore.from_csv(donors)

    assert store.get("DEU").name == "Germany"
    assert [record.code for record in store].count("DEU") == 1


def test_get_all_returns_same_snapshot(catalog_files: tuple[Path, Path]) -> None:
    donors, types = catalog_files

    store = RecordStore.from_csv(donors, types)

    assert store.get_all() is store.get_all()
    assert isinstance(store.get_all(), tuple)
    assert store.get("NOPE") is None


def test_missing_files_raise(tmp_path: Path, catalog_files: tuple[Path, Path]) -> None:
    donors, _ = catalog_files

    with pytest.raises(FileNotFoundError):
        RecordStore.from_csv(tmp_path / "missing.csv")
    with pytest.raises(FileNotFoundError):
        RecordStore.from_csv(donors, tmp_path / "missing_types.csv")


def test_missing_required_columns_raise(tmp_path: Path) -> None:
    donors = tmp_path / "DONORS.csv"
    donors.write_text("NAME,TYPE\nGermany,1\n", encoding="utf-8")

    with pytest.raises(ValueError, match="CEB CODE"):
        RecordStore.from_csv(donors)


def test_load_contributor_types_skips_blank_codes(catalog_files: tuple[Path, Path]) -> None:
    _, types = catalog_files

    infos = load_contributor_types(types)

    assert sorted(infos) == ["C01", "C02"]
    assert infos["C02"].definition == "Intergovernmental bodies"


def test_record_sort_key_is_case_insensitive() -> None:
    records = [
        Record(name="zeta", code="Z"),
        Record(name="Alpha", code="A2"),
        Record(name="alpha", code="A1"),
    ]

    ordered = sorted(records, key=lambda record: record.sort_key)

    assert [record.code for record in ordered] == ["A1", "A2", "Z"]


def test_bundled_catalog_loads() -> None:
    root = Path(__file__).resolve().parents[2]

    store = RecordStore.from_csv(
        root / "data" / "DONORS.csv", root / "data" / "CONTRIBUTOR_TYPES.csv"
    )

    assert len(store) > 0
    assert all(record.is_complete for record in store)
    assert store.get("UN01").contributor_type_name == "Multilateral"
