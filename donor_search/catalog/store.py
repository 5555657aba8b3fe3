"""Immutable in-memory donor catalog and its CSV loader."""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Tuple

from loguru import logger

from donor_search.catalog.models import ContributorTypeInfo, Record

DONOR_NAME_COLUMN = "NAME"
DONOR_TYPE_COLUMN = "TYPE"
DONOR_CODE_COLUMN = "CEB CODE"
DONOR_CONTRIBUTOR_COLUMN = "CONTRIBUTOR TYPE"

TYPE_CODE_COLUMN = "CODE"
TYPE_NAME_COLUMN = "NAME"
TYPE_DEFINITION_COLUMN = "DEFINITION"


class RecordStore:
    """Ordered, read-only collection of donor records.

    The store is built once and never mutated; ``get_all`` hands out the same tuple
    every time, so callers can hold it for the lifetime of a search session.
    """

    def __init__(self, records: Iterable[Record]) -> None:
        self._records: Tuple[Record, ...] = tuple(records)
        self._by_code: Dict[str, Record] = {}
        for record in self._records:
            if record.code and record.code not in self._by_code:
                self._by_code[record.code] = record

    def get_all(self) -> Tuple[Record, ...]:
        """Return the immutable snapshot of all records."""
        return self._records

    def get(self, code: str) -> Record | None:
        """Look up a record by its code."""
        return self._by_code.get(code)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[Record]:
        return iter(self._records)

    @classmethod
    def from_csv(
        cls,
        donors_path: str | Path,
        contributor_types_path: str | Path | None = None,
    ) -> RecordStore:
        """Load donors (and optionally contributor types) from CSV files.

        Args:
            donors_path: CSV with ``NAME,TYPE,CEB CODE,CONTRIBUTOR TYPE`` columns
            contributor_types_path: Optional CSV with ``CODE,NAME,DEFINITION`` columns

        Returns:
            RecordStore with records in file order

        Raises:
            FileNotFoundError: If a given file doesn't exist
            ValueError: If the donors file lacks required columns
        """
        type_infos: Dict[str, ContributorTypeInfo] = {}
        if contributor_types_path is not None:
            type_infos = load_contributor_types(contributor_types_path)

        donors_path = Path(donors_path)
        if not donors_path.exists():
            raise FileNotFoundError(f"Donor catalog not found: {donors_path}")

        records: List[Record] = []
        seen_codes: set[str] = set()
        with open(donors_path, newline="", encoding="utf-8-sig") as f:
            reader = csv.DictReader(f)
            missing = {DONOR_NAME_COLUMN, DONOR_CODE_COLUMN} - set(reader.fieldnames or [])
            if missing:
                raise ValueError(
                    f"Donor catalog {donors_path} is missing columns: {sorted(missing)}"
                )

            for line_number, row in enumerate(reader, start=2):
                record = _record_from_row(row, type_infos)
                if not record.is_complete:
                    logger.warning(
                        f"{donors_path}:{line_number}: donor row missing name or code; "
                        "it will not be searchable"
                    )
                elif record.code in seen_codes:
                    logger.warning(
                        f"{donors_path}:{line_number}: duplicate donor code {record.code!r} dropped"
                    )
                    continue
                else:
                    seen_codes.add(record.code)
                    if record.contributor_type_code and record.contributor_type_info is None:
                        logger.debug(
                            f"Unknown contributor type {record.contributor_type_code!r} "
                            f"for donor {record.code!r}"
                        )
                records.append(record)

        logger.info(f"Loaded {len(records)} donor records from {donors_path}")
        return cls(records)


def load_contributor_types(path: str | Path) -> Dict[str, ContributorTypeInfo]:
    """Read the contributor type table keyed by code."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Contributor type table not found: {path}")

    infos: Dict[str, ContributorTypeInfo] = {}
    with open(path, newline="", encoding="utf-8-sig") as f:
        for row in csv.DictReader(f):
            code = _clean(row.get(TYPE_CODE_COLUMN))
            name = _clean(row.get(TYPE_NAME_COLUMN))
            if not code or not name:
                continue
            infos[code] = ContributorTypeInfo(
                name=name, definition=_clean(row.get(TYPE_DEFINITION_COLUMN)) or ""
            )

    logger.debug(f"Loaded {len(infos)} contributor types from {path}")
    return infos


def _record_from_row(row: Dict[str, str], type_infos: Dict[str, ContributorTypeInfo]) -> Record:
    contributor_code = _clean(row.get(DONOR_CONTRIBUTOR_COLUMN))
    return Record(
        name=_clean(row.get(DONOR_NAME_COLUMN)),
        code=_clean(row.get(DONOR_CODE_COLUMN)),
        contributor_type_code=contributor_code,
        contributor_type_info=type_infos.get(contributor_code) if contributor_code else None,
        type_flag=_clean(row.get(DONOR_TYPE_COLUMN)),
    )


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None
