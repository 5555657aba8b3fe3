"""Export search results in the catalog's CSV layout."""

from __future__ import annotations

import csv
import io
from pathlib import Path
from typing import Iterable, Literal, Sequence, TextIO

from loguru import logger

from donor_search.catalog.models import Record
from donor_search.search.models import MatchResult

EXPORT_COLUMNS = ["NAME", "TYPE", "CEB CODE", "CONTRIBUTOR TYPE", "RELEVANCE"]

ScoreBand = Literal["high", "medium", "low", "none"]


def score_band(score: float | None) -> ScoreBand:
    """Bucket a relevance score for display (``none`` when unscored)."""
    if score is None:
        return "none"
    if score > 0.8:
        return "high"
    if score > 0.5:
        return "medium"
    return "low"


def government_flag(record: Record, government_codes: Iterable[str]) -> str:
    """TYPE column value: ``1`` for government contributor types, else ``0``."""
    return "1" if record.is_government(government_codes) else "0"


def export_results_csv(
    results: Sequence[MatchResult],
    destination: str | Path | TextIO | None = None,
    government_codes: Iterable[str] = ("C01",),
) -> str:
    """Write ``results`` as CSV.

    Args:
        results: Ordered search results
        destination: File path or open text stream; when None only the text is returned
        government_codes: Contributor type codes treated as government

    Returns:
        The CSV text that was written
    """
    codes = list(government_codes)
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(EXPORT_COLUMNS)
    for result in results:
        record = result.record
        writer.writerow(
            [
                record.name or "",
                government_flag(record, codes),
                record.code or "",
                record.contributor_type_code or "",
                "" if result.score is None else f"{round(result.score * 100)}%",
            ]
        )
    text = buffer.getvalue()

    if isinstance(destination, (str, Path)):
        path = Path(destination)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        logger.info(f"Exported {len(results)} results to {path}")
    elif destination is not None:
        destination.write(text)

    return text
