"""Tests for the interactive search script's command loop."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from donor_search.catalog.store import RecordStore
from donor_search.search.models import SearchMode
from donor_search.search.session import SearchSession
from donor_search.utils.config import Config
from scripts.search_donors import run_interactive


@pytest.fixture
def mock_console():
    with patch("scripts.search_donors.console") as console:
        yield console


def _printed(console) -> list:
    return [call.args[0] for call in console.print.call_args_list if call.args]


@pytest.mark.asyncio
async def test_commands_drive_the_session(
    mock_console, store: RecordStore, config: Config, tmp_path: Path
) -> None:
    export_path = tmp_path / "out.csv"
    mock_console.input.side_effect = [
        "japan",
        ":mode exact",
        ":gov",
        ":history",
        f":export {export_path}",
        ":quit",
    ]
    session = SearchSession(store, config=config)

    await run_interactive(session, config)

    assert session.options.mode is SearchMode.EXACT
    assert session.options.filters.government_only is True
    assert "  japan" in _printed(mock_console)
    assert export_path.read_text(encoding="utf-8").splitlines()[1] == "Japan,1,JPN,C01,"


@pytest.mark.asyncio
async def test_clear_command_returns_to_browsing(
    mock_console, store: RecordStore, config: Config
) -> None:
    mock_console.input.side_effect = ["united", ":clear", ":q"]
    session = SearchSession(store, config=config)

    await run_interactive(session, config)

    printed = [text for text in _printed(mock_console) if isinstance(text, str)]
    assert printed[0] == f"[dim]Browsing {len(store)} donors (no query)[/dim]"
    assert printed[-1] == printed[0]
    assert any("results found" in text and '"united"' in text for text in printed)
