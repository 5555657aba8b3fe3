"""Tests for loguru sink configuration."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest
from loguru import logger

from donor_search.utils.config import LoggingConfig
from donor_search.utils.logging_setup import setup_logging


@pytest.fixture(autouse=True)
def _restore_default_sink(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("DONOR_SEARCH_DISABLE_LOG_RECONFIG", raising=False)
    monkeypatch.delenv("DONOR_SEARCH_LOG_LEVEL", raising=False)
    yield
    logger.remove()
    logger.add(sys.stderr)


def test_file_sink_respects_level(tmp_path: Path) -> None:
    log_file = tmp_path / "logs" / "search.log"

    setup_logging(LoggingConfig(level="INFO", file=str(log_file)), console=False)
    logger.debug("debug record")
    logger.info("info record")
    logger.remove()

    text = log_file.read_text(encoding="utf-8")
    assert "info record" in text
    assert "debug record" not in text


def test_json_format_serializes_records(tmp_path: Path) -> None:
    log_file = tmp_path / "search.jsonl"

    setup_logging(LoggingConfig(format="json", file=str(log_file)), console=False)
    logger.warning("duplicate donor code")
    logger.remove()

    line = log_file.read_text(encoding="utf-8").splitlines()[0]
    assert json.loads(line)["record"]["message"] == "duplicate donor code"


def test_env_level_override(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    log_file = tmp_path / "search.log"
    monkeypatch.setenv("DONOR_SEARCH_LOG_LEVEL", "debug")

    setup_logging(LoggingConfig(level="ERROR", file=str(log_file)), console=False)
    logger.debug("stale results dropped")
    logger.remove()

    assert "stale results dropped" in log_file.read_text(encoding="utf-8")


def test_reconfiguration_can_be_disabled(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    log_file = tmp_path / "search.log"
    monkeypatch.setenv("DONOR_SEARCH_DISABLE_LOG_RECONFIG", "1")

    setup_logging(LoggingConfig(file=str(log_file)), console=False)

    assert not log_file.exists()
