"""Loguru sink configuration for the search library and its scripts.

The library itself only emits records through ``loguru.logger``; applications decide
where they go. Interactive front-ends redraw the terminal on every keystroke, so they
usually keep the console quiet and send records to a file instead.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from loguru import logger

from donor_search.utils.config import LoggingConfig


def setup_logging(config: LoggingConfig | None = None, *, console: bool = True) -> None:
    """Configure Loguru sinks from a LoggingConfig."""
    # Allow developers to opt out while debugging.
    if os.getenv("DONOR_SEARCH_DISABLE_LOG_RECONFIG") == "1":
        return

    config = config or LoggingConfig()
    level = os.getenv("DONOR_SEARCH_LOG_LEVEL", config.level).upper()
    serialize = config.format == "json"

    logger.remove()

    if console:
        logger.add(sys.stderr, level=level, serialize=serialize)

    if config.file:
        target = Path(config.file)
        target.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(target),
            level=level,
            rotation=f"{config.max_size_mb} MB",
            retention=config.backup_count,
            serialize=serialize,
        )
