# ec_index/storage/history_store.py

"""Per-benchmark JSON history of aggregated points."""

import json
import logging
from pathlib import Path
from typing import Any

from ec_index.config.settings import Settings
from ec_index.models.aggregates import AggregatedPoint, History
from ec_index.models.observation import Platform
from ec_index.storage.file_manager import write_json_atomic

logger = logging.getLogger("ec_index.history")


class HistoryStoreError(Exception):
    """The history file could not be read or written."""


def history_key(day: str, platform: Platform) -> str:
    """Serialised form of a ``(date, platform)`` key."""
    return f"{day}_{platform.value}"


class HistoryStore:
    """Load and rewrite ``<benchmark>_history.json`` files.

    The file is an object keyed ``"<date>_<platform>"``.  Older files
    stored a list per key; the last entry of such a list wins.
    """

    def __init__(self, processed_dir: Path | None = None) -> None:
        self.processed_dir: Path = (
            processed_dir or Settings.PROCESSED_DATA_DIR
        )

    def path(self, benchmark: str) -> Path:
        """History file for ``benchmark``."""
        return self.processed_dir / f"{benchmark}_history.json"

    def exists(self, benchmark: str) -> bool:
        """True when a history file has been written for ``benchmark``."""
        return self.path(benchmark).exists()

    def load(self, benchmark: str) -> History:
        """Read the full history; empty when none exists yet."""
        filepath = self.path(benchmark)
        if not filepath.exists():
            return {}
        try:
            with open(filepath, encoding="utf-8") as f:
                raw: dict[str, Any] = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            msg = f"Cannot read history for {benchmark} at {filepath}"
            raise HistoryStoreError(msg) from exc

        history: History = {}
        for key, value in raw.items():
            entry = value[-1] if isinstance(value, list) and value else value
            if not entry:
                continue
            try:
                point = AggregatedPoint.from_dict(entry)
            except (KeyError, TypeError, ValueError) as exc:
                msg = f"Corrupt history entry {key!r} in {filepath}"
                raise HistoryStoreError(msg) from exc
            history[point.key] = point
        logger.debug(
            "Loaded %d history points for %s", len(history), benchmark,
        )
        return history

    def save(self, benchmark: str, history: History) -> Path:
        """Replace the history file with ``history`` in full."""
        filepath = self.path(benchmark)
        ordered = sorted(
            history.values(), key=lambda p: (p.date, p.platform.value),
        )
        payload = {
            history_key(p.date, p.platform): p.to_dict() for p in ordered
        }
        try:
            write_json_atomic(filepath, payload)
        except OSError as exc:
            msg = f"Cannot write history for {benchmark} at {filepath}"
            raise HistoryStoreError(msg) from exc
        logger.info(
            "Wrote %d history points for %s", len(history), benchmark,
        )
        return filepath
