# ec_index/storage/file_manager.py

"""Handles raw observation dumps and export bundles on disk."""

import json
import logging
import os
import tempfile
from datetime import date
from pathlib import Path
from typing import Any

from ec_index.config.settings import Settings
from ec_index.models.observation import Platform, PriceObservation

logger = logging.getLogger("ec_index.storage")


def write_json_atomic(path: Path, data: Any) -> None:
    """Write JSON to ``path`` by replacing the file in one step.

    The payload goes to a temp file in the same directory which is
    then moved over the target, so readers never see a partial file.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        dir=path.parent, prefix=f".{path.name}.", suffix=".tmp",
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class FileManager:
    """Handles raw dumps and export bundles on disk."""

    def __init__(
        self,
        raw_dir: Path | None = None,
        export_dir: Path | None = None,
    ) -> None:
        self.raw_dir: Path = raw_dir or Settings.RAW_DATA_DIR
        self.export_dir: Path = export_dir or Settings.EXPORT_DIR
        logger.debug(
            "FileManager initialised, raw_dir=%s export_dir=%s",
            self.raw_dir,
            self.export_dir,
        )

    def raw_path(
        self,
        benchmark: str,
        platform: Platform,
        day: date | str | None = None,
    ) -> Path:
        """Path of the raw dump for (benchmark, platform, date)."""
        day_str = (
            day if isinstance(day, str)
            else (day or date.today()).isoformat()
        )
        return self.raw_dir / f"{benchmark}_{platform.value}_{day_str}.json"

    def save_raw(
        self,
        benchmark: str,
        platform: Platform,
        observations: list[PriceObservation],
        day: date | None = None,
    ) -> Path:
        """Save a platform's deduplicated observations for the day."""
        filepath = self.raw_path(benchmark, platform, day)
        write_json_atomic(
            filepath, [o.to_dict() for o in observations]
        )
        logger.info(
            "Saved %d observations for %s/%s to %s",
            len(observations),
            benchmark,
            platform.value,
            filepath,
        )
        return filepath

    def load_raw(
        self,
        benchmark: str,
        platform: Platform,
        day: date | str,
    ) -> list[PriceObservation] | None:
        """Load a raw dump; ``None`` when no dump exists for that day."""
        filepath = self.raw_path(benchmark, platform, day)
        if not filepath.exists():
            return None
        with open(filepath, encoding="utf-8") as f:
            rows: list[dict[str, Any]] = json.load(f)
        observations: list[PriceObservation] = []
        for row in rows:
            try:
                observations.append(PriceObservation.from_dict(row))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning(
                    "Skipping malformed row in %s: %s",
                    filepath.name,
                    exc,
                )
        return observations

    def save_export(self, slug: str, payload: dict[str, Any]) -> Path:
        """Write an export bundle as ``<slug>.json``."""
        filepath = self.export_dir / f"{slug}.json"
        write_json_atomic(filepath, payload)
        logger.info("Exported %s to %s", slug, filepath)
        return filepath
