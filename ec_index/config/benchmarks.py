# ec_index/config/benchmarks.py

"""Benchmark (index) definitions loaded once from ``benchmarks.json``."""

import json
import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

from ec_index.config.settings import Settings
from ec_index.models.observation import Condition

logger = logging.getLogger("ec_index.config")

DEFAULT_METHODOLOGY = "Aggregated marketplace data"


@dataclass(frozen=True)
class BenchmarkConfig:
    """Static description of what to collect for one named index."""

    code: str
    name: str
    category: str
    platforms: tuple[str, ...]
    search_queries: tuple[str, ...]
    price_min: float | None = None
    price_max: float | None = None
    exclude_keywords: tuple[str, ...] = ()
    conditions: tuple[Condition, ...] = ()
    export_slug: str = ""
    methodology: str = DEFAULT_METHODOLOGY

    def __post_init__(self) -> None:
        # "amazon" and "amazon_api" share one raw dump and history key
        seen: dict[str, str] = {}
        for platform_id in self.platforms:
            base = platform_id.split("_", 1)[0]
            if base in seen and seen[base] != platform_id:
                msg = (
                    f"{self.code}: collectors {seen[base]!r} and "
                    f"{platform_id!r} report the same platform"
                )
                raise ValueError(msg)
            seen[base] = platform_id

    @property
    def slug(self) -> str:
        """File stem for this benchmark's export bundle."""
        return self.export_slug or self.code.lower()

    @classmethod
    def from_dict(
        cls, code: str, data: dict[str, Any],
    ) -> "BenchmarkConfig":
        """Build a config from one ``benchmarks.json`` entry."""
        price_min = data.get("price_min")
        price_max = data.get("price_max")
        return cls(
            code=code,
            name=str(data.get("name", code)),
            category=str(data.get("category", "")),
            platforms=tuple(data.get("platforms", [])),
            search_queries=tuple(data.get("search_queries", [])),
            price_min=float(price_min) if price_min is not None else None,
            price_max=float(price_max) if price_max is not None else None,
            exclude_keywords=tuple(data.get("exclude_keywords", [])),
            conditions=tuple(
                Condition(c) for c in data.get("conditions", [])
            ),
            export_slug=str(data.get("export_slug", "")),
            methodology=str(
                data.get("methodology") or DEFAULT_METHODOLOGY
            ),
        )


def load_benchmarks(path: Path) -> dict[str, BenchmarkConfig]:
    """Parse a benchmarks file into configs keyed by benchmark code."""
    with open(path, encoding="utf-8") as f:
        raw: dict[str, dict[str, Any]] = json.load(f)
    configs = {
        code: BenchmarkConfig.from_dict(code, entry)
        for code, entry in raw.items()
    }
    logger.debug(
        "Loaded %d benchmarks from %s", len(configs), path,
    )
    return configs


@lru_cache(maxsize=1)
def get_benchmarks() -> dict[str, BenchmarkConfig]:
    """Return the process-wide benchmark catalogue (loaded once)."""
    return load_benchmarks(Settings.BENCHMARKS_PATH)


def get_benchmark(code: str) -> BenchmarkConfig | None:
    """Look up a single benchmark by code."""
    return get_benchmarks().get(code)
