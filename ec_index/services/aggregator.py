# ec_index/services/aggregator.py

"""Folds collection results into per-benchmark index history and exports."""

import logging
from collections.abc import Iterable, Mapping
from datetime import date

from ec_index.config.benchmarks import (
    DEFAULT_METHODOLOGY,
    BenchmarkConfig,
    get_benchmarks,
)
from ec_index.filters.price_stats import compute_price_stats
from ec_index.models.aggregates import (
    AggregatedPoint,
    ExportBundle,
    ExportMetadata,
    ExportSeries,
    History,
)
from ec_index.models.collection_result import CollectionResult
from ec_index.models.observation import Platform, PriceObservation
from ec_index.storage.file_manager import FileManager
from ec_index.storage.history_store import HistoryStore

logger = logging.getLogger("ec_index.aggregator")

EXPORT_SOURCE_PREFIX = "EC-Index Data Collection"


def format_thousands(value: int) -> str:
    """German thousands grouping: ``1234`` -> ``'1.234'``."""
    return f"{value:,}".replace(",", ".")


def percent_change(previous: float, current: float) -> float | None:
    """Percent change rounded to 2 decimals; ``None`` from a zero base."""
    if previous <= 0:
        return None
    return round((current - previous) / previous * 100, 2)


def summarize_observations(
    benchmark: str,
    platform: Platform,
    day: str,
    observations: Iterable[PriceObservation],
) -> AggregatedPoint | None:
    """Statistics over the priced observations; ``None`` if none are."""
    stats = compute_price_stats(o.price for o in observations)
    if stats is None:
        return None
    return AggregatedPoint(
        date=day,
        platform=platform,
        benchmark=benchmark,
        average_price=stats.average,
        median_price=stats.median,
        min_price=stats.minimum,
        max_price=stats.maximum,
        sample_size=stats.count,
    )


def with_price_changes(
    history: History, platforms: Iterable[Platform],
) -> History:
    """Recompute ``price_change`` along each given platform's series."""
    updated: History = dict(history)
    for platform in set(platforms):
        series = sorted(
            (p for p in history.values() if p.platform is platform),
            key=lambda p: p.date,
        )
        previous: AggregatedPoint | None = None
        for point in series:
            change = (
                percent_change(previous.average_price, point.average_price)
                if previous is not None
                else None
            )
            updated[point.key] = point.with_price_change(change)
            previous = point
    return updated


class Aggregator:
    """Summarise results, keep the history file current, write exports."""

    def __init__(
        self,
        history_store: HistoryStore | None = None,
        file_manager: FileManager | None = None,
        benchmarks: Mapping[str, BenchmarkConfig] | None = None,
    ) -> None:
        self.history_store = history_store or HistoryStore()
        self.file_manager = file_manager or FileManager()
        self._benchmarks = benchmarks

    @property
    def benchmarks(self) -> Mapping[str, BenchmarkConfig]:
        if self._benchmarks is None:
            self._benchmarks = get_benchmarks()
        return self._benchmarks

    # ── Summaries ────────────────────────────────────────

    @staticmethod
    def summarize(result: CollectionResult) -> AggregatedPoint | None:
        """One point for a platform's result, dated by its finish time.

        A result with no priced observations produces no point: a
        missing day on the chart, never a zero.
        """
        point = summarize_observations(
            result.benchmark,
            result.platform,
            result.date,
            result.observations,
        )
        if point is None:
            logger.info(
                "No priced observations for %s/%s, no point recorded",
                result.benchmark,
                result.platform.value,
            )
        return point

    def aggregate(
        self, results: Iterable[CollectionResult],
    ) -> list[AggregatedPoint]:
        """Summaries for every result that has priced observations."""
        points: list[AggregatedPoint] = []
        for result in results:
            point = self.summarize(result)
            if point is not None:
                points.append(point)
        return points

    def summarize_raw(
        self,
        benchmark: str,
        platforms: Iterable[Platform],
        day: date | str,
    ) -> list[AggregatedPoint]:
        """Rebuild points from the raw dumps saved for ``day``."""
        day_str = day if isinstance(day, str) else day.isoformat()
        points: list[AggregatedPoint] = []
        for platform in platforms:
            observations = self.file_manager.load_raw(
                benchmark, platform, day_str,
            )
            if observations is None:
                logger.debug(
                    "No raw dump for %s/%s on %s",
                    benchmark,
                    platform.value,
                    day_str,
                )
                continue
            point = summarize_observations(
                benchmark, platform, day_str, observations,
            )
            if point is not None:
                points.append(point)
        return points

    # ── History ──────────────────────────────────────────

    def merge_into_history(
        self, benchmark: str, points: Iterable[AggregatedPoint],
    ) -> History:
        """Upsert points by ``(date, platform)`` and rewrite the file.

        Re-running the same date replaces that day's values instead of
        adding a second entry.  Raises ``HistoryStoreError`` when the
        file cannot be read or written.
        """
        incoming = list(points)
        history = self.history_store.load(benchmark)
        if not incoming:
            logger.info("Nothing to merge into %s history", benchmark)
            return history
        for point in incoming:
            if point.key in history:
                logger.info(
                    "Replacing %s point for %s on %s",
                    point.platform.value,
                    benchmark,
                    point.date,
                )
            history[point.key] = point
        history = with_price_changes(
            history, (p.platform for p in incoming),
        )
        self.history_store.save(benchmark, history)
        return history

    # ── Export ───────────────────────────────────────────

    def _methodology(self, benchmark: str) -> str:
        config = self.benchmarks.get(benchmark)
        return config.methodology if config else DEFAULT_METHODOLOGY

    def _slug(self, benchmark: str) -> str:
        config = self.benchmarks.get(benchmark)
        return config.slug if config else benchmark.lower()

    def build_export(self, benchmark: str, history: History) -> ExportBundle:
        """Chart-ready bundle: one series per platform, sorted by date."""
        by_platform: dict[Platform, list[AggregatedPoint]] = {}
        for point in history.values():
            by_platform.setdefault(point.platform, []).append(point)

        series: list[ExportSeries] = []
        sample_total = 0
        for platform in Platform:
            points = sorted(
                by_platform.get(platform, []), key=lambda p: p.date,
            )
            if not points:
                continue
            series.append(
                ExportSeries(
                    name=platform.display_name,
                    color=platform.color,
                    data=[
                        {"date": p.date, "value": p.average_price}
                        for p in points
                    ],
                )
            )
            sample_total += points[-1].sample_size

        last_updated = max((p.date for p in history.values()), default="")
        names = ", ".join(s.name for s in series)
        return ExportBundle(
            benchmark=benchmark,
            series=series,
            metadata=ExportMetadata(
                source=f"{EXPORT_SOURCE_PREFIX} ({names})",
                last_updated=last_updated,
                sample_size=f"~{format_thousands(sample_total)} products",
                methodology=self._methodology(benchmark),
            ),
        )

    def export(self, benchmark: str) -> ExportBundle | None:
        """Write ``<slug>.json`` from the history; ``None`` on cold start."""
        if not self.history_store.exists(benchmark):
            logger.warning("No history data for %s, nothing to export", benchmark)
            return None
        history = self.history_store.load(benchmark)
        if not history:
            logger.warning("History for %s is empty, nothing to export", benchmark)
            return None
        bundle = self.build_export(benchmark, history)
        self.file_manager.save_export(self._slug(benchmark), bundle.to_dict())
        return bundle
