# ec_index/services/pipeline.py

"""Collect -> aggregate -> export for one benchmark or all of them."""

import asyncio
import logging
import threading
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime

from ec_index.config.benchmarks import BenchmarkConfig, get_benchmarks
from ec_index.models.aggregates import AggregatedPoint, ExportBundle
from ec_index.models.collection_result import CollectionResult
from ec_index.services.aggregator import Aggregator
from ec_index.services.orchestrator import (
    CollectionOrchestrator,
    platform_for,
)
from ec_index.storage.history_store import HistoryStoreError

logger = logging.getLogger("ec_index.pipeline")


@dataclass
class BenchmarkRun:
    """Outcome of one benchmark within a run."""

    code: str
    results: list[CollectionResult] = field(
        default_factory=lambda: list[CollectionResult]()
    )
    points: list[AggregatedPoint] = field(
        default_factory=lambda: list[AggregatedPoint]()
    )
    exported: bool = False
    error: str | None = None

    @property
    def valid_count(self) -> int:
        return sum(r.valid_count for r in self.results)

    @property
    def error_count(self) -> int:
        own = 1 if self.error else 0
        return own + sum(len(r.errors) for r in self.results if not r.skipped)


@dataclass
class RunSummary:
    """Totals across every benchmark of a run."""

    started_at: datetime
    finished_at: datetime | None = None
    runs: list[BenchmarkRun] = field(
        default_factory=lambda: list[BenchmarkRun]()
    )

    @property
    def total_valid(self) -> int:
        return sum(r.valid_count for r in self.runs)

    @property
    def error_count(self) -> int:
        return sum(r.error_count for r in self.runs)

    @property
    def failed(self) -> list[str]:
        """Codes of benchmarks whose aggregation did not complete."""
        return [r.code for r in self.runs if r.error]

    @property
    def duration_seconds(self) -> float:
        end = self.finished_at or datetime.now()
        return (end - self.started_at).total_seconds()


class Pipeline:
    """Drives collection runs and keeps history files consistent.

    History for a benchmark is merged and exported under that
    benchmark's lock, so two overlapping runs never rewrite the same
    file at once.
    """

    def __init__(
        self,
        orchestrator: CollectionOrchestrator | None = None,
        aggregator: Aggregator | None = None,
        benchmarks: Mapping[str, BenchmarkConfig] | None = None,
    ) -> None:
        self._benchmarks = benchmarks
        self._orchestrator = orchestrator
        self.aggregator = aggregator or Aggregator(benchmarks=benchmarks)
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @property
    def benchmarks(self) -> Mapping[str, BenchmarkConfig]:
        if self._benchmarks is None:
            self._benchmarks = get_benchmarks()
        return self._benchmarks

    @property
    def orchestrator(self) -> CollectionOrchestrator:
        if self._orchestrator is None:
            self._orchestrator = CollectionOrchestrator()
        return self._orchestrator

    def _lock_for(self, code: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(code, threading.Lock())

    def _resolve(self, codes: Iterable[str] | None) -> list[str]:
        return list(codes) if codes is not None else list(self.benchmarks)

    # ── Aggregation ──────────────────────────────────────

    def _aggregate_and_export(
        self, code: str, points: list[AggregatedPoint],
    ) -> bool:
        with self._lock_for(code):
            self.aggregator.merge_into_history(code, points)
            return self.aggregator.export(code) is not None

    # ── Runs ─────────────────────────────────────────────

    async def run_benchmark(self, code: str) -> BenchmarkRun:
        """Collect, merge and export one benchmark."""
        run = BenchmarkRun(code=code)
        config = self.benchmarks.get(code)
        if config is None:
            run.error = f"Unknown benchmark {code!r}"
            logger.error(run.error)
            return run

        logger.info("=== Benchmark %s: %s ===", code, config.name)
        run.results = await self.orchestrator.collect_benchmark(config)
        run.points = self.aggregator.aggregate(run.results)
        try:
            run.exported = await asyncio.to_thread(
                self._aggregate_and_export, code, run.points,
            )
        except (HistoryStoreError, OSError) as exc:
            run.error = f"{code}: {exc}"
            logger.error(
                "Aggregation failed for %s: %s", code, exc, exc_info=True,
            )
        return run

    async def run_all(self, codes: Iterable[str] | None = None) -> RunSummary:
        """Run benchmarks one after another; a failure never stops the rest."""
        summary = RunSummary(started_at=datetime.now())
        for code in self._resolve(codes):
            try:
                run = await self.run_benchmark(code)
            except Exception as exc:
                logger.error(
                    "Benchmark %s aborted: %s", code, exc, exc_info=True,
                )
                run = BenchmarkRun(code=code, error=f"{code}: {exc}")
            summary.runs.append(run)
        summary.finished_at = datetime.now()
        logger.info(
            "Run complete: %d benchmarks, %d valid products, "
            "%d errors, %.1fs",
            len(summary.runs),
            summary.total_valid,
            summary.error_count,
            summary.duration_seconds,
        )
        return summary

    def export_all(
        self, codes: Iterable[str] | None = None,
    ) -> dict[str, ExportBundle | None]:
        """Regenerate export files from existing history only."""
        bundles: dict[str, ExportBundle | None] = {}
        for code in self._resolve(codes):
            with self._lock_for(code):
                try:
                    bundles[code] = self.aggregator.export(code)
                except (HistoryStoreError, OSError) as exc:
                    logger.error(
                        "Export failed for %s: %s", code, exc, exc_info=True,
                    )
                    bundles[code] = None
        return bundles

    def reaggregate(
        self, day: date | str, codes: Iterable[str] | None = None,
    ) -> RunSummary:
        """Rebuild one day's points from its raw dumps and re-export."""
        summary = RunSummary(started_at=datetime.now())
        for code in self._resolve(codes):
            run = BenchmarkRun(code=code)
            config = self.benchmarks.get(code)
            if config is None:
                run.error = f"Unknown benchmark {code!r}"
                logger.error(run.error)
                summary.runs.append(run)
                continue
            platforms = list(dict.fromkeys(
                platform_for(pid) for pid in config.platforms
            ))
            run.points = self.aggregator.summarize_raw(code, platforms, day)
            try:
                run.exported = self._aggregate_and_export(code, run.points)
            except (HistoryStoreError, OSError) as exc:
                run.error = f"{code}: {exc}"
                logger.error(
                    "Re-aggregation failed for %s: %s",
                    code,
                    exc,
                    exc_info=True,
                )
            summary.runs.append(run)
        summary.finished_at = datetime.now()
        return summary

    def close(self) -> None:
        if self._orchestrator is not None:
            self._orchestrator.close()
