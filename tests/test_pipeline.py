# tests/test_pipeline.py

"""Tests for the collect -> aggregate -> export pipeline."""

import shutil
import tempfile
import unittest
from datetime import date, datetime
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

from ec_index.config.benchmarks import BenchmarkConfig
from ec_index.models.collection_result import (
    CollectionResult,
    CollectionStatus,
)
from ec_index.models.observation import Platform, PriceObservation
from ec_index.services.aggregator import Aggregator
from ec_index.services.pipeline import BenchmarkRun, Pipeline, RunSummary
from ec_index.storage.file_manager import FileManager
from ec_index.storage.history_store import HistoryStore


def _benchmark(code: str, slug: str) -> BenchmarkConfig:
    return BenchmarkConfig(
        code=code,
        name=code,
        category="test",
        platforms=("amazon", "ebay"),
        search_queries=("q",),
        export_slug=slug,
    )


BENCHMARKS = {
    "ECI-ONE": _benchmark("ECI-ONE", "one"),
    "ECI-TWO": _benchmark("ECI-TWO", "two"),
}


def _result(
    code: str,
    platform: Platform,
    prices: list[float],
    errors: tuple[str, ...] = (),
    status: CollectionStatus = CollectionStatus.COMPLETED,
) -> CollectionResult:
    obs = tuple(
        PriceObservation(
            product_id=f"{platform.value}-{i}", platform=platform, price=p,
        )
        for i, p in enumerate(prices)
    )
    return CollectionResult(
        benchmark=code,
        platform=platform,
        started_at=datetime(2026, 3, 1, 3, 0),
        finished_at=datetime(2026, 3, 1, 3, 30),
        total_count=len(obs),
        valid_count=sum(1 for o in obs if o.price > 0),
        errors=errors,
        observations=obs,
        status=status,
    )


async def _collect(config: BenchmarkConfig) -> list[CollectionResult]:
    return [
        _result(config.code, Platform.AMAZON, [100.0, 200.0]),
        _result(
            config.code,
            Platform.EBAY,
            [],
            errors=("ebay: HTTP 500",),
            status=CollectionStatus.FAILED,
        ),
    ]


class TestPipeline(unittest.IsolatedAsyncioTestCase):
    """Pipeline with a fake orchestrator and real storage in a temp dir."""

    def setUp(self) -> None:
        self.tmp_dir = Path(tempfile.mkdtemp())
        self.addCleanup(shutil.rmtree, self.tmp_dir, True)
        self.store = HistoryStore(processed_dir=self.tmp_dir / "processed")
        self.fm = FileManager(
            raw_dir=self.tmp_dir / "raw", export_dir=self.tmp_dir / "export",
        )
        self.orchestrator = MagicMock()
        self.orchestrator.collect_benchmark = AsyncMock(side_effect=_collect)
        self.pipeline = Pipeline(
            orchestrator=self.orchestrator,
            aggregator=Aggregator(
                history_store=self.store,
                file_manager=self.fm,
                benchmarks=BENCHMARKS,
            ),
            benchmarks=BENCHMARKS,
        )

    async def test_run_benchmark_writes_history_and_export(self) -> None:
        run = await self.pipeline.run_benchmark("ECI-ONE")
        self.assertIsNone(run.error)
        self.assertTrue(run.exported)
        self.assertEqual(len(run.points), 1)
        self.assertTrue(self.store.exists("ECI-ONE"))
        self.assertTrue((self.tmp_dir / "export" / "one.json").exists())

    async def test_run_counts(self) -> None:
        run = await self.pipeline.run_benchmark("ECI-ONE")
        self.assertEqual(run.valid_count, 2)
        self.assertEqual(run.error_count, 1)

    async def test_unknown_benchmark(self) -> None:
        run = await self.pipeline.run_benchmark("ECI-NOPE")
        self.assertIn("Unknown benchmark", run.error or "")
        self.orchestrator.collect_benchmark.assert_not_called()

    async def test_nothing_priced_means_no_export(self) -> None:
        """A run without any priced observations on a cold start exports nothing."""
        async def _empty(config: BenchmarkConfig) -> list[CollectionResult]:
            return [_result(config.code, Platform.AMAZON, [])]

        self.orchestrator.collect_benchmark.side_effect = _empty
        run = await self.pipeline.run_benchmark("ECI-ONE")
        self.assertIsNone(run.error)
        self.assertFalse(run.exported)
        self.assertFalse(self.store.exists("ECI-ONE"))

    async def test_run_all_continues_after_history_error(self) -> None:
        """A corrupt history file fails that benchmark only."""
        self.store.processed_dir.mkdir(parents=True)
        self.store.path("ECI-ONE").write_text("{broken", encoding="utf-8")
        summary = await self.pipeline.run_all()
        self.assertEqual([r.code for r in summary.runs], ["ECI-ONE", "ECI-TWO"])
        self.assertEqual(summary.failed, ["ECI-ONE"])
        self.assertTrue(summary.runs[1].exported)
        self.assertIsNotNone(summary.finished_at)

    async def test_run_all_survives_orchestrator_crash(self) -> None:
        calls = {"n": 0}

        async def _flaky(config: BenchmarkConfig) -> list[CollectionResult]:
            calls["n"] += 1
            if calls["n"] == 1:
                raise RuntimeError("event loop trouble")
            return await _collect(config)

        self.orchestrator.collect_benchmark.side_effect = _flaky
        summary = await self.pipeline.run_all(["ECI-ONE", "ECI-TWO"])
        self.assertEqual(summary.failed, ["ECI-ONE"])
        self.assertIn("event loop trouble", summary.runs[0].error or "")
        self.assertTrue(summary.runs[1].exported)

    async def test_run_all_subset(self) -> None:
        summary = await self.pipeline.run_all(["ECI-TWO"])
        self.assertEqual([r.code for r in summary.runs], ["ECI-TWO"])
        self.assertEqual(summary.total_valid, 2)
        self.assertEqual(summary.error_count, 1)

    def test_export_all_from_history(self) -> None:
        bundles = self.pipeline.export_all()
        self.assertEqual(bundles, {"ECI-ONE": None, "ECI-TWO": None})

    async def test_export_all_after_run(self) -> None:
        await self.pipeline.run_benchmark("ECI-ONE")
        bundles = self.pipeline.export_all(["ECI-ONE"])
        bundle = bundles["ECI-ONE"]
        assert bundle is not None
        self.assertEqual(bundle.series[0].name, "Amazon")

    def test_reaggregate_from_raw_dumps(self) -> None:
        self.fm.save_raw(
            "ECI-ONE",
            Platform.EBAY,
            [
                PriceObservation(product_id="a", platform=Platform.EBAY, price=50.0),
                PriceObservation(product_id="b", platform=Platform.EBAY, price=70.0),
            ],
            date(2026, 3, 1),
        )
        summary = self.pipeline.reaggregate("2026-03-01", ["ECI-ONE"])
        run = summary.runs[0]
        self.assertIsNone(run.error)
        self.assertTrue(run.exported)
        history = self.store.load("ECI-ONE")
        self.assertEqual(
            history[("2026-03-01", Platform.EBAY)].average_price, 60.0,
        )

    def test_reaggregate_unknown_benchmark(self) -> None:
        summary = self.pipeline.reaggregate("2026-03-01", ["ECI-NOPE"])
        self.assertEqual(summary.failed, ["ECI-NOPE"])

    def test_close_closes_orchestrator(self) -> None:
        self.pipeline.close()
        self.orchestrator.close.assert_called_once()


class TestRunSummary(unittest.TestCase):

    def test_skipped_results_are_not_errors(self) -> None:
        skipped = _result(
            "ECI-ONE",
            Platform.AMAZON,
            [],
            errors=("amazon_api credentials not configured, skipping",),
            status=CollectionStatus.SKIPPED_UNCONFIGURED,
        )
        run = BenchmarkRun(code="ECI-ONE", results=[skipped])
        self.assertEqual(run.error_count, 0)

    def test_duration(self) -> None:
        summary = RunSummary(
            started_at=datetime(2026, 3, 1, 3, 0, 0),
            finished_at=datetime(2026, 3, 1, 3, 2, 30),
        )
        self.assertEqual(summary.duration_seconds, 150.0)


if __name__ == "__main__":
    unittest.main()
