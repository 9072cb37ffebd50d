# tests/test_orchestrator.py

"""Tests for concurrent per-benchmark collection."""

import threading
import time
import unittest
from datetime import datetime
from unittest.mock import MagicMock

from ec_index.config.benchmarks import BenchmarkConfig
from ec_index.models.collection_result import (
    CollectionResult,
    CollectionStatus,
)
from ec_index.models.observation import Platform, PriceObservation
from ec_index.services.orchestrator import (
    CollectionOrchestrator,
    platform_for,
)


class _FakeCollector:
    """Collector double returning one observation, optionally slowly."""

    def __init__(
        self,
        platform: Platform,
        delay: float = 0.0,
        error: Exception | None = None,
    ) -> None:
        self.platform = platform
        self.delay = delay
        self.error = error
        self.calls = 0
        self.closed = False
        self.thread_names: list[str] = []

    def collect(self, config: BenchmarkConfig) -> CollectionResult:
        self.calls += 1
        self.thread_names.append(threading.current_thread().name)
        if self.delay:
            # time.sleep is patched by conftest
            threading.Event().wait(self.delay)
        if self.error is not None:
            raise self.error
        obs = PriceObservation(
            product_id=f"{self.platform.value}-1",
            platform=self.platform,
            price=100.0,
        )
        return CollectionResult.build(
            config.code, self.platform, datetime.now(), [obs],
        )

    def close(self) -> None:
        self.closed = True


def _config(platforms: tuple[str, ...]) -> BenchmarkConfig:
    return BenchmarkConfig(
        code="ECI-TST",
        name="Test",
        category="test",
        platforms=platforms,
        search_queries=("q",),
    )


class TestPlatformFor(unittest.TestCase):

    def test_known_ids(self) -> None:
        self.assertIs(platform_for("ebay"), Platform.EBAY)
        self.assertIs(platform_for("amazon_api"), Platform.AMAZON)

    def test_unknown_id(self) -> None:
        self.assertIs(platform_for("kaufland"), Platform.OTHER)


class TestCollectionOrchestrator(unittest.IsolatedAsyncioTestCase):
    """collect_benchmark ordering, isolation and reuse."""

    async def test_results_in_platform_order(self) -> None:
        """A slow first platform still comes first in the results."""
        slow = _FakeCollector(Platform.AMAZON, delay=0.2)
        fast = _FakeCollector(Platform.EBAY)
        orchestrator = CollectionOrchestrator(
            {"amazon": lambda: slow, "ebay": lambda: fast}
        )
        results = await orchestrator.collect_benchmark(
            _config(("amazon", "ebay"))
        )
        self.assertEqual(
            [r.platform for r in results], [Platform.AMAZON, Platform.EBAY],
        )

    async def test_runs_concurrently(self) -> None:
        """Two slow collectors overlap instead of running back to back."""
        a = _FakeCollector(Platform.AMAZON, delay=0.3)
        b = _FakeCollector(Platform.EBAY, delay=0.3)
        orchestrator = CollectionOrchestrator(
            {"amazon": lambda: a, "ebay": lambda: b}
        )
        start = time.monotonic()
        await orchestrator.collect_benchmark(_config(("amazon", "ebay")))
        self.assertLess(time.monotonic() - start, 0.55)

    async def test_failure_isolated(self) -> None:
        """One collector raising yields a failed result, others complete."""
        good = _FakeCollector(Platform.EBAY)
        bad = _FakeCollector(Platform.IDEALO, error=RuntimeError("boom"))
        orchestrator = CollectionOrchestrator(
            {"idealo": lambda: bad, "ebay": lambda: good}
        )
        results = await orchestrator.collect_benchmark(
            _config(("idealo", "ebay"))
        )
        self.assertIs(results[0].status, CollectionStatus.FAILED)
        self.assertIs(results[0].platform, Platform.IDEALO)
        self.assertEqual(results[0].errors, ("idealo: boom",))
        self.assertEqual(results[0].valid_count, 0)
        self.assertIs(results[1].status, CollectionStatus.COMPLETED)
        self.assertEqual(results[1].valid_count, 1)

    async def test_unregistered_platform_fails_alone(self) -> None:
        good = _FakeCollector(Platform.EBAY)
        orchestrator = CollectionOrchestrator({"ebay": lambda: good})
        results = await orchestrator.collect_benchmark(
            _config(("ebay", "otto"))
        )
        self.assertEqual(len(results), 2)
        self.assertIs(results[1].status, CollectionStatus.FAILED)
        self.assertIs(results[1].platform, Platform.OTTO)

    async def test_collectors_reused_across_benchmarks(self) -> None:
        factory = MagicMock(return_value=_FakeCollector(Platform.EBAY))
        orchestrator = CollectionOrchestrator({"ebay": factory})
        await orchestrator.collect_benchmark(_config(("ebay",)))
        await orchestrator.collect_benchmark(_config(("ebay",)))
        factory.assert_called_once()

    async def test_collect_runs_off_the_event_loop(self) -> None:
        collector = _FakeCollector(Platform.EBAY)
        orchestrator = CollectionOrchestrator({"ebay": lambda: collector})
        await orchestrator.collect_benchmark(_config(("ebay",)))
        self.assertNotEqual(
            collector.thread_names[0], threading.current_thread().name,
        )

    async def test_close_closes_built_collectors(self) -> None:
        collector = _FakeCollector(Platform.EBAY)
        orchestrator = CollectionOrchestrator({"ebay": lambda: collector})
        await orchestrator.collect_benchmark(_config(("ebay",)))
        orchestrator.close()
        self.assertTrue(collector.closed)

    async def test_unknown_id_lookup(self) -> None:
        orchestrator = CollectionOrchestrator({})
        with self.assertRaises(LookupError):
            orchestrator.collector_for("ebay")


class TestDefaultRegistry(unittest.TestCase):

    def test_registry_built_from_settings(self) -> None:
        orchestrator = CollectionOrchestrator()
        self.assertEqual(
            set(orchestrator.registry),
            {"amazon", "amazon_api", "ebay", "idealo", "geizhals"},
        )


if __name__ == "__main__":
    unittest.main()
