# ec_index/services/orchestrator.py

"""Runs every platform collector of a benchmark concurrently."""

import asyncio
import importlib
import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

from ec_index.collectors.base_collector import BaseCollector
from ec_index.config.benchmarks import BenchmarkConfig
from ec_index.config.settings import Settings
from ec_index.models.collection_result import (
    CollectionResult,
    CollectionStatus,
)
from ec_index.models.observation import Platform

logger = logging.getLogger("ec_index.orchestrator")

CollectorFactory = Callable[[], BaseCollector]


def _load_collector_class(dotted_path: str) -> type[Any]:
    """Dynamically import a collector class from its dotted module path."""
    module_path, class_name = dotted_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    cls: type[Any] = getattr(module, class_name)
    return cls


def platform_for(platform_id: str) -> Platform:
    """Best-effort platform for a collector id (``amazon_api`` -> amazon)."""
    base = platform_id.split("_", 1)[0]
    try:
        return Platform(base)
    except ValueError:
        return Platform.OTHER


class CollectionOrchestrator:
    """Resolve collectors from the registry and run them side by side.

    Collectors are built once per orchestrator and reused across
    benchmarks so token caches and rate limiters persist for a run.
    """

    def __init__(
        self,
        registry: dict[str, CollectorFactory] | None = None,
    ) -> None:
        self.settings = Settings()
        if registry is None:
            registry = {
                entry["id"]: _load_collector_class(entry["collector"])
                for entry in self.settings.AVAILABLE_COLLECTORS
            }
        self.registry = registry
        self._collectors: dict[str, BaseCollector] = {}

    def collector_for(self, platform_id: str) -> BaseCollector:
        """Return (building on first use) the collector for an id."""
        collector = self._collectors.get(platform_id)
        if collector is None:
            factory = self.registry.get(platform_id)
            if factory is None:
                msg = f"No collector registered for platform {platform_id!r}"
                raise LookupError(msg)
            collector = factory()
            self._collectors[platform_id] = collector
        return collector

    def _run_one(
        self, platform_id: str, config: BenchmarkConfig,
    ) -> CollectionResult:
        collector = self.collector_for(platform_id)
        return collector.collect(config)

    async def collect_benchmark(
        self, config: BenchmarkConfig,
    ) -> list[CollectionResult]:
        """Collect every configured platform; one result per platform.

        Results come back in the benchmark's platform order.  A platform
        that blows up yields a ``failed`` result instead of cancelling
        its siblings.
        """
        started_at = datetime.now()
        logger.info(
            "Collecting %s on %s",
            config.code,
            ", ".join(config.platforms),
        )
        outcomes = await asyncio.gather(
            *(
                asyncio.to_thread(self._run_one, platform_id, config)
                for platform_id in config.platforms
            ),
            return_exceptions=True,
        )

        results: list[CollectionResult] = []
        for platform_id, outcome in zip(config.platforms, outcomes):
            if isinstance(outcome, CollectionResult):
                results.append(outcome)
                continue
            if not isinstance(outcome, Exception):
                raise outcome
            logger.error(
                "Collector %s failed for %s: %s",
                platform_id,
                config.code,
                outcome,
                exc_info=outcome,
            )
            results.append(
                CollectionResult.build(
                    config.code,
                    platform_for(platform_id),
                    started_at,
                    [],
                    [f"{platform_id}: {outcome}"],
                    status=CollectionStatus.FAILED,
                )
            )
        return results

    def close(self) -> None:
        """Close every collector built so far."""
        for collector in self._collectors.values():
            collector.close()
        self._collectors.clear()
