# ec_index/collectors/base_collector.py

"""Abstract base class for all marketplace collectors."""

import logging
import random
import time
from abc import ABC, abstractmethod
from datetime import datetime

from ec_index.config.benchmarks import BenchmarkConfig
from ec_index.config.settings import Settings
from ec_index.filters.deduplicator import ObservationDeduplicator
from ec_index.filters.observation_filter import ObservationFilter
from ec_index.filters.price_stats import compute_price_stats
from ec_index.models.collection_result import (
    CollectionResult,
    CollectionStatus,
    SearchOptions,
)
from ec_index.models.observation import Platform, PriceObservation
from ec_index.storage.file_manager import FileManager
from ec_index.transport.http_client import Transport


class BaseCollector(ABC):
    """Abstract base class for all marketplace collectors.

    Subclasses implement :meth:`search` for a single query.
    :meth:`collect` runs every query of a benchmark through it,
    filters, deduplicates and persists the raw set, and always
    returns a :class:`CollectionResult` instead of raising.
    """

    platform: Platform = Platform.OTHER
    # Landing page or API host probed by the health check
    health_url: str = ""
    requests_per_second: float = 1.0
    max_results: int = 20
    # None means every query of the benchmark
    max_queries: int | None = None
    # Pause between queries and after a failed query, in seconds
    query_delay: tuple[float, float] = (0.0, 0.0)
    error_delay: tuple[float, float] = (0.0, 0.0)

    def __init__(
        self,
        source_name: str,
        transport: Transport | None = None,
        file_manager: FileManager | None = None,
        impersonate: bool = False,
    ) -> None:
        self.source_name = source_name
        self.logger = logging.getLogger(f"ec_index.{source_name}")
        self.settings = Settings()
        self.transport = transport or Transport(
            source_name,
            requests_per_second=self.requests_per_second,
            impersonate=impersonate,
        )
        self.file_manager = file_manager or FileManager()

    # ── Hooks ────────────────────────────────────────────

    def is_configured(self) -> bool:
        """Return False when required credentials are missing."""
        return True

    def probe_url(self) -> str:
        """URL the connectivity health check requests."""
        return self.health_url

    def search_options(self, config: BenchmarkConfig) -> SearchOptions:
        """Per-query options derived from the benchmark."""
        return SearchOptions(
            max_results=self.max_results,
            condition=(
                config.conditions[0]
                if len(config.conditions) == 1
                else None
            ),
            price_min=config.price_min,
            price_max=config.price_max,
        )

    def _before_queries(self) -> None:
        """Run once before the first query of a collection."""

    def _after_queries(self) -> None:
        """Run once after the last query of a collection."""

    def _pause(self, bounds: tuple[float, float], reason: str) -> float:
        """Sleep for a random duration within ``bounds``."""
        low, high = bounds
        if high <= 0:
            return 0.0
        delay = random.uniform(low, high)
        self.logger.debug(
            "[%s] Waiting %.1fs (%s)", self.source_name, delay, reason,
        )
        time.sleep(delay)
        return delay

    @abstractmethod
    def search(
        self, query: str, options: SearchOptions,
    ) -> list[PriceObservation]:
        """Return observations for one query; empty list on no hits."""
        ...

    # ── Template ─────────────────────────────────────────

    def collect(self, config: BenchmarkConfig) -> CollectionResult:
        """Collect, filter, deduplicate and persist one benchmark."""
        started_at = datetime.now()
        if not self.is_configured():
            message = (
                f"{self.source_name} credentials not configured, skipping"
            )
            self.logger.info("[%s] %s", self.source_name, message)
            return CollectionResult.build(
                config.code,
                self.platform,
                started_at,
                [],
                [message],
                status=CollectionStatus.SKIPPED_UNCONFIGURED,
            )

        queries = list(config.search_queries)
        if self.max_queries is not None:
            queries = queries[: self.max_queries]
        options = self.search_options(config)
        self.logger.info(
            "[%s] Starting collection for %s (%d queries)",
            self.source_name,
            config.code,
            len(queries),
        )

        collected: list[PriceObservation] = []
        errors: list[str] = []
        self._before_queries()
        try:
            for index, query in enumerate(queries, start=1):
                self.logger.info(
                    "[%s] [%d/%d] %r",
                    self.source_name, index, len(queries), query,
                )
                try:
                    found = self.search(query, options)
                except Exception as exc:
                    errors.append(f'"{query}": {exc}')
                    self.logger.error(
                        "[%s] Query %r failed: %s",
                        self.source_name,
                        query,
                        exc,
                        exc_info=True,
                    )
                    self._pause(self.error_delay, "after failure")
                    continue

                kept, _ = ObservationFilter.filter_by_keywords(
                    found, config.exclude_keywords
                )
                kept, _ = ObservationFilter.filter_by_benchmark(
                    kept, config
                )
                collected.extend(kept)
                self.logger.info(
                    "[%s] %r: %d found, %d kept",
                    self.source_name, query, len(found), len(kept),
                )
                if index < len(queries):
                    self._pause(self.query_delay, "between queries")
        finally:
            self._after_queries()

        unique, _ = ObservationDeduplicator.deduplicate(collected)
        try:
            self.file_manager.save_raw(config.code, self.platform, unique)
        except OSError as exc:
            errors.append(f"raw dump not saved: {exc}")
            self.logger.error(
                "[%s] Could not save raw data for %s: %s",
                self.source_name,
                config.code,
                exc,
                exc_info=True,
            )

        stats = compute_price_stats(o.price for o in unique)
        if stats is None:
            self.logger.warning(
                "[%s] No priced observations for %s",
                self.source_name,
                config.code,
            )
        else:
            self.logger.info(
                "[%s] %s complete: %d products, avg %.2f, "
                "median %.2f, range %.2f-%.2f",
                self.source_name,
                config.code,
                stats.count,
                stats.average,
                stats.median,
                stats.minimum,
                stats.maximum,
            )

        return CollectionResult.build(
            config.code, self.platform, started_at, unique, errors,
        )

    def close(self) -> None:
        """Release the transport session."""
        self.transport.close()
