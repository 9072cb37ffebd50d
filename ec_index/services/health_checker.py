# ec_index/services/health_checker.py

"""Collector connectivity health checker."""

import asyncio
import importlib
import logging
import time
from dataclasses import dataclass

from ec_index.config.settings import Settings

logger = logging.getLogger("ec_index.health")

_HEALTH_TIMEOUT = 10  # seconds per collector
_SLOW_MS = 5000


@dataclass
class HealthResult:
    """Result of a single collector health check."""

    collector_id: str
    status: str  # "ok", "slow", "blocked", "down", "unconfigured"
    latency_ms: float
    message: str


def probe_collector(entry: dict[str, str]) -> HealthResult:
    """Probe a single registered collector for connectivity."""
    collector_id = entry["id"]
    dotted_path = entry["collector"]

    try:
        module_path, class_name = dotted_path.rsplit(".", 1)
        module = importlib.import_module(module_path)
        collector_cls = getattr(module, class_name)
        collector = collector_cls()
    except Exception as exc:
        return HealthResult(
            collector_id=collector_id,
            status="down",
            latency_ms=0.0,
            message=f"Failed to load collector: {exc}",
        )

    if not collector.is_configured():
        collector.close()
        return HealthResult(
            collector_id=collector_id,
            status="unconfigured",
            latency_ms=0.0,
            message="Credentials not set",
        )

    url = collector.probe_url()
    start = time.monotonic()
    try:
        # Single raw request: a probe should not retry or back off
        resp = collector.transport.session.get(
            url,
            headers=collector.settings.DEFAULT_HEADERS,
            timeout=_HEALTH_TIMEOUT,
        )
        elapsed_ms = (time.monotonic() - start) * 1000

        if resp.status_code in (403, 429):
            return HealthResult(
                collector_id=collector_id,
                status="blocked",
                latency_ms=elapsed_ms,
                message=f"HTTP {resp.status_code}",
            )
        if resp.status_code >= 500:
            return HealthResult(
                collector_id=collector_id,
                status="down",
                latency_ms=elapsed_ms,
                message=f"HTTP {resp.status_code}",
            )
        if elapsed_ms > _SLOW_MS:
            return HealthResult(
                collector_id=collector_id,
                status="slow",
                latency_ms=elapsed_ms,
                message="High latency",
            )
        return HealthResult(
            collector_id=collector_id,
            status="ok",
            latency_ms=elapsed_ms,
            message="",
        )

    except Exception as exc:
        elapsed_ms = (time.monotonic() - start) * 1000
        return HealthResult(
            collector_id=collector_id,
            status="down",
            latency_ms=elapsed_ms,
            message=str(exc)[:80],
        )
    finally:
        collector.close()


class HealthChecker:
    """Runs concurrent health probes against all registered collectors."""

    def __init__(self) -> None:
        self.collectors = Settings.AVAILABLE_COLLECTORS

    async def check_all(self) -> list[HealthResult]:
        """Probe every registered collector concurrently."""
        tasks = [
            asyncio.to_thread(probe_collector, entry)
            for entry in self.collectors
        ]
        results: list[HealthResult] = list(
            await asyncio.gather(*tasks)
        )
        for r in results:
            logger.info(
                "Health check %s: %s (%.0fms) %s",
                r.collector_id,
                r.status,
                r.latency_ms,
                r.message,
            )
        return results
