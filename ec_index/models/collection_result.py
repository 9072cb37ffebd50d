# ec_index/models/collection_result.py

"""Search options and the per-platform outcome of a collection run."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from ec_index.models.observation import Condition, Platform, PriceObservation


@dataclass
class SearchOptions:
    """Per-query options passed to ``Collector.search``."""

    max_results: int = 20
    condition: Condition | None = None
    price_min: float | None = None
    price_max: float | None = None
    sort_by: str = "relevance"  # "price", "relevance", "date"


class CollectionStatus(str, Enum):
    """How a collector invocation ended."""

    COMPLETED = "completed"
    SKIPPED_UNCONFIGURED = "skipped_unconfigured"
    FAILED = "failed"


@dataclass(frozen=True)
class CollectionResult:
    """One platform's outcome for one benchmark."""

    benchmark: str
    platform: Platform
    started_at: datetime
    finished_at: datetime
    total_count: int
    valid_count: int
    errors: tuple[str, ...] = ()
    observations: tuple[PriceObservation, ...] = field(default=())
    status: CollectionStatus = CollectionStatus.COMPLETED

    @classmethod
    def build(
        cls,
        benchmark: str,
        platform: Platform,
        started_at: datetime,
        observations: list[PriceObservation],
        errors: list[str] | None = None,
        status: CollectionStatus = CollectionStatus.COMPLETED,
    ) -> "CollectionResult":
        """Create a result stamped with the current end time."""
        return cls(
            benchmark=benchmark,
            platform=platform,
            started_at=started_at,
            finished_at=datetime.now(),
            total_count=len(observations),
            valid_count=sum(1 for o in observations if o.price > 0),
            errors=tuple(errors or ()),
            observations=tuple(observations),
            status=status,
        )

    @property
    def skipped(self) -> bool:
        """True when the collector was never attempted."""
        return self.status is CollectionStatus.SKIPPED_UNCONFIGURED

    @property
    def date(self) -> str:
        """Collection date (YYYY-MM-DD) used as the history key."""
        return self.finished_at.date().isoformat()
