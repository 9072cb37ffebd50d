# ec_index/models/aggregates.py

"""Aggregated index points and the chart-ready export bundle."""

from dataclasses import asdict, dataclass, field, replace
from typing import Any

from ec_index.models.observation import Platform


@dataclass(frozen=True)
class AggregatedPoint:
    """Summary statistics for one (date, platform, benchmark)."""

    date: str
    platform: Platform
    benchmark: str
    average_price: float
    median_price: float
    min_price: float
    max_price: float
    sample_size: int
    price_change: float | None = None

    @property
    def key(self) -> tuple[str, Platform]:
        """History key for this point."""
        return (self.date, self.platform)

    def with_price_change(self, change: float | None) -> "AggregatedPoint":
        """Return a copy carrying the given period-over-period change."""
        return replace(self, price_change=change)

    def to_dict(self) -> dict[str, Any]:
        """Serialise to a JSON-compatible dict."""
        data = asdict(self)
        data["platform"] = self.platform.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AggregatedPoint":
        """Rebuild a point from its ``to_dict`` form."""
        return cls(
            date=str(data["date"]),
            platform=Platform(data["platform"]),
            benchmark=str(data.get("benchmark", "")),
            average_price=float(data["average_price"]),
            median_price=float(data["median_price"]),
            min_price=float(data["min_price"]),
            max_price=float(data["max_price"]),
            sample_size=int(data["sample_size"]),
            price_change=(
                float(data["price_change"])
                if data.get("price_change") is not None
                else None
            ),
        )


History = dict[tuple[str, Platform], AggregatedPoint]


@dataclass
class ExportSeries:
    """One named, colored (date, value) series."""

    name: str
    color: str
    data: list[dict[str, Any]] = field(
        default_factory=lambda: list[dict[str, Any]]()
    )


@dataclass
class ExportMetadata:
    """Descriptive metadata shipped alongside the series."""

    source: str
    last_updated: str
    sample_size: str
    methodology: str


@dataclass
class ExportBundle:
    """The file consumed by the presentation layer."""

    benchmark: str
    series: list[ExportSeries]
    metadata: ExportMetadata

    def to_dict(self) -> dict[str, Any]:
        """Serialise to the presentation-layer JSON shape."""
        return {
            "series": [asdict(s) for s in self.series],
            "metadata": {
                "source": self.metadata.source,
                "lastUpdated": self.metadata.last_updated,
                "sampleSize": self.metadata.sample_size,
                "methodology": self.metadata.methodology,
            },
        }
