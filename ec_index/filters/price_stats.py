# ec_index/filters/price_stats.py

"""Summary statistics over a set of prices."""

from collections.abc import Iterable
from dataclasses import dataclass


@dataclass(frozen=True)
class PriceStats:
    """Count, average, median and range of a price sample."""

    count: int
    average: float
    median: float
    minimum: float
    maximum: float


def median(values: list[float]) -> float:
    """Middle value of a sorted copy; mean of the two middles when even."""
    ordered = sorted(values)
    mid = len(ordered) // 2
    if len(ordered) % 2:
        return ordered[mid]
    return (ordered[mid - 1] + ordered[mid]) / 2


def compute_price_stats(prices: Iterable[float]) -> PriceStats | None:
    """Statistics over the positive prices; ``None`` if there are none."""
    priced = sorted(p for p in prices if p > 0)
    if not priced:
        return None
    return PriceStats(
        count=len(priced),
        average=round(sum(priced) / len(priced), 2),
        median=round(median(priced), 2),
        minimum=priced[0],
        maximum=priced[-1],
    )
