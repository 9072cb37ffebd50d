# ec_index/filters/observation_filter.py

"""Post-search observation filtering against a benchmark's rules."""

import logging

from ec_index.config.benchmarks import BenchmarkConfig
from ec_index.models.observation import PriceObservation

logger = logging.getLogger("ec_index.filters")


class ObservationFilter:
    """Filter observations by exclusion keywords, price bounds and condition."""

    @staticmethod
    def filter_by_keywords(
        observations: list[PriceObservation],
        negative_keywords: tuple[str, ...] | list[str],
    ) -> tuple[list[PriceObservation], int]:
        """Remove observations whose title contains any negative keyword.

        Returns the filtered list and the count of excluded observations.
        """
        if not negative_keywords:
            return observations, 0

        lowered_keywords = [kw.lower() for kw in negative_keywords]

        kept: list[PriceObservation] = []
        excluded = 0
        for obs in observations:
            title_lower = obs.title.lower()
            if any(kw in title_lower for kw in lowered_keywords):
                excluded += 1
            else:
                kept.append(obs)

        if excluded:
            logger.debug(
                "Filtered out %d observations matching negative keywords",
                excluded,
            )

        return kept, excluded

    @staticmethod
    def filter_by_benchmark(
        observations: list[PriceObservation],
        config: BenchmarkConfig,
    ) -> tuple[list[PriceObservation], int]:
        """Apply the benchmark's price bounds and allowed conditions.

        Unpriced observations (price 0) are left in place so that the
        result still reports them in its total count.
        """
        kept: list[PriceObservation] = []
        excluded = 0
        for obs in observations:
            if obs.price > 0 and (
                (config.price_min is not None and obs.price < config.price_min)
                or (config.price_max is not None and obs.price > config.price_max)
            ):
                excluded += 1
                continue
            if config.conditions and obs.condition not in config.conditions:
                excluded += 1
                continue
            kept.append(obs)

        if excluded:
            logger.debug(
                "Filtered out %d observations outside %s bounds",
                excluded,
                config.code,
            )
        return kept, excluded
