# ec_index/filters/deduplicator.py

"""Observation deduplication within one platform's collection."""

import logging

from ec_index.models.observation import PriceObservation

logger = logging.getLogger("ec_index.filters")


class ObservationDeduplicator:
    """Collapse repeated listings of the same product identifier."""

    @staticmethod
    def deduplicate(
        observations: list[PriceObservation],
    ) -> tuple[list[PriceObservation], int]:
        """Keep the lowest positively priced observation per ``product_id``.

        The same listing often appears under several search queries;
        only one observation per identifier may reach the statistics.
        First-seen order is preserved.

        Returns the deduplicated list and the count of removed dupes.
        """
        if not observations:
            return [], 0

        seen: dict[str, int] = {}
        kept: list[PriceObservation] = []
        removed = 0

        for obs in observations:
            idx = seen.get(obs.product_id)
            if idx is None:
                seen[obs.product_id] = len(kept)
                kept.append(obs)
                continue
            current = kept[idx].price
            if obs.price > 0 and (current <= 0 or obs.price < current):
                kept[idx] = obs
            removed += 1

        if removed:
            logger.info(
                "Deduplication removed %d duplicate observations",
                removed,
            )

        return kept, removed
