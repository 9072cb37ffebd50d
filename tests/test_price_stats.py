# tests/test_price_stats.py

"""Tests for price summary statistics."""

import unittest

from ec_index.filters.price_stats import compute_price_stats, median


class TestMedian(unittest.TestCase):

    def test_odd_count(self) -> None:
        self.assertEqual(median([30.0, 10.0, 20.0]), 20.0)

    def test_even_count_averages_middles(self) -> None:
        self.assertEqual(median([40.0, 10.0, 30.0, 20.0]), 25.0)

    def test_single_value(self) -> None:
        self.assertEqual(median([7.5]), 7.5)


class TestComputePriceStats(unittest.TestCase):

    def test_basic_stats(self) -> None:
        stats = compute_price_stats([10.0, 20.0, 25.0])
        assert stats is not None
        self.assertEqual(stats.count, 3)
        self.assertEqual(stats.average, 18.33)
        self.assertEqual(stats.median, 20.0)
        self.assertEqual(stats.minimum, 10.0)
        self.assertEqual(stats.maximum, 25.0)

    def test_unpriced_values_ignored(self) -> None:
        """Zero prices never reach the statistics."""
        stats = compute_price_stats([0.0, 100.0, 0.0, 200.0])
        assert stats is not None
        self.assertEqual(stats.count, 2)
        self.assertEqual(stats.average, 150.0)
        self.assertEqual(stats.minimum, 100.0)

    def test_none_when_nothing_priced(self) -> None:
        self.assertIsNone(compute_price_stats([]))
        self.assertIsNone(compute_price_stats([0.0, 0.0]))

    def test_accepts_generator(self) -> None:
        stats = compute_price_stats(p for p in (1.0, 3.0))
        assert stats is not None
        self.assertEqual(stats.median, 2.0)


if __name__ == "__main__":
    unittest.main()
