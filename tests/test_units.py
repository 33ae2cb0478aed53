"""Tests for rate formatting and gauge mapping."""
from __future__ import annotations

import random
import unittest

from ultraspeed.models import UsageSample
from ultraspeed.units import FormattedRate, format_speed, gauge_fill, gauge_value, latency_placeholder, rates_summary


class FormatSpeedTest(unittest.TestCase):
    def test_zero_is_bytes_per_second(self) -> None:
        self.assertEqual(format_speed(0), (0, "B/s"))

    def test_below_a_thousand_kilobytes_stays_in_kilobytes(self) -> None:
        self.assertEqual(format_speed(500 * 1024), (500.0, "KB/s"))
        self.assertEqual(format_speed(999.9 * 1024), (999.9, "KB/s"))

    def test_large_rates_switch_to_megabytes(self) -> None:
        self.assertEqual(format_speed(1500 * 1024), (1.5, "MB/s"))
        self.assertEqual(format_speed(1000 * 1024), (1.0, "MB/s"))

    def test_halves_round_up_like_the_dashboard(self) -> None:
        # 0.25 KB/s is exactly representable, so it must round up to 0.3
        self.assertEqual(format_speed(256), (0.3, "KB/s"))


class GaugeValueTest(unittest.TestCase):
    def test_megabytes_are_multiplied_by_eight(self) -> None:
        self.assertEqual(gauge_value(FormattedRate(2.0, "MB/s")), 16)

    def test_kilobytes_are_divided_by_128(self) -> None:
        self.assertEqual(gauge_value(FormattedRate(256.0, "KB/s")), 2)
        self.assertEqual(gauge_value(FormattedRate(64.0, "KB/s")), 1)
        self.assertEqual(gauge_value(FormattedRate(0, "B/s")), 0)

    def test_fill_is_capped_at_gauge_max(self) -> None:
        self.assertEqual(gauge_fill(250), 1.0)
        self.assertEqual(gauge_fill(25), 0.25)
        self.assertEqual(gauge_fill(-3), 0.0)

    def test_latency_placeholder_stays_in_range(self) -> None:
        rng = random.Random(7)
        values = {latency_placeholder(rng) for _ in range(200)}
        self.assertTrue(values <= set(range(1, 7)))


class RatesSummaryTest(unittest.TestCase):
    def test_summary_without_samples_is_idle(self) -> None:
        summary = rates_summary(None)
        self.assertEqual(summary["download"], {"value": 0, "unit": "B/s"})
        self.assertEqual(summary["gauges"]["download"], 0)
        self.assertEqual(summary["gauges"]["uptime"], 100)
        self.assertTrue(summary["gauges"]["latency_placeholder"])

    def test_summary_uses_newest_sample(self) -> None:
        summary = rates_summary(UsageSample(label="12:00:00", rx=2048.0, tx=256.0))
        self.assertEqual(summary["download"], {"value": 2.0, "unit": "MB/s"})
        self.assertEqual(summary["upload"], {"value": 256.0, "unit": "KB/s"})
        self.assertEqual(summary["gauges"]["download"], 16)
        self.assertEqual(summary["gauges"]["upload"], 2)


if __name__ == "__main__":
    unittest.main()
