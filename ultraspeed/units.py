"""Rate formatting and gauge mapping used by every presentation surface."""
from __future__ import annotations

import math
import random
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, NamedTuple, Optional

from ultraspeed.models import UsageSample

GAUGE_MAX = 100


class FormattedRate(NamedTuple):
    value: float
    unit: str


def _one_decimal(value: float) -> float:
    # Decimal(float) is exact, so halves round up the same way toFixed(1) does.
    return float(Decimal(value).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def format_speed(bytes_per_sec: float) -> FormattedRate:
    """Pick B/s, KB/s or MB/s for a byte rate, with one decimal place."""
    if bytes_per_sec == 0:
        return FormattedRate(0, "B/s")
    kbps = bytes_per_sec / 1024
    if kbps < 1000:
        return FormattedRate(_one_decimal(kbps), "KB/s")
    return FormattedRate(_one_decimal(kbps / 1024), "MB/s")


def gauge_value(rate: FormattedRate) -> int:
    """Coarse Mbps figure for a throughput gauge.

    MB/s is multiplied by 8; anything else is treated as KB/s and divided
    by 128. This is a visual approximation, not a measured bitrate.
    """
    if rate.unit == "MB/s":
        return round_half_up(rate.value * 8)
    return round_half_up(rate.value / 128)


def gauge_fill(value: float, maximum: float = GAUGE_MAX) -> float:
    """Fraction of the gauge arc to draw, capped at a full circle."""
    if maximum <= 0:
        return 0.0
    return max(0.0, min(value, maximum)) / maximum


def latency_placeholder(rng: Optional[random.Random] = None) -> int:
    """Synthetic latency figure in [1, 6] ms.

    Nothing is measured here; the dashboard labels it as a placeholder.
    """
    source = rng or random
    return round_half_up(source.random() * 5 + 1)


def rates_summary(sample: Optional[UsageSample], rng: Optional[random.Random] = None) -> Dict[str, Any]:
    """Headline rates and gauge values derived from the newest sample."""
    rx = sample.rx if sample else 0.0
    tx = sample.tx if sample else 0.0
    download = format_speed(rx * 1024)
    upload = format_speed(tx * 1024)
    return {
        "download": download._asdict(),
        "upload": upload._asdict(),
        "gauges": {
            "download": gauge_value(download),
            "upload": gauge_value(upload),
            "latency": latency_placeholder(rng),
            "latency_placeholder": True,
            "uptime": GAUGE_MAX,
        },
    }


__all__ = [
    "FormattedRate",
    "GAUGE_MAX",
    "format_speed",
    "gauge_value",
    "gauge_fill",
    "latency_placeholder",
    "rates_summary",
    "round_half_up",
]
