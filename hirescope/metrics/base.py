"""
Shared metric types and rounding helpers.
"""

import math
from typing import Callable, NamedTuple

from hirescope.models import RepoSignals


class Metric(NamedTuple):
    """One bounded point contribution to a sub-score."""

    name: str
    score: int
    max_score: int
    message: str


class MetricSpec(NamedTuple):
    """Specification for a metric check."""

    name: str
    checker: Callable[[RepoSignals], Metric]


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from negative infinity."""
    return int(math.floor(value + 0.5))


def clamp_score(value: float) -> int:
    """Round and clamp a score into [0, 100]."""
    return max(0, min(100, round_half_up(value)))
