"""Conversion of tick deltas into usage percentages."""

from typing import Mapping

from cpu_check.core.errors import DivisionByZero
from cpu_check.models import MetricName, UsageResult


def percentages(deltas: Mapping[MetricName, int], total: int) -> UsageResult:
    """Express each delta as a percentage of the elapsed ticks.

    Percentages use integer division and are truncated, so they may not sum
    to exactly 100. The overall usage is the share of ticks not spent idle,
    which means ``deltas`` must always carry the idle delta.

    Args:
        deltas: Tick deltas by metric, idle included
        total: Sum of all deltas

    Returns:
        Per-metric and overall usage

    Raises:
        DivisionByZero: If no ticks elapsed
    """
    if total == 0:
        raise DivisionByZero("No CPU ticks elapsed between samples")

    usage = {metric: 100 * delta // total for metric, delta in deltas.items()}
    overall = 100 * (total - deltas[MetricName.IDLE]) // total

    return UsageResult(percentages=usage, overall=overall, total=total)
