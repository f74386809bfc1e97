"""Difference between two counter snapshots."""

from typing import Iterable

from cpu_check.core.errors import SourceUnavailable
from cpu_check.models import CounterSnapshot, MetricName


def diff(
    before: CounterSnapshot, after: CounterSnapshot, metrics: Iterable[MetricName]
) -> tuple[dict[MetricName, int], int]:
    """Compute per-metric tick deltas between two snapshots.

    Args:
        before: Counters from the first sample
        after: Counters from the second sample
        metrics: Metrics to diff

    Returns:
        Tuple of (deltas by metric, sum of all deltas)

    Raises:
        SourceUnavailable: If any counter moved backwards
    """
    deltas = {}
    for metric in metrics:
        delta = after[metric] - before[metric]
        if delta < 0:
            raise SourceUnavailable(
                f"CPU {metric} counter went backwards "
                f"({before[metric]} -> {after[metric]})"
            )
        deltas[metric] = delta

    return deltas, sum(deltas.values())
