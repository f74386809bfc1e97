"""Threshold evaluation for CPU usage values."""

from typing import Optional

from cpu_check.models import Classification, MetricName, Status, ThresholdPair


def not_monitored(metric: MetricName) -> Classification:
    """Classification for a metric that cannot be evaluated."""
    return Classification(Status.UNKNOWN, f"CPU {metric} not monitored")


def classify(
    value: int, pair: Optional[ThresholdPair], metric: MetricName
) -> Classification:
    """Classify a single metric's usage.

    Equal values count toward the higher severity.

    Args:
        value: Usage in percent
        pair: Configured thresholds, or None if the metric has none
        metric: Metric being classified

    Returns:
        The metric's classification
    """
    if pair is None:
        return not_monitored(metric)

    if value >= pair.crit:
        return Classification(
            Status.CRITICAL,
            f"CPU {metric} time is too high - Current: {value}% (>= {pair.crit}%)",
        )
    if value >= pair.warn:
        return Classification(
            Status.WARNING,
            f"High CPU {metric} time - Current: {value}% (>= {pair.warn}%)",
        )
    return Classification(
        Status.OK,
        f"CPU {metric} time is normal - Current: {value}% (< {pair.warn}%)",
    )


def classify_overall(value: int, pair: ThresholdPair) -> Classification:
    """Classify the aggregate non-idle usage."""
    if value >= pair.crit:
        return Classification(
            Status.CRITICAL,
            f"CPU usage is too high - Current: {value}% (>= {pair.crit}%)",
        )
    if value >= pair.warn:
        return Classification(
            Status.WARNING, f"High CPU usage - Current: {value}% (>= {pair.warn}%)"
        )
    return Classification(
        Status.OK, f"CPU usage is normal - Current: {value}% (< {pair.warn}%)"
    )
