"""Test threshold classification."""

import pytest

from cpu_check.core.errors import ConfigInvalid
from cpu_check.core.thresholds import classify, classify_overall, not_monitored
from cpu_check.models import MetricName, Status, ThresholdPair

PAIR = ThresholdPair(warn=40, crit=50)


@pytest.mark.parametrize(
    "value, expected",
    [
        (0, Status.OK),
        (39, Status.OK),
        (40, Status.WARNING),
        (49, Status.WARNING),
        (50, Status.CRITICAL),
        (100, Status.CRITICAL),
    ],
)
def test_metric_boundaries(value, expected):
    assert classify(value, PAIR, MetricName.IOWAIT).status == expected


def test_metric_without_thresholds_is_unknown():
    result = classify(99, None, MetricName.STEAL)

    assert result.status == Status.UNKNOWN
    assert result.message == "CPU steal not monitored"
    assert result == not_monitored(MetricName.STEAL)


def test_metric_messages():
    assert classify(55, PAIR, MetricName.USER).output == (
        "CRITICAL: CPU user time is too high - Current: 55% (>= 50%)"
    )
    assert classify(45, PAIR, MetricName.USER).output == (
        "WARNING: High CPU user time - Current: 45% (>= 40%)"
    )
    assert classify(5, PAIR, MetricName.USER).output == (
        "OK: CPU user time is normal - Current: 5% (< 40%)"
    )


@pytest.mark.parametrize(
    "value, expected",
    [
        (79, Status.OK),
        (80, Status.WARNING),
        (89, Status.WARNING),
        (90, Status.CRITICAL),
    ],
)
def test_overall_boundaries(value, expected):
    assert classify_overall(value, ThresholdPair(warn=80, crit=90)).status == expected


def test_overall_messages():
    pair = ThresholdPair(warn=80, crit=90)

    assert classify_overall(60, pair).output == (
        "OK: CPU usage is normal - Current: 60% (< 80%)"
    )
    assert classify_overall(95, pair).output == (
        "CRITICAL: CPU usage is too high - Current: 95% (>= 90%)"
    )


@pytest.mark.parametrize("warn, crit", [(90, 80), (80, 80)])
def test_threshold_pair_requires_warn_below_crit(warn, crit):
    with pytest.raises(ConfigInvalid, match="lower than the critical"):
        ThresholdPair(warn=warn, crit=crit)
