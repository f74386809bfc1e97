"""The CPU usage check run."""

import time
from typing import Callable, Optional

import structlog

from cpu_check.core.differ import diff
from cpu_check.core.errors import DivisionByZero, SourceUnavailable
from cpu_check.core.reporter import ResultReporter
from cpu_check.core.source import CounterSource
from cpu_check.core.thresholds import classify, classify_overall, not_monitored
from cpu_check.core.usage import percentages
from cpu_check.models import (
    CheckConfig,
    Classification,
    MetricName,
    Status,
    UsageResult,
)

logger = structlog.get_logger()


class CpuUsageCheck:
    """Two-sample CPU usage check.

    A run is strictly linear: sample, sleep, sample, diff, compute
    percentages, classify and emit each metric, then classify the overall
    usage and hand it to the reporter as the terminal result.
    """

    def __init__(
        self,
        config: CheckConfig,
        source: CounterSource,
        reporter: ResultReporter,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize the check.

        Args:
            config: Validated check configuration
            source: Where CPU counters are read from
            reporter: Where results are sent
            sleep: Blocking sleep between the two samples
        """
        self.config = config
        self.source = source
        self.reporter = reporter
        self._sleep = sleep
        self.logger = logger.bind(check="cpu-usage")

    @property
    def sampled_metrics(self) -> tuple[MetricName, ...]:
        """Requested metrics plus idle, which overall usage depends on."""
        requested = self.config.requested
        if MetricName.IDLE in requested:
            return requested
        return requested + (MetricName.IDLE,)

    def measure(self) -> UsageResult:
        """Take both samples and compute usage.

        Raises:
            SourceUnavailable: If counters cannot be read or went backwards
            DivisionByZero: If no ticks elapsed between the samples
        """
        before = self.source.read()
        if self.config.sleep > 0:
            self.logger.debug("Sleeping between samples", seconds=self.config.sleep)
            self._sleep(self.config.sleep)
        after = self.source.read()

        deltas, total = diff(before, after, self.sampled_metrics)
        self.logger.debug(
            "Counters diffed",
            deltas={str(k): v for k, v in deltas.items()},
            total=total,
        )
        usage = percentages(deltas, total)
        self.logger.info(
            "Usage computed",
            usage={str(k): v for k, v in usage.percentages.items()},
            overall=usage.overall,
        )
        return usage

    def evaluate(
        self, usage: Optional[UsageResult]
    ) -> tuple[dict[MetricName, Classification], Classification]:
        """Classify every requested metric and the overall usage.

        Args:
            usage: Computed usage, or None when no ticks elapsed

        Returns:
            Tuple of (per-metric classifications, overall classification)
        """
        if usage is None:
            per_metric = {
                metric: not_monitored(metric) for metric in self.config.requested
            }
            aggregate = Classification(
                Status.UNKNOWN,
                "CPU usage not monitored - no CPU time elapsed between samples",
            )
            return per_metric, aggregate

        per_metric = {
            metric: classify(
                usage.percentages[metric], self.config.thresholds.get(metric), metric
            )
            for metric in self.config.requested
        }
        return per_metric, classify_overall(usage.overall, self.config.overall)

    def run(self) -> Classification:
        """Execute the check and report its results.

        Returns:
            The overall classification, if the reporter's terminate returns
        """
        self.logger.info(
            "Starting check",
            metrics=[str(m) for m in self.config.requested],
            ignored=[str(m) for m in self.config.ignored],
            sleep=self.config.sleep,
        )

        try:
            usage = self.measure()
        except SourceUnavailable as e:
            self.logger.error("CPU counters unavailable", error=str(e))
            result = Classification(Status.UNKNOWN, str(e))
            self.reporter.terminate(result)
            return result
        except DivisionByZero as e:
            self.logger.warning("Cannot compute CPU usage", error=str(e))
            usage = None

        per_metric, aggregate = self.evaluate(usage)
        self.reporter.report(per_metric, aggregate, ignored=self.config.ignored)
        return aggregate
