"""Data model for the CPU usage check."""

import json
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Mapping, Optional


class MetricName(str, Enum):
    """CPU time-accounting states, in /proc/stat field order."""

    USER = "user"
    NICE = "nice"
    SYSTEM = "system"
    IDLE = "idle"
    IOWAIT = "iowait"
    IRQ = "irq"
    SOFTIRQ = "softirq"
    STEAL = "steal"
    GUEST = "guest"
    GUEST_NICE = "guest_nice"

    def __str__(self) -> str:
        return self.value


METRICS: tuple[MetricName, ...] = tuple(MetricName)

CounterSnapshot = Mapping[MetricName, int]


class Status(IntEnum):
    """Check-plugin status codes."""

    OK = 0
    WARNING = 1
    CRITICAL = 2
    UNKNOWN = 3


@dataclass(frozen=True)
class ThresholdPair:
    """Warning and critical levels for one metric, in percent."""

    warn: int
    crit: int

    def __post_init__(self):
        if self.warn >= self.crit:
            # cpu_check.core imports this module
            from cpu_check.core.errors import ConfigInvalid

            raise ConfigInvalid(
                f"Warning threshold must be lower than the critical threshold "
                f"(warn={self.warn}, crit={self.crit})"
            )


@dataclass(frozen=True)
class CheckConfig:
    """Validated configuration for a single check run."""

    metrics: tuple[MetricName, ...] = METRICS
    ignored: tuple[MetricName, ...] = ()
    sleep: int = 1
    thresholds: Mapping[MetricName, ThresholdPair] = field(default_factory=dict)
    overall: ThresholdPair = ThresholdPair(warn=80, crit=90)
    handler: Optional[str] = None

    @property
    def requested(self) -> tuple[MetricName, ...]:
        """Metrics to evaluate, in canonical order."""
        return tuple(
            metric
            for metric in METRICS
            if metric in self.metrics and metric not in self.ignored
        )


@dataclass(frozen=True)
class UsageResult:
    """Percentage of elapsed ticks spent in each metric."""

    percentages: Mapping[MetricName, int]
    overall: int
    total: int


@dataclass(frozen=True)
class Classification:
    """Severity of a metric together with its rendered message."""

    status: Status
    message: str

    @property
    def output(self) -> str:
        return f"{self.status.name}: {self.message}"


@dataclass(frozen=True)
class CheckEvent:
    """Result record sent to the local event collector."""

    name: str
    status: Status
    output: str
    handler: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert event to dictionary."""
        event = {"name": self.name, "status": int(self.status), "output": self.output}
        if self.handler is not None:
            event["handler"] = self.handler
        return event

    def to_json(self) -> str:
        return json.dumps(self.to_dict())
