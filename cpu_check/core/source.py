"""CPU counter sources."""

import os
import platform
import re
from abc import ABC, abstractmethod
from typing import Any, Optional

import psutil
import structlog

from cpu_check.core.errors import SourceUnavailable
from cpu_check.models import METRICS, CounterSnapshot

logger = structlog.get_logger()

PROC_STAT_PATH = "/proc/stat"
HOST_PROC_STAT_PATH = "/host/proc/stat"

_CPU_LINE = re.compile(r"^cpu[ \t]+(.*)$", re.MULTILINE)

# user through steal; guest and guest_nice are optional on old kernels
MIN_FIELDS = 8


def parse_proc_stat(content: str) -> CounterSnapshot:
    """Parse the aggregate cpu line of /proc/stat content.

    Args:
        content: Raw /proc/stat text

    Returns:
        Tick count for every metric

    Raises:
        SourceUnavailable: If the cpu line is missing or malformed
    """
    match = _CPU_LINE.search(content)
    if not match:
        raise SourceUnavailable("No aggregate cpu line found in CPU statistics")

    try:
        values = [int(field) for field in match.group(1).split()]
    except ValueError as e:
        raise SourceUnavailable(f"Malformed cpu line in CPU statistics: {e}") from e

    if len(values) < MIN_FIELDS:
        raise SourceUnavailable(
            f"Malformed cpu line in CPU statistics: expected at least "
            f"{MIN_FIELDS} fields, got {len(values)}"
        )
    if any(value < 0 for value in values):
        raise SourceUnavailable(
            "Malformed cpu line in CPU statistics: negative counter"
        )

    # missing guest time (kernel < 2.6.24)
    if len(values) < 9:
        values.append(0)

    # missing guest_nice time (kernel < 2.6.33)
    if len(values) < 10:
        values.append(0)

    return dict(zip(METRICS, values))


class CounterSource(ABC):
    """Base class for cumulative CPU counter sources."""

    @abstractmethod
    def read(self) -> CounterSnapshot:
        """Read the current cumulative counters.

        Returns:
            Tick count for every metric
        """
        pass


class ProcStatSource(CounterSource):
    """Read counters from the kernel's /proc/stat file."""

    def __init__(self, path: str = PROC_STAT_PATH):
        self.path = path
        self.logger = logger.bind(component="ProcStatSource", path=path)

    def read(self) -> CounterSnapshot:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                content = f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise SourceUnavailable(
                f"Cannot read CPU statistics from {self.path}: {e}"
            ) from e

        snapshot = parse_proc_stat(content)
        self.logger.debug(
            "Counters read", counters={str(k): v for k, v in snapshot.items()}
        )
        return snapshot


class PsutilSource(CounterSource):
    """Read counters through psutil, for hosts without /proc/stat.

    psutil reports seconds; they are converted back to clock ticks so the
    rest of the check works on the same units as /proc/stat.
    """

    def __init__(self):
        self.logger = logger.bind(component="PsutilSource")
        self.ticks_per_second = _clock_ticks()

    def read(self) -> CounterSnapshot:
        try:
            times = psutil.cpu_times()
        except Exception as e:
            raise SourceUnavailable(f"Cannot read CPU times via psutil: {e}") from e

        snapshot = {
            metric: int(getattr(times, metric.value, 0.0) * self.ticks_per_second)
            for metric in METRICS
        }
        self.logger.debug(
            "Counters read", counters={str(k): v for k, v in snapshot.items()}
        )
        return snapshot


def _clock_ticks() -> int:
    try:
        return os.sysconf("SC_CLK_TCK")
    except (AttributeError, ValueError, OSError):
        return 100


def default_source(settings: Optional[dict[str, Any]] = None) -> CounterSource:
    """Pick a counter source for this host.

    Args:
        settings: The ``source`` section of the configuration

    Returns:
        A ProcStatSource when a stat file is available, a PsutilSource otherwise
    """
    settings = settings or {}
    source_type = settings.get("type", "auto")

    if source_type == "psutil":
        return PsutilSource()

    path = settings.get("stat_path")
    if not path:
        in_container = os.getenv("CONTAINER") == "1"
        path = (
            HOST_PROC_STAT_PATH
            if in_container and os.path.exists(HOST_PROC_STAT_PATH)
            else PROC_STAT_PATH
        )

    if source_type == "proc" or (
        platform.system() == "Linux" and os.path.exists(path)
    ):
        return ProcStatSource(path)

    logger.debug(
        "No CPU statistics file available, using psutil",
        path=path,
        platform=platform.system(),
    )
    return PsutilSource()
