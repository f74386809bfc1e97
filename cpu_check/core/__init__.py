"""CPU usage sampling, evaluation and reporting."""

from .check import CpuUsageCheck
from .reporter import EventSink, ResultReporter, UdpEventSink
from .source import CounterSource, ProcStatSource, PsutilSource

__all__ = [
    "CounterSource",
    "CpuUsageCheck",
    "EventSink",
    "ProcStatSource",
    "PsutilSource",
    "ResultReporter",
    "UdpEventSink",
]
