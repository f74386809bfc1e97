"""Result reporting for the CPU usage check."""

import socket
import sys
from abc import ABC, abstractmethod
from typing import Callable, Iterable, Mapping, Optional

import click
import structlog

from cpu_check.models import CheckEvent, Classification, MetricName, Status

logger = structlog.get_logger()

DEFAULT_EVENT_HOST = "127.0.0.1"
DEFAULT_EVENT_PORT = 3030

CHECK_NAME_PREFIX = "cpu-usage"


def check_name(metric: MetricName) -> str:
    return f"{CHECK_NAME_PREFIX}-{metric}"


class EventSink(ABC):
    """Destination for per-metric check events."""

    @abstractmethod
    def emit(self, event: CheckEvent) -> None:
        """Deliver one event.

        Args:
            event: The event to deliver
        """
        pass


class UdpEventSink(EventSink):
    """Fire-and-forget delivery to the local client socket.

    Each event is one JSON document followed by a newline, sent as a single
    datagram. Delivery failures are logged and dropped.
    """

    def __init__(self, host: str = DEFAULT_EVENT_HOST, port: int = DEFAULT_EVENT_PORT):
        self.host = host
        self.port = port
        self.logger = logger.bind(component="UdpEventSink", host=host, port=port)

    def emit(self, event: CheckEvent) -> None:
        data = (event.to_json() + "\n").encode("utf-8")
        try:
            with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
                sock.sendto(data, (self.host, self.port))
            self.logger.debug("Event sent", event=event.name, status=int(event.status))
        except OSError as e:
            self.logger.warning("Failed to send event", event=event.name, error=str(e))


class NullEventSink(EventSink):
    """Sink that drops every event."""

    def emit(self, event: CheckEvent) -> None:
        logger.debug("Event dropped", event=event.name)


def exit_with_status(result: Classification) -> None:
    """Print the check output and exit with its status code."""
    click.echo(result.output)
    sys.exit(int(result.status))


class ResultReporter:
    """Dispatches classifications as events and as the process exit status."""

    def __init__(
        self,
        sink: EventSink,
        handler: Optional[str] = None,
        terminate: Callable[[Classification], None] = exit_with_status,
    ):
        """Initialize the reporter.

        Args:
            sink: Destination for per-metric events
            handler: Handler name attached to every event
            terminate: Called with the aggregate result to end the run
        """
        self.sink = sink
        self.handler = handler
        self._terminate = terminate
        self.logger = logger.bind(component="ResultReporter")

    def emit(self, metric: MetricName, result: Classification) -> None:
        """Send one per-metric event."""
        event = CheckEvent(
            name=check_name(metric),
            status=result.status,
            output=result.output,
            handler=self.handler,
        )
        self.sink.emit(event)

    def report(
        self,
        per_metric: Mapping[MetricName, Classification],
        aggregate: Classification,
        ignored: Iterable[MetricName] = (),
    ) -> None:
        """Emit all per-metric events, then end the run with the aggregate.

        Args:
            per_metric: Classification of every evaluated metric
            aggregate: Classification of the overall usage
            ignored: Metrics excluded by configuration, always reported OK
        """
        for metric, result in per_metric.items():
            self.emit(metric, result)

        for metric in ignored:
            self.emit(
                metric, Classification(Status.OK, f"CPU {metric} time not monitored")
            )

        self.terminate(aggregate)

    def terminate(self, aggregate: Classification) -> None:
        """End the run with the given result."""
        self.logger.info(
            "Check finished", status=aggregate.status.name, message=aggregate.message
        )
        self._terminate(aggregate)
