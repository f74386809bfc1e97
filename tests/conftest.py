"""Shared pytest fixtures."""

import os
import tempfile
from typing import Generator

import pytest
import yaml

from cpu_check.core.reporter import EventSink, ResultReporter
from cpu_check.core.source import CounterSource
from cpu_check.models import METRICS


def make_snapshot(**counts) -> dict:
    """Build a counter snapshot, unspecified metrics are zero."""
    return {metric: counts.get(metric.value, 0) for metric in METRICS}


class FakeSource(CounterSource):
    """Counter source returning prepared snapshots in order."""

    def __init__(self, *snapshots):
        self.snapshots = list(snapshots)
        self.reads = 0

    def read(self):
        self.reads += 1
        snapshot = self.snapshots.pop(0)
        if isinstance(snapshot, Exception):
            raise snapshot
        return snapshot


class RecordingSink(EventSink):
    """Event sink keeping every emitted event."""

    def __init__(self):
        self.events = []

    def emit(self, event):
        self.events.append(event)

    def by_name(self) -> dict:
        return {event.name: event for event in self.events}


class ExitRecorder:
    """Stand-in for the process exit, records the terminal result."""

    def __init__(self):
        self.results = []

    def __call__(self, result):
        self.results.append(result)

    @property
    def result(self):
        assert len(self.results) == 1, "run must terminate exactly once"
        return self.results[0]


@pytest.fixture
def recording_sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def exit_recorder() -> ExitRecorder:
    return ExitRecorder()


@pytest.fixture
def reporter(recording_sink, exit_recorder) -> ResultReporter:
    return ResultReporter(recording_sink, handler="default", terminate=exit_recorder)


@pytest.fixture
def scenario_source() -> FakeSource:
    """Samples where user/system/idle move 20/10/20 ticks."""
    return FakeSource(
        make_snapshot(user=100, system=50, idle=800),
        make_snapshot(user=120, system=60, idle=820),
    )


@pytest.fixture
def temp_config_file() -> Generator[str, None, None]:
    """Create a temporary config file for testing."""
    config = {
        "check": {
            "sleep": 0,
            "warn": 70,
            "crit": 95,
            "handler": "mailer",
            "thresholds": {"iowait": {"warn": 20, "crit": 40}},
        },
        "events": {"enabled": False},
        "logging": {"level": "critical"},
    }

    with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
        yaml.dump(config, f)
        config_path = f.name

    yield config_path

    # Cleanup
    os.unlink(config_path)
