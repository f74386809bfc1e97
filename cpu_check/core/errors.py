"""Errors raised by the CPU usage check."""


class CheckError(Exception):
    """Base class for errors that abort or degrade a check run."""


class ConfigInvalid(CheckError, ValueError):
    """The check configuration failed validation."""


class SourceUnavailable(CheckError):
    """CPU counters could not be read, parsed, or moved backwards."""


class DivisionByZero(CheckError, ZeroDivisionError):
    """No ticks elapsed between the two samples."""
