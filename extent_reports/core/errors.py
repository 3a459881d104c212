"""
Custom exceptions for ExtentReports.
"""

from typing import List, Tuple


class ExtentReportsError(Exception):
    """Base exception for all ExtentReports errors."""
    pass


class ConfigurationError(ExtentReportsError):
    """Raised when configuration is invalid or a reporter type is unrecognized."""
    pass


class InvalidTestState(ExtentReportsError):
    """Raised when a test is ended twice or mutated after the engine closed."""
    pass


class EngineClosed(ExtentReportsError):
    """Raised when a mutating call reaches an engine that was closed."""
    pass


class ImportFailure(ExtentReportsError):
    """Raised when an existing report artifact cannot be read back."""
    pass


class SinkCommitFailure(ExtentReportsError):
    """Raised after a flush or close in which one or more sinks failed.

    Sinks that succeeded are not rolled back; ``failures`` lists the
    ``(sink_name, exception)`` pairs of the ones that did not.
    """

    def __init__(self, failures: List[Tuple[str, BaseException]]):
        self.failures = list(failures)
        names = ", ".join(f"{name} ({exc})" for name, exc in self.failures)
        super().__init__(f"{len(self.failures)} sink(s) failed: {names}")

    @property
    def sink_names(self) -> List[str]:
        return [name for name, _ in self.failures]
