"""
Caller-facing handle to a running test.
"""

from typing import Optional

from extent_reports.reporting.models import LogEvent, LogStatus, RunState, Test


class TestHandle:
    """Mutable handle returned by ``ReportEngine.start_test``.

    Log events and child tests are added through the handle. Calls on one
    handle are serialized by the test's own lock, so several threads may log
    to the same test.
    """
    __test__ = False

    def __init__(self, test: Test):
        self._test = test

    @property
    def test(self) -> Test:
        return self._test

    @property
    def name(self) -> str:
        return self._test.name

    @property
    def sequence(self) -> Optional[int]:
        return self._test.sequence

    @property
    def status(self) -> LogStatus:
        return self._test.status

    @property
    def state(self) -> RunState:
        return self._test.state

    def log(self, status, details: str) -> LogEvent:
        """Append a log event; ``status`` is a LogStatus or its name."""
        return self._test.add_log(status, details)

    def pass_(self, details: str) -> LogEvent:
        return self.log(LogStatus.PASS, details)

    def fail(self, details: str) -> LogEvent:
        return self.log(LogStatus.FAIL, details)

    def info(self, details: str) -> LogEvent:
        return self.log(LogStatus.INFO, details)

    def warning(self, details: str) -> LogEvent:
        return self.log(LogStatus.WARNING, details)

    def create_child(self, name: str, description: str = "") -> "TestHandle":
        """Start a nested step owned by this test."""
        child = Test(name=name, description=description, is_child_node=True)
        self._test.add_child(child)
        return TestHandle(child)

    def assign_category(self, *categories: str) -> "TestHandle":
        self._test.add_labels("categories", categories)
        return self

    def assign_author(self, *authors: str) -> "TestHandle":
        self._test.add_labels("authors", authors)
        return self

    def __repr__(self) -> str:
        return f"TestHandle(name={self.name!r}, sequence={self.sequence}, state={self.state.value})"
