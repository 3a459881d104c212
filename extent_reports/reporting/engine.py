"""
Report engine: owns the live tests and fans them out to sinks.
"""

import logging
import threading
from dataclasses import fields
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

from extent_reports.core.config import ConfigSource, DisplayOrder, ReportConfig
from extent_reports.core.errors import (
    ConfigurationError,
    EngineClosed,
    ImportFailure,
    SinkCommitFailure,
)
from extent_reports.core.logging import get_logger
from extent_reports.reporting.handle import TestHandle
from extent_reports.reporting.models import LogStatus, SystemInfo, Test
from extent_reports.reporting.sinks import ReporterType, Sink, create_sink, reporter_type_for

ABRUPT_END_MESSAGE = (
    "Test did not end safely because end_test() was not called before the report was closed. "
    "There may be errors."
)


def without_child_nodes(tests: Sequence[Test]) -> List[Test]:
    """Return the top-level tests only, leaving ``tests`` untouched."""
    return [test for test in tests if not test.is_child_node]


class ReportEngine:
    """
    Collects tests reported by client code and renders them to sinks.

    All mutating operations share one engine-wide lock, sink I/O included,
    so every flush sees a consistent snapshot and sinks see tests in the
    order the engine does.

    Example:
        engine = ReportEngine(ReportConfig(path="report.html"))
        test = engine.start_test("Login", "valid credentials")
        test.log(LogStatus.PASS, "logged in")
        engine.end_test(test)
        engine.close()
    """

    def __init__(self, config: Optional[ReportConfig] = None, logger: Optional[logging.Logger] = None, **options):
        """
        Initialize the engine.

        Args:
            config: Report configuration; built from ``options`` when omitted
            logger: Logger for warnings and progress (default: module logger)
            **options: ReportConfig fields, used only without ``config``
        """
        self.config = config if config is not None else ReportConfig(**options)
        self.logger = logger or get_logger(__name__)
        self.configuration_errors: List[ConfigurationError] = []

        self._lock = threading.RLock()
        self._tests: List[Test] = []
        self._system_info = SystemInfo()
        self._runner_output: List[str] = []
        self._sinks: List[Sink] = []
        self._imported = False
        self._closed = False

        if self.config.path is not None:
            self.start_reporter(None, self.config.path)

    @property
    def append(self) -> bool:
        return self.config.append

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def tests(self) -> Tuple[Test, ...]:
        """Snapshot of the top-level collection, in creation order."""
        with self._lock:
            return tuple(self._tests)

    @property
    def sinks(self) -> Tuple[Sink, ...]:
        with self._lock:
            return tuple(self._sinks)

    @property
    def system_info(self) -> Dict[str, str]:
        with self._lock:
            return self._system_info.as_dict()

    @property
    def runner_output(self) -> List[str]:
        with self._lock:
            return list(self._runner_output)

    # Configuration

    def load_config(self, source: ConfigSource) -> "ReportEngine":
        """
        Apply report customisation from a TOML file, bytes or stream.

        An unreadable or invalid source is logged and the current settings
        are kept.
        """
        with self._lock:
            self._ensure_open()
            try:
                updated = ReportConfig.from_dict(self.config.to_dict()).apply_file(source)
            except ConfigurationError as e:
                self.logger.warning(f"Unable to perform report configuration: {e}; keeping current settings")
                self.configuration_errors.append(e)
                return self
            # Sinks hold a reference to self.config, so update it in place
            for f in fields(updated):
                if f.name in ("path", "replace_existing"):
                    continue
                setattr(self.config, f.name, getattr(updated, f.name))
        return self

    # Sinks

    def start_reporter(self, reporter_type: Optional[Union[ReporterType, str]], path: Union[str, Path]) -> "ReportEngine":
        """
        Attach the sink ``reporter_type`` selects (or the path's extension, if None).

        A rejected reporter is logged and recorded in ``configuration_errors``;
        the engine stays usable.
        """
        with self._lock:
            self._ensure_open()
            try:
                if reporter_type is None:
                    reporter_type = reporter_type_for(Path(path))
                sink = create_sink(reporter_type, Path(path), logger=self.logger)
            except ConfigurationError as e:
                self.logger.warning(f"Reporter not started: {e}")
                self.configuration_errors.append(e)
                return self
            self.attach_sink(sink)
        return self

    def attach_sink(self, sink: Sink) -> Sink:
        """
        Register a sink.

        In append mode the sink's existing artifact is imported first: the
        first successful import is merged ahead of every test in this
        engine, and tests the artifact already holds are not sent to it again.
        """
        with self._lock:
            self._ensure_open()
            if sink in self._sinks:
                return sink
            sink.bind(self.config)
            if self.append:
                self._reconcile(sink)
            self._sinks.append(sink)
            self.logger.info(f"Attached {sink.name}")
        return sink

    def _reconcile(self, sink: Sink) -> None:
        if not sink.has_existing_artifact():
            return
        importer = sink.create_importer()
        if importer is None:
            self.logger.info(f"{sink.name} cannot be read back; existing content will be replaced")
            return
        try:
            imported = importer.import_from(sink.path)
        except ImportFailure as e:
            self.logger.warning(f"Could not import existing report {sink.path}: {e}. Starting it fresh.")
            sink.discard_existing()
            return

        if not self._imported:
            self._merge_imported(imported.tests)
            self._imported = True
        sink.adopt_existing(imported)

        by_uid = {test.uid: test for test in self._tests}
        sink.mark_delivered(by_uid[t.uid].sequence for t in imported.tests if t.uid in by_uid)

    def _merge_imported(self, tests: List[Test]) -> None:
        """Put imported tests ahead of the collection, numbered below any live test."""
        count = len(tests)
        for index, test in enumerate(tests):
            test.assign_sequence(index - count)
            test.seal()
        self._tests = list(tests) + self._tests
        self.logger.info(f"Merged {count} test(s) from the existing report")

    # Tests

    def start_test(self, name: str, description: str = "") -> TestHandle:
        """Create a running top-level test and return its handle."""
        with self._lock:
            self._ensure_open()
            test = Test(name=name, description=description)
            self._tests.append(test)
        return TestHandle(test)

    def end_test(self, handle: Union[TestHandle, Test]) -> None:
        """
        Mark a test as ended. Nothing is written until the next flush.

        Raises:
            InvalidTestState: If the test has already ended
            EngineClosed: If the engine was closed
        """
        test = handle.test if isinstance(handle, TestHandle) else handle
        with self._lock:
            self._ensure_open()
            test.end()

    def add_system_info(self, key: Union[str, Mapping[str, str]], value: Optional[str] = None) -> "ReportEngine":
        """Add one ``key, value`` pair or a whole mapping; the last write per key wins."""
        with self._lock:
            self._ensure_open()
            if isinstance(key, Mapping):
                self._system_info.update(key)
            else:
                self._system_info.set(key, value)
        return self

    def set_test_runner_output(self, log: str) -> "ReportEngine":
        """Add output captured from the test runner (e.g. pytest, TestNG)."""
        with self._lock:
            self._ensure_open()
            self._runner_output.append(str(log))
        return self

    # Flush / close

    def flush(self) -> None:
        """
        Deliver every ended top-level test to every sink and commit.

        Running tests are skipped and reconsidered next time. A test
        reaches each sink at most once.

        Raises:
            SinkCommitFailure: If any sink failed; the others still committed
        """
        with self._lock:
            self._ensure_open()
            failures = self._flush_locked()
        if failures:
            raise SinkCommitFailure(failures)

    def _flush_locked(self) -> List[Tuple[str, BaseException]]:
        top_level = without_child_nodes(self._tests)
        if len(top_level) != len(self._tests):
            self.logger.debug(f"Ignoring {len(self._tests) - len(top_level)} child test(s) at top level")
        ended = [test for test in top_level if test.has_ended]
        if self.config.display_order == DisplayOrder.NEWEST_FIRST:
            ended.reverse()

        system_info = self._system_info.as_dict()
        runner_output = list(self._runner_output)
        failures: List[Tuple[str, BaseException]] = []
        for sink in self._sinks:
            try:
                sink.accept(ended, system_info, runner_output)
                sink.commit()
            except Exception as e:
                self.logger.error(f"{sink.name} failed during flush: {e}")
                failures.append((sink.name, e))
        return failures

    def close(self) -> None:
        """
        End any test still running, flush one last time and terminate every sink.

        Running tests get a warning event so that partial runs still appear
        in the report. Calling close again does nothing.

        Raises:
            SinkCommitFailure: If any sink failed to flush or terminate
        """
        with self._lock:
            if self._closed:
                return
            now = datetime.now()
            for test in self._tests:
                for node in test.walk():
                    if not node.has_ended:
                        node.add_log(LogStatus.WARNING, ABRUPT_END_MESSAGE)
                        node.end(now)
                        self.logger.warning(f"Test '{node.name}' ended abruptly")

            failures = self._flush_locked()
            for sink in self._sinks:
                try:
                    sink.terminate()
                except Exception as e:
                    self.logger.error(f"{sink.name} failed to terminate: {e}")
                    failures.append((sink.name, e))

            for test in self._tests:
                test.seal()
            self._closed = True
            self._tests = []
        if failures:
            raise SinkCommitFailure(failures)

    def _ensure_open(self) -> None:
        if self._closed:
            raise EngineClosed("The report has been closed")

    def __enter__(self) -> "ReportEngine":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
