"""
Base classes for report sinks.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from extent_reports.core.config import DisplayOrder, ReportConfig
from extent_reports.core.errors import ExtentReportsError
from extent_reports.core.logging import get_logger
from extent_reports.reporting.models import Test
from extent_reports.reporting.serialization import ImportedReport, tests_to_document


class Sink(ABC):
    """
    Durable output backend fed by a ReportEngine.

    The engine calls, in order and under its lock:
    - bind: once, on attach
    - adopt_existing: only in append mode, with the content of this sink's own artifact
    - discard_existing: instead of adopt_existing, when that artifact could not be imported
    - accept: on every flush, with the ended top-level tests in display order
    - commit: right after accept
    - terminate: once, on close

    ``accept`` keeps the set of sequence numbers already handed to
    ``receive`` so a test reaches each sink at most once.
    """

    format_name = "sink"
    extensions: Tuple[str, ...] = ()

    def __init__(self, path: Path, logger: Optional[logging.Logger] = None):
        self.path = Path(path)
        self.logger = logger or get_logger(__name__)
        self.config = ReportConfig()
        self._delivered: Set[int] = set()
        self._terminated = False
        self._discard_existing = False

    @property
    def name(self) -> str:
        return f"{self.format_name}:{self.path}"

    @property
    def terminated(self) -> bool:
        return self._terminated

    def bind(self, config: ReportConfig) -> None:
        """Adopt the owning engine's configuration."""
        self.config = config

    def create_importer(self):
        """Return an Importer for this sink's artifact, or None if it cannot be read back."""
        return None

    def has_existing_artifact(self) -> bool:
        return self.path.is_file()

    def adopt_existing(self, imported: ImportedReport) -> None:
        """Take over content already present in the artifact (append mode)."""
        pass

    def discard_existing(self) -> None:
        """Start empty even in append mode; the existing artifact could not be imported."""
        self._discard_existing = True

    def mark_delivered(self, sequences: Iterable[int]) -> None:
        self._delivered.update(s for s in sequences if s is not None)

    def is_delivered(self, test: Test) -> bool:
        return test.sequence in self._delivered

    def accept(self,
               tests: Sequence[Test],
               system_info: Dict[str, str],
               runner_output: Sequence[str] = ()) -> List[Test]:
        """Pass on the tests this sink has not received yet; return them."""
        if self._terminated:
            raise ExtentReportsError(f"{self.name} has been terminated")
        fresh = [test for test in tests if not self.is_delivered(test)]
        self.receive(fresh, system_info, runner_output)
        self.mark_delivered(test.sequence for test in fresh)
        for test in fresh:
            self.logger.debug(f"{self.name}: received '{test.name}' (#{test.sequence})")
        return fresh

    @abstractmethod
    def receive(self,
                tests: Sequence[Test],
                system_info: Dict[str, str],
                runner_output: Sequence[str]) -> None:
        """Buffer newly ended tests; may be called any number of times."""
        pass

    @abstractmethod
    def commit(self) -> None:
        """Durably persist everything received since the last commit."""
        pass

    def terminate(self) -> None:
        """Release held resources. Safe to call more than once."""
        if self._terminated:
            return
        try:
            self._release()
        finally:
            self._terminated = True

    def _release(self) -> None:
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str(self.path)!r})"


class DocumentSink(Sink):
    """
    Sink whose artifact is one file rewritten in full on every commit.

    Tests are kept in delivery order (each batch oldest first) and
    rendered in the configured display order.
    """

    def __init__(self, path: Path, logger: Optional[logging.Logger] = None):
        super().__init__(path, logger)
        self._tests: List[Test] = []
        self._system_info: Dict[str, str] = {}
        self._runner_output: List[str] = []
        self._adopted_output: List[str] = []
        self._dirty = True

    @property
    def tests(self) -> List[Test]:
        return list(self._tests)

    @property
    def system_info(self) -> Dict[str, str]:
        return dict(self._system_info)

    def document(self) -> Dict[str, object]:
        """Artifact document for everything this sink holds, oldest first."""
        return tests_to_document(self._tests, self._system_info, self._runner_output, self.config.report_name)

    def ordered_tests(self) -> List[Test]:
        """Tests in the order the artifact presents them."""
        if self.config.display_order == DisplayOrder.NEWEST_FIRST:
            return list(reversed(self._tests))
        return list(self._tests)

    def adopt_existing(self, imported: ImportedReport) -> None:
        known = {test.uid for test in self._tests}
        adopted = [test for test in imported.tests if test.uid not in known]
        self._tests = adopted + self._tests
        merged = dict(imported.system_info)
        merged.update(self._system_info)
        self._system_info = merged
        self._adopted_output = list(imported.runner_output)
        self._runner_output = self._adopted_output + self._runner_output
        self._dirty = True

    def receive(self, tests, system_info, runner_output) -> None:
        self._tests.extend(sorted(tests, key=lambda t: t.sequence))
        self._system_info.update(system_info)
        self._runner_output = self._adopted_output + list(runner_output)
        self._dirty = True

    def commit(self) -> None:
        if not self._dirty:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._write()
        self._dirty = False
        self.logger.info(f"Wrote {len(self._tests)} test(s) to {self.path}")

    @abstractmethod
    def _write(self) -> None:
        """Write the whole artifact to ``self.path``."""
        pass
