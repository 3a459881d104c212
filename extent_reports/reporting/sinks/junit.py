"""
JUnit XML report sink.
"""

import xml.etree.ElementTree as ET

from extent_reports.reporting.models import LogStatus, Test
from extent_reports.reporting.sinks.base import DocumentSink

FAILURE_STATUSES = (LogStatus.FAIL, LogStatus.FATAL)
ERROR_STATUSES = (LogStatus.ERROR,)
SKIPPED_STATUSES = (LogStatus.SKIP,)


def _duration(test: Test) -> float:
    if test.ended_at is None:
        return 0.0
    return max((test.ended_at - test.started_at).total_seconds(), 0.0)


def _reason(test: Test, statuses) -> str:
    """Details of the events (own or nested) that produced the test's status."""
    lines = []
    for node in test.walk():
        for event in node.logs:
            if event.status in statuses:
                prefix = "" if node is test else f"[{node.name}] "
                lines.append(prefix + event.details)
    return "\n".join(lines)


class JUnitSink(DocumentSink):
    """Writes one testcase per top-level test. Not importable."""

    format_name = "junit"
    extensions = (".xml",)

    def _write(self) -> None:
        tests = self.ordered_tests()
        statuses = [test.status for test in tests]

        testsuite = ET.Element(
            "testsuite",
            {
                "name": self.config.report_name,
                "tests": str(len(tests)),
                "failures": str(sum(1 for s in statuses if s in FAILURE_STATUSES)),
                "errors": str(sum(1 for s in statuses if s in ERROR_STATUSES)),
                "skipped": str(sum(1 for s in statuses if s in SKIPPED_STATUSES)),
                "time": f"{sum(_duration(t) for t in tests):.2f}",
            },
        )

        if self._system_info:
            props = ET.SubElement(testsuite, "properties")
            for key, value in self._system_info.items():
                ET.SubElement(props, "property", {"name": str(key), "value": str(value)})

        for test in tests:
            testcase = ET.SubElement(
                testsuite,
                "testcase",
                {
                    "classname": test.categories[0] if test.categories else "extent_reports",
                    "name": test.name,
                    "time": f"{_duration(test):.2f}",
                },
            )
            status = test.status
            if status in SKIPPED_STATUSES:
                skipped = ET.SubElement(testcase, "skipped")
                reason = _reason(test, SKIPPED_STATUSES)
                if reason:
                    skipped.set("message", reason.splitlines()[0])
            elif status in FAILURE_STATUSES or status in ERROR_STATUSES:
                tag = "failure" if status in FAILURE_STATUSES else "error"
                reason = _reason(test, (status,))
                element = ET.SubElement(testcase, tag, {"message": reason.splitlines()[0] if reason else status.value})
                if reason:
                    element.text = reason

        if self._runner_output:
            system_out = ET.SubElement(testsuite, "system-out")
            system_out.text = "\n".join(self._runner_output)

        tree = ET.ElementTree(testsuite)
        tree.write(self.path, encoding="utf-8", xml_declaration=True)
