"""
Artifact document codec.

Every importable artifact (JSON file, HTML data island) stores the same
document: report metadata, system info, test-runner output and the
top-level tests oldest first, each with its nested logs and children.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from extent_reports.core.errors import ImportFailure
from extent_reports.core.logging import get_logger
from extent_reports.reporting.models import LogEvent, RunState, Test, parse_status

DOCUMENT_FORMAT = "extent-reports"
DOCUMENT_VERSION = 1

# id of the <script type="application/json"> element holding the document in HTML reports
DATA_ISLAND_ID = "extent-report-data"


@dataclass
class ImportedReport:
    """What an importer could recover from an artifact."""
    tests: List[Test] = field(default_factory=list)
    system_info: Dict[str, str] = field(default_factory=dict)
    runner_output: List[str] = field(default_factory=list)
    skipped: int = 0


def encode_log(event: LogEvent) -> Dict[str, Any]:
    return {
        "status": event.status.value,
        "details": event.details,
        "timestamp": event.timestamp.isoformat(),
    }


def encode_test(test: Test) -> Dict[str, Any]:
    """Convert a test and its subtree to a dictionary, excluding empty fields."""
    result = {
        "uid": test.uid,
        "name": test.name,
        "state": test.state.value,
        "status": test.status.value,
        "started_at": test.started_at.isoformat(),
    }
    if test.description:
        result["description"] = test.description
    if test.ended_at is not None:
        result["ended_at"] = test.ended_at.isoformat()
    if test.categories:
        result["categories"] = list(test.categories)
    if test.authors:
        result["authors"] = list(test.authors)
    result["logs"] = [encode_log(event) for event in test.logs]
    if test.children:
        result["children"] = [encode_test(child) for child in test.children]
    return result


def tests_to_document(tests: Iterable[Test],
                      system_info: Optional[Dict[str, str]] = None,
                      runner_output: Iterable[str] = (),
                      report_name: str = "") -> Dict[str, Any]:
    """Build the artifact document; ``tests`` must be oldest first."""
    return {
        "format": DOCUMENT_FORMAT,
        "version": DOCUMENT_VERSION,
        "generated_at": datetime.now().isoformat(),
        "report_name": report_name,
        "system_info": dict(system_info or {}),
        "runner_output": list(runner_output),
        "tests": [encode_test(test) for test in tests],
    }


def _parse_time(value: Optional[str], default: Optional[datetime] = None) -> Optional[datetime]:
    if value is None:
        return default
    return datetime.fromisoformat(value)


def decode_test(data: Dict[str, Any],
                child: bool = False,
                logger: Optional[logging.Logger] = None) -> Test:
    """
    Rebuild an ended test from its dictionary form.

    Malformed log events and children are skipped with a warning; a
    malformed test itself raises KeyError, ValueError or TypeError.
    """
    logger = logger or get_logger(__name__)
    started_at = _parse_time(data.get("started_at"), datetime.now())
    test = Test(
        name=data["name"],
        description=data.get("description") or "",
        is_child_node=child,
        sequence=None,
        uid=str(data.get("uid") or uuid.uuid4().hex),
        state=RunState.ENDED,
        started_at=started_at,
        ended_at=_parse_time(data.get("ended_at"), started_at),
        categories=[str(c) for c in data.get("categories", [])],
        authors=[str(a) for a in data.get("authors", [])],
    )

    for entry in data.get("logs", []):
        try:
            test.logs.append(LogEvent(
                status=parse_status(entry["status"]),
                details=str(entry.get("details", "")),
                timestamp=_parse_time(entry.get("timestamp"), started_at),
            ))
        except (KeyError, ValueError, TypeError, AttributeError) as e:
            logger.warning(f"Skipping malformed log event in test '{test.name}': {e}")

    for entry in data.get("children", []):
        try:
            test.children.append(decode_test(entry, child=True, logger=logger))
        except (KeyError, ValueError, TypeError, AttributeError) as e:
            logger.warning(f"Skipping malformed child of test '{test.name}': {e}")

    return test


def document_to_tests(data: Any, logger: Optional[logging.Logger] = None) -> ImportedReport:
    """
    Recover tests from an artifact document.

    Raises:
        ImportFailure: If ``data`` is not an artifact document at all
    """
    logger = logger or get_logger(__name__)
    if not isinstance(data, dict) or data.get("format") != DOCUMENT_FORMAT:
        raise ImportFailure("Not an ExtentReports document")
    entries = data.get("tests")
    if not isinstance(entries, list):
        raise ImportFailure("Document has no test list")

    imported = ImportedReport()
    info = data.get("system_info")
    if isinstance(info, dict):
        imported.system_info = {str(k): str(v) for k, v in info.items()}
    output = data.get("runner_output")
    if isinstance(output, list):
        imported.runner_output = [str(line) for line in output]

    for index, entry in enumerate(entries):
        try:
            imported.tests.append(decode_test(entry, logger=logger))
        except (KeyError, ValueError, TypeError, AttributeError) as e:
            imported.skipped += 1
            logger.warning(f"Skipping malformed test entry #{index}: {e}")

    return imported
