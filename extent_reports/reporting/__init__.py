"""
Test reporting module for ExtentReports.

This module provides:
- The test model (tests, log events, system info)
- The report engine and its test handles
- Sinks that render reports (HTML, JSON, sqlite, JUnit)
- Importers that read existing reports back for append mode
"""

from extent_reports.reporting.models import LogEvent, LogStatus, RunState, SystemInfo, Test
from extent_reports.reporting.handle import TestHandle
from extent_reports.reporting.engine import ReportEngine
from extent_reports.reporting.importers import DBImporter, HTMLImporter, Importer, JSONImporter
from extent_reports.reporting.serialization import ImportedReport
from extent_reports.reporting.sinks import (
    DBSink,
    DocumentSink,
    HTMLSink,
    JSONSink,
    JUnitSink,
    ReporterType,
    Sink,
    create_sink,
    reporter_type_for,
)

__all__ = [
    "LogEvent",
    "LogStatus",
    "RunState",
    "SystemInfo",
    "Test",
    "TestHandle",
    "ReportEngine",
    "Importer",
    "HTMLImporter",
    "JSONImporter",
    "DBImporter",
    "ImportedReport",
    "Sink",
    "DocumentSink",
    "HTMLSink",
    "JSONSink",
    "DBSink",
    "JUnitSink",
    "ReporterType",
    "create_sink",
    "reporter_type_for",
]
