"""
ExtentReports Package

Test-execution report aggregator: report tests and log events against an
in-memory model and render them to HTML, JSON, sqlite and JUnit reports,
optionally appending to a report produced by an earlier run.
"""

__version__ = "0.1.0"
__author__ = "ExtentReports Team"

from extent_reports.core.config import DisplayOrder, NetworkMode, ReportConfig
from extent_reports.reporting.engine import ReportEngine
from extent_reports.reporting.models import LogStatus
from extent_reports.reporting.sinks import ReporterType

__all__ = [
    "DisplayOrder",
    "NetworkMode",
    "ReportConfig",
    "ReportEngine",
    "LogStatus",
    "ReporterType",
]
