"""
Core modules for ExtentReports.
"""

from extent_reports.core.config import DisplayOrder, NetworkMode, ReportConfig
from extent_reports.core.errors import (
    ExtentReportsError,
    ConfigurationError,
    InvalidTestState,
    EngineClosed,
    ImportFailure,
    SinkCommitFailure,
)

__all__ = [
    "DisplayOrder",
    "NetworkMode",
    "ReportConfig",
    "ExtentReportsError",
    "ConfigurationError",
    "InvalidTestState",
    "EngineClosed",
    "ImportFailure",
    "SinkCommitFailure",
]
