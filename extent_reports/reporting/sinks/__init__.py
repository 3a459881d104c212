"""
Report sinks and the reporter-type discriminator.
"""

import logging
from enum import Enum
from pathlib import Path
from typing import Dict, Optional, Type

from extent_reports.core.errors import ConfigurationError
from extent_reports.reporting.sinks.base import DocumentSink, Sink
from extent_reports.reporting.sinks.database import DBSink
from extent_reports.reporting.sinks.html import HTMLSink
from extent_reports.reporting.sinks.json_sink import JSONSink
from extent_reports.reporting.sinks.junit import JUnitSink


class ReporterType(Enum):
    """Selects the concrete sink for an artifact path."""
    HTML = "html"
    JSON = "json"
    DB = "db"
    JUNIT = "junit"


SINK_CLASSES: Dict[ReporterType, Type[Sink]] = {
    ReporterType.HTML: HTMLSink,
    ReporterType.JSON: JSONSink,
    ReporterType.DB: DBSink,
    ReporterType.JUNIT: JUnitSink,
}


def reporter_type_for(path: Path) -> ReporterType:
    """
    Pick the reporter type from a path's extension.

    Raises:
        ConfigurationError: If no reporter handles the extension
    """
    suffix = Path(path).suffix.lower()
    for reporter_type, sink_class in SINK_CLASSES.items():
        if suffix in sink_class.extensions:
            return reporter_type
    known = ", ".join(ext for cls in SINK_CLASSES.values() for ext in cls.extensions)
    raise ConfigurationError(f"No reporter for '{path}' (extension {suffix or 'missing'}; known: {known})")


def create_sink(reporter_type, path: Path, logger: Optional[logging.Logger] = None) -> Sink:
    """
    Construct the sink for ``reporter_type`` writing to ``path``.

    Raises:
        ConfigurationError: If the type is unknown or the extension does not match it
    """
    if not isinstance(reporter_type, ReporterType):
        try:
            reporter_type = ReporterType(str(reporter_type).lower())
        except ValueError:
            raise ConfigurationError(f"Unknown reporter type: {reporter_type!r}") from None
    sink_class = SINK_CLASSES[reporter_type]
    suffix = Path(path).suffix.lower()
    if suffix not in sink_class.extensions:
        raise ConfigurationError(
            f"{reporter_type.name} reporter requires a {' or '.join(sink_class.extensions)} file, got '{path}'"
        )
    return sink_class(Path(path), logger=logger)


__all__ = [
    "ReporterType",
    "SINK_CLASSES",
    "reporter_type_for",
    "create_sink",
    "Sink",
    "DocumentSink",
    "HTMLSink",
    "JSONSink",
    "DBSink",
    "JUnitSink",
]
