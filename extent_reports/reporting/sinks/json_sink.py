"""
JSON report sink.
"""

import json

from extent_reports.reporting.sinks.base import DocumentSink


class JSONSink(DocumentSink):
    """Writes the artifact document as indented JSON."""

    format_name = "json"
    extensions = (".json",)

    def create_importer(self):
        from extent_reports.reporting.importers import JSONImporter
        return JSONImporter(self.logger)

    def _write(self) -> None:
        with open(self.path, 'w', encoding=self.config.encoding) as f:
            json.dump(self.document(), f, indent=2)
