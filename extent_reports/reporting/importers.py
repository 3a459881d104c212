"""
Importers rebuild tests from a previously produced report artifact.

Used only when a report is opened in append mode. Import is best effort:
malformed entries are skipped, and only an unreadable or unrecognized
artifact raises ImportFailure.
"""

import json
import logging
import re
import sqlite3
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional

from extent_reports.core.errors import ImportFailure
from extent_reports.core.logging import get_logger
from extent_reports.reporting.serialization import (
    DATA_ISLAND_ID,
    DOCUMENT_FORMAT,
    ImportedReport,
    document_to_tests,
)


class Importer(ABC):
    """Reads one artifact format back into tests."""

    format_name = "artifact"

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or get_logger(__name__)

    def import_from(self, path: Path) -> ImportedReport:
        """
        Import tests from ``path``.

        Args:
            path: Artifact previously written by the matching sink

        Returns:
            ImportedReport with top-level tests in their original order

        Raises:
            ImportFailure: If the artifact is missing, unreadable or unrecognized
        """
        path = Path(path)
        if not path.is_file():
            raise ImportFailure(f"No {self.format_name} artifact at {path}")
        try:
            imported = self._read(path)
        except ImportFailure:
            raise
        except (OSError, UnicodeDecodeError, sqlite3.Error) as e:
            raise ImportFailure(f"Could not read {self.format_name} artifact {path}: {e}") from e

        self.logger.info(
            f"Imported {len(imported.tests)} test(s) from {path}"
            + (f", skipped {imported.skipped} malformed" if imported.skipped else "")
        )
        return imported

    @abstractmethod
    def _read(self, path: Path) -> ImportedReport:
        pass


class JSONImporter(Importer):
    """Imports the JSON document written by JSONSink."""

    format_name = "JSON"

    def _read(self, path: Path) -> ImportedReport:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ImportFailure(f"Invalid JSON in {path}: {e}") from e
        return document_to_tests(data, logger=self.logger)


class HTMLImporter(Importer):
    """Imports the data island embedded by HTMLSink."""

    format_name = "HTML"

    def __init__(self, logger: Optional[logging.Logger] = None):
        super().__init__(logger)
        self.island_pattern = re.compile(
            r'<script[^>]*\bid="' + re.escape(DATA_ISLAND_ID) + r'"[^>]*>(.*?)</script>',
            re.DOTALL,
        )

    def _read(self, path: Path) -> ImportedReport:
        content = path.read_text(encoding="utf-8")
        match = self.island_pattern.search(content)
        if not match:
            raise ImportFailure(f"{path} is not an ExtentReports HTML document")
        try:
            data = json.loads(match.group(1))
        except json.JSONDecodeError as e:
            raise ImportFailure(f"Corrupt report data in {path}: {e}") from e
        return document_to_tests(data, logger=self.logger)


class DBImporter(Importer):
    """Imports the sqlite store written by DBSink."""

    format_name = "database"

    def _read(self, path: Path) -> ImportedReport:
        uri = f"{path.resolve().as_uri()}?mode=ro"
        conn = sqlite3.connect(uri, uri=True)
        try:
            conn.row_factory = sqlite3.Row
            tables = {row["name"] for row in conn.execute(
                "SELECT name FROM sqlite_master WHERE type = 'table'"
            )}
            if not {"test", "log"} <= tables:
                raise ImportFailure(f"{path} is not an ExtentReports database")
            document = self._build_document(conn, tables)
        finally:
            conn.close()
        return document_to_tests(document, logger=self.logger)

    def _build_document(self, conn: sqlite3.Connection, tables) -> Dict[str, Any]:
        """Reassemble the artifact document from table rows."""
        logs: Dict[str, List[Dict[str, Any]]] = {}
        for row in conn.execute("SELECT test_uid, status, details, timestamp FROM log ORDER BY test_uid, position, id"):
            logs.setdefault(row["test_uid"], []).append({
                "status": row["status"],
                "details": row["details"],
                "timestamp": row["timestamp"],
            })

        labels: Dict[str, Dict[str, List[str]]] = {}
        for table, key in (("category", "categories"), ("author", "authors")):
            if table not in tables:
                continue
            for row in conn.execute(f"SELECT test_uid, name FROM {table} ORDER BY rowid"):
                labels.setdefault(row["test_uid"], {}).setdefault(key, []).append(row["name"])

        nodes: Dict[str, Dict[str, Any]] = {}
        top_level: List[Dict[str, Any]] = []
        rows = conn.execute(
            "SELECT uid, parent_uid, name, description, state, started_at, ended_at "
            "FROM test ORDER BY position, id"
        ).fetchall()
        for row in rows:
            node = {
                "uid": row["uid"],
                "name": row["name"],
                "description": row["description"] or "",
                "state": row["state"],
                "started_at": row["started_at"],
                "ended_at": row["ended_at"],
                "logs": logs.get(row["uid"], []),
                "children": [],
            }
            node.update(labels.get(row["uid"], {}))
            nodes[row["uid"]] = node
        for row in rows:
            node = nodes[row["uid"]]
            parent = nodes.get(row["parent_uid"]) if row["parent_uid"] else None
            if row["parent_uid"] and parent is None:
                self.logger.warning(f"Skipping test '{row['name']}': parent {row['parent_uid']} is missing")
                continue
            (parent["children"] if parent else top_level).append(node)

        system_info = {}
        if "system_info" in tables:
            system_info = {row["key"]: row["value"] for row in conn.execute("SELECT key, value FROM system_info")}
        runner_output = []
        if "runner_output" in tables:
            runner_output = [row["line"] for row in conn.execute("SELECT line FROM runner_output ORDER BY id")]

        return {
            "format": DOCUMENT_FORMAT,
            "system_info": system_info,
            "runner_output": runner_output,
            "tests": top_level,
        }
