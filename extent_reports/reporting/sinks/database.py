"""
sqlite report sink.
"""

import logging
import sqlite3
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from extent_reports.reporting.models import Test
from extent_reports.reporting.sinks.base import Sink

SCHEMA = (
    '''
    CREATE TABLE IF NOT EXISTS test (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        uid TEXT NOT NULL UNIQUE,
        parent_uid TEXT,
        position INTEGER NOT NULL,
        name TEXT NOT NULL,
        description TEXT,
        state TEXT NOT NULL,
        status TEXT NOT NULL,
        started_at TEXT NOT NULL,
        ended_at TEXT
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS log (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        test_uid TEXT NOT NULL,
        position INTEGER NOT NULL,
        status TEXT NOT NULL,
        details TEXT,
        timestamp TEXT NOT NULL
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS category (
        test_uid TEXT NOT NULL,
        name TEXT NOT NULL,
        PRIMARY KEY (test_uid, name)
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS author (
        test_uid TEXT NOT NULL,
        name TEXT NOT NULL,
        PRIMARY KEY (test_uid, name)
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS system_info (
        key TEXT PRIMARY KEY,
        value TEXT
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS runner_output (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        line TEXT
    )
    ''',
)


class DBSink(Sink):
    """
    Stores tests as rows in a sqlite database.

    Received tests are buffered and inserted in a single transaction per
    commit. A failed commit is rolled back and its tests stay buffered
    for the next one.
    """

    format_name = "db"
    extensions = (".db",)

    def __init__(self, path: Path, logger: Optional[logging.Logger] = None):
        super().__init__(path, logger)
        self._conn: Optional[sqlite3.Connection] = None
        self._pending: List[Test] = []
        self._system_info: Dict[str, str] = {}
        self._runner_output: List[str] = []
        self._output_written = 0

    def create_importer(self):
        from extent_reports.reporting.importers import DBImporter
        return DBImporter(self.logger)

    def receive(self, tests: Sequence[Test], system_info: Dict[str, str], runner_output: Sequence[str]) -> None:
        self._pending.extend(sorted(tests, key=lambda t: t.sequence))
        self._system_info.update(system_info)
        self._runner_output = list(runner_output)

    def commit(self) -> None:
        conn = self._connect()
        with conn:
            position = conn.execute(
                "SELECT COALESCE(MAX(position), -1) FROM test WHERE parent_uid IS NULL"
            ).fetchone()[0] + 1
            for test in self._pending:
                self._insert_test(conn, test, None, position)
                position += 1
            conn.executemany(
                "INSERT OR REPLACE INTO system_info (key, value) VALUES (?, ?)",
                list(self._system_info.items()),
            )
            new_lines = self._runner_output[self._output_written:]
            conn.executemany("INSERT INTO runner_output (line) VALUES (?)", [(line,) for line in new_lines])
        written = len(self._pending)
        self._pending = []
        self._output_written += len(new_lines)
        if written:
            self.logger.info(f"Committed {written} test(s) to {self.path}")

    def _connect(self) -> sqlite3.Connection:
        if self._conn is None:
            if (self.config.replace_existing or self._discard_existing) and self.path.exists():
                self.logger.info(f"Replacing existing database {self.path}")
                self.path.unlink()
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self.path), check_same_thread=False)
            with self._conn:
                for statement in SCHEMA:
                    self._conn.execute(statement)
        return self._conn

    def _insert_test(self, conn: sqlite3.Connection, test: Test, parent_uid: Optional[str], position: int) -> None:
        conn.execute(
            '''
            INSERT INTO test (uid, parent_uid, position, name, description, state, status, started_at, ended_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            ''',
            (
                test.uid,
                parent_uid,
                position,
                test.name,
                test.description,
                test.state.value,
                test.status.value,
                test.started_at.isoformat(),
                test.ended_at.isoformat() if test.ended_at else None,
            ),
        )
        conn.executemany(
            "INSERT INTO log (test_uid, position, status, details, timestamp) VALUES (?, ?, ?, ?, ?)",
            [
                (test.uid, index, event.status.value, event.details, event.timestamp.isoformat())
                for index, event in enumerate(test.logs)
            ],
        )
        labels: List[Tuple[str, str]] = [(test.uid, name) for name in test.categories]
        conn.executemany("INSERT OR IGNORE INTO category (test_uid, name) VALUES (?, ?)", labels)
        labels = [(test.uid, name) for name in test.authors]
        conn.executemany("INSERT OR IGNORE INTO author (test_uid, name) VALUES (?, ?)", labels)
        for index, child in enumerate(test.children):
            self._insert_test(conn, child, test.uid, index)

    def _release(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
