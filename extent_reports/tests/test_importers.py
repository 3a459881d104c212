from pathlib import Path
import json
import sqlite3

import pytest

from extent_reports.core.errors import ImportFailure
from extent_reports.reporting.engine import ReportEngine
from extent_reports.reporting.importers import DBImporter, HTMLImporter, JSONImporter
from extent_reports.reporting.models import LogStatus, RunState
from extent_reports.reporting.serialization import DOCUMENT_FORMAT


def _write_document(path: Path, tests: list) -> None:
    document = {
        "format": DOCUMENT_FORMAT,
        "version": 1,
        "system_info": {"os": "linux"},
        "runner_output": ["collected 3 items"],
        "tests": tests,
    }
    path.write_text(json.dumps(document))


def _record(path: Path) -> None:
    engine = ReportEngine(path=path)
    engine.add_system_info("browser", "firefox")
    login = engine.start_test("login", "valid user")
    login.assign_category("auth").assign_author("dana")
    login.pass_("logged in")
    step = login.create_child("remember me")
    step.fail("cookie missing </script>")
    engine.end_test(step)
    engine.end_test(login)
    engine.end_test(engine.start_test("logout"))
    engine.close()


def test_json_import_recovers_what_it_can(tmp_path: Path) -> None:
    path = tmp_path / "r.json"
    _write_document(path, [
        {"uid": "a", "name": "good", "state": "ended", "started_at": "2024-05-01T10:00:00",
         "logs": [{"status": "PASS", "details": "ok", "timestamp": "2024-05-01T10:00:01"}]},
        {"uid": "b", "state": "ended", "logs": []},
        {"uid": "c", "name": "partly broken", "logs": [{"status": "bogus"}, {"details": "no status"},
                                                     {"status": "info", "details": "kept"}],
         "children": [{"description": "nameless"}, {"name": "step"}]},
    ])

    imported = JSONImporter().import_from(path)

    assert [t.name for t in imported.tests] == ["good", "partly broken"]
    assert imported.skipped == 1
    assert imported.system_info == {"os": "linux"}
    assert imported.runner_output == ["collected 3 items"]
    good, partial = imported.tests
    assert good.uid == "a"
    assert good.sequence is None
    assert good.state is RunState.ENDED
    assert good.status is LogStatus.PASS
    assert [e.details for e in partial.logs] == ["kept"]
    assert [c.name for c in partial.children] == ["step"]
    assert partial.children[0].is_child_node


@pytest.mark.parametrize("content", ["not json", "[1, 2]", '{"format": "other", "tests": []}',
                                     '{"format": "extent-reports", "tests": "nope"}'])
def test_json_import_rejects_non_documents(tmp_path: Path, content: str) -> None:
    path = tmp_path / "r.json"
    path.write_text(content)
    with pytest.raises(ImportFailure):
        JSONImporter().import_from(path)


def test_missing_artifact_raises(tmp_path: Path) -> None:
    for importer in (JSONImporter(), HTMLImporter(), DBImporter()):
        with pytest.raises(ImportFailure):
            importer.import_from(tmp_path / "absent")


def test_html_import_reads_data_island(tmp_path: Path) -> None:
    path = tmp_path / "r.html"
    _record(path)

    imported = HTMLImporter().import_from(path)

    assert [t.name for t in imported.tests] == ["login", "logout"]
    login = imported.tests[0]
    assert login.description == "valid user"
    assert login.categories == ["auth"]
    assert login.authors == ["dana"]
    assert login.status is LogStatus.FAIL
    assert login.children[0].logs[0].details == "cookie missing </script>"
    assert imported.system_info == {"browser": "firefox"}


def test_html_import_rejects_plain_html(tmp_path: Path) -> None:
    path = tmp_path / "r.html"
    path.write_text("<html><body>hello</body></html>")
    with pytest.raises(ImportFailure):
        HTMLImporter().import_from(path)


def test_db_import_rebuilds_tree(tmp_path: Path) -> None:
    path = tmp_path / "r.db"
    _record(path)

    imported = DBImporter().import_from(path)

    assert [t.name for t in imported.tests] == ["login", "logout"]
    login = imported.tests[0]
    assert [e.status for e in login.logs] == [LogStatus.PASS]
    assert [c.name for c in login.children] == ["remember me"]
    assert login.children[0].status is LogStatus.FAIL
    assert login.categories == ["auth"]
    assert imported.system_info == {"browser": "firefox"}


def test_db_import_skips_orphans(tmp_path: Path) -> None:
    path = tmp_path / "r.db"
    _record(path)
    conn = sqlite3.connect(str(path))
    with conn:
        conn.execute("UPDATE test SET parent_uid = 'gone' WHERE name = 'remember me'")
    conn.close()

    imported = DBImporter().import_from(path)
    assert imported.tests[0].children == []


def test_db_import_rejects_foreign_database(tmp_path: Path) -> None:
    path = tmp_path / "other.db"
    conn = sqlite3.connect(str(path))
    with conn:
        conn.execute("CREATE TABLE people (name TEXT)")
    conn.close()
    with pytest.raises(ImportFailure):
        DBImporter().import_from(path)


def test_db_import_rejects_non_sqlite_file(tmp_path: Path) -> None:
    path = tmp_path / "r.db"
    path.write_text("definitely not sqlite")
    with pytest.raises(ImportFailure):
        DBImporter().import_from(path)


def test_append_to_database(tmp_path: Path) -> None:
    path = tmp_path / "r.db"
    _record(path)

    engine = ReportEngine(path=path, replace_existing=False)
    engine.set_test_runner_output("second run")
    engine.end_test(engine.start_test("profile"))
    engine.close()

    imported = DBImporter().import_from(path)
    assert [t.name for t in imported.tests] == ["login", "logout", "profile"]
    assert imported.runner_output == ["second run"]
