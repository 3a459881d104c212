from pathlib import Path
import json
import sqlite3
import threading

import pytest

from extent_reports.core.config import DisplayOrder, ReportConfig
from extent_reports.core.errors import EngineClosed, InvalidTestState, SinkCommitFailure
from extent_reports.reporting.engine import ABRUPT_END_MESSAGE, ReportEngine, without_child_nodes
from extent_reports.reporting.importers import DBImporter
from extent_reports.reporting.models import LogStatus, Test
from extent_reports.reporting.sinks import ReporterType, Sink


class RecordingSink(Sink):
    """Sink that keeps what it receives in memory; optionally fails every commit."""

    format_name = "recording"

    def __init__(self, path: Path, fail: bool = False):
        super().__init__(path)
        self.fail = fail
        self.received: list[Test] = []
        self.commits = 0

    def receive(self, tests, system_info, runner_output) -> None:
        self.received.extend(tests)

    def commit(self) -> None:
        if self.fail:
            raise OSError("disk full")
        self.commits += 1


def _names(tests) -> list[str]:
    return [t.name for t in tests]


def _report_names(path: Path) -> list[str]:
    return [t["name"] for t in json.loads(path.read_text())["tests"]]


def _run(path: Path, names: list[str], **options) -> None:
    engine = ReportEngine(path=path, **options)
    for name in names:
        engine.end_test(engine.start_test(name))
    engine.close()


def test_start_test_returns_running_handle() -> None:
    engine = ReportEngine()
    handle = engine.start_test("login", "valid credentials")
    assert handle.test.description == "valid credentials"
    assert not handle.test.has_ended
    assert engine.tests == (handle.test,)
    engine.close()


def test_concurrent_start_test_keeps_creation_order() -> None:
    engine = ReportEngine()

    def worker() -> None:
        for i in range(50):
            engine.end_test(engine.start_test(f"t{i}"))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    sequences = [t.sequence for t in engine.tests]
    assert len(sequences) == 400
    assert sequences == sorted(sequences)
    assert len(set(sequences)) == 400
    engine.close()


def test_end_test_twice_raises() -> None:
    engine = ReportEngine()
    handle = engine.start_test("once")
    engine.end_test(handle)
    with pytest.raises(InvalidTestState):
        engine.end_test(handle)
    engine.close()


def test_children_never_reach_the_top_level() -> None:
    engine = ReportEngine()
    sink = engine.attach_sink(RecordingSink(Path("rec")))
    parent = engine.start_test("parent")
    child = parent.create_child("child")
    engine.end_test(child)
    engine.end_test(parent)
    engine.flush()

    assert engine.tests == (parent.test,)
    assert _names(sink.received) == ["parent"]
    assert _names(sink.received[0].children) == ["child"]
    engine.close()


def test_without_child_nodes_does_not_mutate_input() -> None:
    top = Test(name="top")
    child = Test(name="child", is_child_node=True)
    tests = [child, top]
    assert without_child_nodes(tests) == [top]
    assert tests == [child, top]


def test_flush_delivers_each_ended_test_once() -> None:
    engine = ReportEngine()
    sink = engine.attach_sink(RecordingSink(Path("rec")))
    first = engine.start_test("first")
    second = engine.start_test("second")

    engine.end_test(second)
    engine.flush()
    assert _names(sink.received) == ["second"]

    engine.end_test(first)
    engine.flush()
    engine.flush()
    assert _names(sink.received) == ["second", "first"]
    assert sink.commits == 3
    engine.close()


def test_flush_is_idempotent_on_disk(tmp_path: Path) -> None:
    out = tmp_path / "report.json"
    engine = ReportEngine(path=out)
    engine.end_test(engine.start_test("only"))
    engine.flush()
    engine.flush()
    assert _report_names(out) == ["only"]
    engine.close()
    assert _report_names(out) == ["only"]


def test_newest_first_reverses_delivery() -> None:
    engine = ReportEngine(display_order=DisplayOrder.NEWEST_FIRST)
    sink = engine.attach_sink(RecordingSink(Path("rec")))
    for name in ("a", "b", "c"):
        engine.end_test(engine.start_test(name))
    engine.flush()
    assert _names(sink.received) == ["c", "b", "a"]
    engine.close()


def test_close_ends_running_tests_with_warning(tmp_path: Path) -> None:
    out = tmp_path / "report.json"
    engine = ReportEngine(path=out)
    handle = engine.start_test("unfinished")
    handle.pass_("step one")
    handle.create_child("step two")
    engine.close()

    [entry] = json.loads(out.read_text())["tests"]
    assert entry["state"] == "ended"
    assert entry["status"] == "warning"
    assert entry["logs"][-1]["status"] == "warning"
    assert entry["logs"][-1]["details"] == ABRUPT_END_MESSAGE
    assert entry["children"][0]["state"] == "ended"
    assert entry["children"][0]["logs"][-1]["details"] == ABRUPT_END_MESSAGE


def test_closed_engine_rejects_mutation(tmp_path: Path) -> None:
    engine = ReportEngine(path=tmp_path / "report.json")
    handle = engine.start_test("before close")
    engine.end_test(handle)
    engine.close()

    assert engine.closed
    assert engine.tests == ()
    with pytest.raises(EngineClosed):
        engine.start_test("after close")
    with pytest.raises(EngineClosed):
        engine.flush()
    with pytest.raises(EngineClosed):
        engine.add_system_info("os", "linux")
    with pytest.raises(InvalidTestState):
        handle.info("late log")
    with pytest.raises(InvalidTestState):
        handle.create_child("late child")

    engine.close()


def test_failing_sink_does_not_block_others(tmp_path: Path) -> None:
    out = tmp_path / "report.json"
    engine = ReportEngine(path=out)
    broken = engine.attach_sink(RecordingSink(tmp_path / "broken", fail=True))
    engine.end_test(engine.start_test("survives"))

    with pytest.raises(SinkCommitFailure) as excinfo:
        engine.flush()
    assert excinfo.value.sink_names == [broken.name]
    assert isinstance(excinfo.value.failures[0][1], OSError)
    assert _report_names(out) == ["survives"]

    with pytest.raises(SinkCommitFailure):
        engine.close()
    assert engine.closed
    assert broken.terminated


def test_context_manager_closes(tmp_path: Path) -> None:
    out = tmp_path / "report.json"
    with ReportEngine(path=out) as engine:
        engine.start_test("left running")
    assert engine.closed
    assert _report_names(out) == ["left running"]


def test_system_info_and_runner_output_reach_sinks(tmp_path: Path) -> None:
    out = tmp_path / "report.json"
    engine = ReportEngine(path=out)
    engine.add_system_info("os", "linux")
    engine.add_system_info({"os": "macos", "python": "3.12"})
    engine.set_test_runner_output("collected 3 items")
    engine.close()

    document = json.loads(out.read_text())
    assert document["system_info"] == {"os": "macos", "python": "3.12"}
    assert document["runner_output"] == ["collected 3 items"]


def test_start_reporter_rejects_bad_paths(tmp_path: Path) -> None:
    engine = ReportEngine()
    engine.start_reporter(ReporterType.JSON, tmp_path / "report.html")
    engine.start_reporter(None, tmp_path / "report.txt")
    engine.start_reporter("carrier-pigeon", tmp_path / "report.json")
    assert engine.sinks == ()
    assert len(engine.configuration_errors) == 3

    engine.start_reporter("db", tmp_path / "report.db")
    assert [s.format_name for s in engine.sinks] == ["db"]
    engine.close()


def test_load_config_keeps_settings_on_error() -> None:
    engine = ReportEngine(report_name="Original")
    engine.load_config(b"[extent_reports\n")
    assert engine.config.report_name == "Original"
    assert len(engine.configuration_errors) == 1

    engine.load_config(b'[extent_reports]\nreport_name = "Nightly"\nreplace_existing = false\n')
    assert engine.config.report_name == "Nightly"
    assert engine.config.replace_existing is True
    engine.close()


def test_load_config_rejects_mistyped_values(tmp_path: Path) -> None:
    out = tmp_path / "report.html"
    engine = ReportEngine(path=out)
    engine.load_config(b"tool = 1\n")
    engine.load_config(b"[extent_reports]\ndate_time_format = 5\n")
    assert len(engine.configuration_errors) == 2
    assert engine.config.date_time_format == "%Y-%m-%d %H:%M:%S"

    engine.end_test(engine.start_test("still renders"))
    engine.flush()
    engine.close()
    assert "still renders" in out.read_text()


def test_replace_mode_discards_previous_report(tmp_path: Path) -> None:
    out = tmp_path / "report.json"
    _run(out, ["old"])
    _run(out, ["new"])
    assert _report_names(out) == ["new"]


def test_append_puts_imported_tests_first(tmp_path: Path) -> None:
    out = tmp_path / "report.json"
    _run(out, ["a", "b"])

    engine = ReportEngine(path=out, replace_existing=False)
    engine.end_test(engine.start_test("c"))
    imported = engine.tests[:2]
    assert _names(imported) == ["a", "b"]
    assert all(t.sequence < 0 for t in imported)
    assert imported[0].sequence < imported[1].sequence
    with pytest.raises(InvalidTestState):
        imported[0].add_log(LogStatus.INFO, "rewrite history")
    engine.close()

    assert _report_names(out) == ["a", "b", "c"]


def test_append_newest_first_orders_display(tmp_path: Path) -> None:
    out = tmp_path / "report.json"
    _run(out, ["a", "b"], display_order=DisplayOrder.NEWEST_FIRST)
    assert _report_names(out) == ["a", "b"]

    engine = ReportEngine(path=out, replace_existing=False, display_order=DisplayOrder.NEWEST_FIRST)
    engine.end_test(engine.start_test("c"))
    engine.flush()
    [sink] = engine.sinks
    assert _names(sink.ordered_tests()) == ["c", "b", "a"]
    engine.close()

    assert _report_names(out) == ["a", "b", "c"]


def test_append_html_report(tmp_path: Path) -> None:
    out = tmp_path / "report.html"
    _run(out, ["first run"])

    engine = ReportEngine(path=out, replace_existing=False)
    engine.end_test(engine.start_test("second run"))
    engine.flush()
    [sink] = engine.sinks
    assert _names(sink.ordered_tests()) == ["first run", "second run"]
    engine.close()

    html = out.read_text()
    assert html.index("first run") < html.index("second run")


def test_append_does_not_duplicate_into_second_existing_artifact(tmp_path: Path) -> None:
    first = tmp_path / "a.json"
    second = tmp_path / "b.json"
    engine = ReportEngine(path=first)
    engine.start_reporter(None, second)
    engine.end_test(engine.start_test("shared"))
    engine.close()

    engine = ReportEngine(path=first, replace_existing=False)
    engine.start_reporter(None, second)
    engine.end_test(engine.start_test("new"))
    engine.close()

    assert _report_names(first) == ["shared", "new"]
    assert _report_names(second) == ["shared", "new"]


def test_append_with_unreadable_artifact_starts_fresh(tmp_path: Path) -> None:
    out = tmp_path / "report.json"
    out.write_text("this is not a report")
    engine = ReportEngine(path=out, replace_existing=False)
    engine.end_test(engine.start_test("fresh"))
    engine.close()
    assert _report_names(out) == ["fresh"]


@pytest.mark.parametrize("setup", ["not sqlite", "foreign schema"])
def test_append_with_unreadable_database_starts_fresh(tmp_path: Path, setup: str) -> None:
    out = tmp_path / "report.db"
    if setup == "not sqlite":
        out.write_text("definitely not sqlite")
    else:
        conn = sqlite3.connect(str(out))
        with conn:
            conn.execute("CREATE TABLE test (x TEXT)")
        conn.close()

    engine = ReportEngine(path=out, replace_existing=False)
    engine.end_test(engine.start_test("fresh"))
    engine.close()

    assert _names(DBImporter().import_from(out).tests) == ["fresh"]


def test_append_sends_imported_tests_to_new_sink(tmp_path: Path) -> None:
    out = tmp_path / "report.json"
    db = tmp_path / "report.db"
    _run(out, ["a", "b"])

    engine = ReportEngine(path=out, replace_existing=False)
    engine.start_reporter(None, db)
    engine.end_test(engine.start_test("c"))
    engine.close()

    assert _report_names(out) == ["a", "b", "c"]
    assert _names(DBImporter().import_from(db).tests) == ["a", "b", "c"]


def test_append_with_missing_artifact(tmp_path: Path) -> None:
    out = tmp_path / "nested" / "report.json"
    _run(out, ["only"], replace_existing=False)
    assert _report_names(out) == ["only"]


def test_config_object_is_shared_with_sinks(tmp_path: Path) -> None:
    config = ReportConfig(path=tmp_path / "report.json", report_name="Shared")
    engine = ReportEngine(config)
    [sink] = engine.sinks
    engine.load_config(b'[extent_reports]\nreport_name = "Renamed"\n')
    assert sink.config.report_name == "Renamed"
    engine.close()
    assert json.loads((tmp_path / "report.json").read_text())["report_name"] == "Renamed"
