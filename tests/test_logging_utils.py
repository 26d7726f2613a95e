# tests/test_logging_utils.py
import os

from modules.notice_watch.lib import logging_bridge
from service import logging_utils


def test_activity_records_are_redacted_and_tagged(read_log):
    logging_utils.write_activity_log({
        "event": "redaction-check",
        "headers": {"Authorization": "Bearer abc.def", "Accept": "text/html"},
        "api_token": "s3cr3t",
    })
    (rec,) = read_log()
    assert rec["event"] == "redaction-check"
    assert rec["headers"]["Authorization"] == "***REDACTED***"
    assert rec["headers"]["Accept"] == "text/html"
    assert rec["api_token"] == "***REDACTED***"
    assert rec["_meta"]["pid"] == os.getpid()


def test_bridge_routes_levels(read_log):
    logging_bridge.activity({"component": "t", "op": "a"})
    logging_bridge.warning({"component": "t", "op": "w"})
    logging_bridge.error({"component": "t", "op": "e", "password": "hunter2"})

    assert [(r["op"], r.get("level")) for r in read_log()] == [("a", None), ("w", "warning")]
    (err,) = read_log("error")
    assert err["op"] == "e"
    assert err["password"] == "***REDACTED***"


def test_log_disable_switch(monkeypatch, read_log):
    monkeypatch.setenv("LOG_DISABLE", "1")
    logging_utils.write_activity_log({"event": "quiet"})
    logging_utils.write_error_log({"event": "quiet"})
    assert read_log() == []
    assert read_log("error") == []


def test_size_rotation(monkeypatch, read_log):
    monkeypatch.setenv("ACTIVITY_LOG_MAX_BYTES", "10")
    logging_utils.write_activity_log({"event": "first", "padding": "x" * 20})
    logging_utils.write_activity_log({"event": "second"})

    assert [r["event"] for r in read_log()] == ["second"]
    rotated = [n for n in os.listdir(os.environ["LOG_DIR"]) if ".jsonl." in n]
    assert len(rotated) == 1
