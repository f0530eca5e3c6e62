"""JSON-lines logging and request correlation.

Invariants:
    - Every log line is one JSON object with ts, level, logger, message and extras
    - Records logged inside bind_request_id carry that request_id; outside, none
    - The request middleware binds the incoming X-Request-ID for the whole request
"""
import json
import logging
import sys

from pingwatch.logging_conf import (
    JsonFormatter,
    RequestIdFilter,
    bind_request_id,
    current_request_id,
)


def _record(msg="hello", **extra) -> logging.LogRecord:
    record = logging.makeLogRecord({"name": "service.users", "levelname": "INFO", "msg": msg})
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def _render(record: logging.LogRecord) -> dict:
    RequestIdFilter().filter(record)
    return json.loads(JsonFormatter().format(record))


def test_line_has_core_fields_and_extras():
    line = _render(_record(event="user_created", phone="5551234567"))
    assert line["level"] == "INFO"
    assert line["logger"] == "service.users"
    assert line["message"] == "hello"
    assert line["event"] == "user_created"
    assert line["phone"] == "5551234567"
    assert "ts" in line
    assert "request_id" not in line


def test_bound_request_id_is_stamped_and_reset():
    with bind_request_id("req-42"):
        assert current_request_id() == "req-42"
        line = _render(_record())
    assert line["request_id"] == "req-42"
    assert current_request_id() is None
    assert "request_id" not in _render(_record())


def test_explicit_request_id_is_not_overwritten():
    with bind_request_id("req-42"):
        line = _render(_record(request_id="other"))
    assert line["request_id"] == "other"


def test_exception_is_rendered():
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = _record(exc_info=sys.exc_info())
    assert "RuntimeError: boom" in _render(record)["exc_info"]


async def test_request_logs_carry_the_incoming_request_id(client, caplog):
    caplog.handler.addFilter(RequestIdFilter())
    with caplog.at_level(logging.INFO, logger="app"):
        r = await client.get("/ping", headers={"X-Request-ID": "req-7"})
    assert r.status_code == 200

    request_logs = [rec for rec in caplog.records if rec.name == "app"]
    assert {rec.getMessage() for rec in request_logs} >= {"request.start", "request.end"}
    assert all(rec.request_id == "req-7" for rec in request_logs)
