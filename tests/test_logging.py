import json
import logging

from app.logging import JsonLogFormatter


def _record(**extra):
    record = logging.LogRecord("app.test", logging.INFO, __file__, 1, "hello %s", ("world",), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formats_json_with_extras():
    payload = json.loads(
        JsonLogFormatter().format(_record(event_id="evt_1", event_type="invoice.paid", user_id="u1"))
    )
    assert payload["message"] == "hello world"
    assert payload["level"] == "INFO"
    assert payload["event_id"] == "evt_1"
    assert payload["event_type"] == "invoice.paid"
    assert payload["user_id"] == "u1"


def test_unknown_extras_are_dropped():
    payload = json.loads(JsonLogFormatter().format(_record(password="secret")))
    assert "password" not in payload


def test_exception_included():
    try:
        raise ValueError("bad")
    except ValueError:
        import sys

        record = _record()
        record.exc_info = sys.exc_info()
    payload = json.loads(JsonLogFormatter().format(record))
    assert "ValueError: bad" in payload["exception"]
