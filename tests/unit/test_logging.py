from __future__ import annotations

import json
import logging

from pload.utils.logging import JsonFormatter, _json_formatter

EXPECTED_ROWS = 500
EXPECTED_WORKER = 3


def _record(msg: str = "hello") -> logging.LogRecord:
    return logging.LogRecord(
        name="test.logger",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg=msg,
        args=(),
        exc_info=None,
    )


def test_json_formatter_promotes_extra_fields() -> None:
    record = _record("batch flushed")
    record.rows = EXPECTED_ROWS
    record.worker = EXPECTED_WORKER

    payload = json.loads(_json_formatter(record))

    assert payload["level"] == "INFO"
    assert payload["logger"] == "test.logger"
    assert payload["message"] == "batch flushed"
    assert payload["rows"] == EXPECTED_ROWS
    assert payload["worker"] == EXPECTED_WORKER
    assert "pathname" not in payload


def test_json_formatter_supports_nested_extra_field() -> None:
    record = _record()
    record.extra = {"tx_size": 25_000}

    payload = json.loads(_json_formatter(record))

    assert payload["tx_size"] == 25_000
    assert "extra" not in payload


def test_json_formatter_serializes_unknown_types_as_strings() -> None:
    record = _record()
    record.error = ValueError("boom")

    payload = json.loads(JsonFormatter().format(record))

    assert payload["error"] == "boom"
