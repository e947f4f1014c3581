import json
import logging

from iptuapi.obs.logging import JsonLineFormatter, LogSettings, build_logger, log_event


def test_json_line_formatter_includes_event_and_extra() -> None:
    record = logging.LogRecord("iptuapi", logging.WARNING, __file__, 1, "retrying in %sms", (500,), None)
    record.event = "http_retry"
    record.extra = {"delay_ms": 500, "attempt": 1}

    payload = json.loads(JsonLineFormatter().format(record))

    assert payload["level"] == "WARNING"
    assert payload["event"] == "http_retry"
    assert payload["msg"] == "retrying in 500ms"
    assert payload["extra"] == {"delay_ms": 500, "attempt": 1}
    assert payload["ts"].endswith("Z")


def test_build_logger_is_isolated(tmp_path) -> None:
    log_file = tmp_path / "client.log"
    logger = build_logger(LogSettings(level="DEBUG", name="logging-test", log_file=log_file, jsonl=True))

    log_event(logger, logging.DEBUG, "http_request", "Request: GET /a", method="GET")
    for handler in logger.handlers:
        handler.flush()

    assert logger.propagate is False
    assert len(logger.handlers) == 2
    line = json.loads(log_file.read_text(encoding="utf-8").splitlines()[-1])
    assert line["event"] == "http_request"
    assert line["extra"] == {"method": "GET"}
    for handler in logger.handlers:
        handler.close()
