import json
import logging

from pythonjsonlogger.json import JsonFormatter

from moms.core.logging_config import build_formatter, configure_logging


def test_configure_logging_installs_one_json_handler():
    logger = configure_logging("moms-test-logging", "debug")
    again = configure_logging("moms-test-logging", "debug")

    assert logger is again
    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0].formatter, JsonFormatter)
    assert logger.propagate is False


def test_records_render_as_json_lines():
    record = logging.LogRecord("moms.orders", logging.INFO, __file__, 1, "order placed id=%s", ("o1",), None)

    payload = json.loads(build_formatter().format(record))

    assert payload["message"] == "order placed id=o1"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "moms.orders"
    assert "timestamp" in payload
