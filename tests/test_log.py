"""
tests/test_log.py

Logging setup: plain and JSON formatters on the `recordledger` logger.
"""

import io
import json
import logging

from recordledger.core.log import configure_logging


class TestConfigureLogging:

    def test_plain(self):
        stream = io.StringIO()
        configure_logging("INFO", stream=stream)
        logging.getLogger("recordledger.test").info("hello %s", "world")
        assert "INFO" in stream.getvalue()
        assert "recordledger.test: hello world" in stream.getvalue()

    def test_json(self):
        stream = io.StringIO()
        configure_logging("DEBUG", json_output=True, stream=stream)
        logging.getLogger("recordledger.test").debug("settled %d", 3)
        line = json.loads(stream.getvalue().strip())
        assert line["message"] == "settled 3"
        assert line["log.level"] == "debug"
        assert line["log.logger"] == "recordledger.test"

    def test_json_includes_exception(self):
        stream = io.StringIO()
        configure_logging("INFO", json_output=True, stream=stream)
        try:
            raise ValueError("boom")
        except ValueError:
            logging.getLogger("recordledger.test").exception("failed")
        line = json.loads(stream.getvalue().strip())
        assert line["error.type"] == "ValueError"
        assert line["error.message"] == "boom"

    def test_level_filters(self):
        stream = io.StringIO()
        configure_logging("WARNING", stream=stream)
        logging.getLogger("recordledger.test").info("quiet")
        assert stream.getvalue() == ""

    def test_reconfigure_replaces_handler(self):
        first, second = io.StringIO(), io.StringIO()
        configure_logging("INFO", stream=first)
        logger = configure_logging("INFO", stream=second)
        assert len(logger.handlers) == 1
        logging.getLogger("recordledger.test").info("once")
        assert first.getvalue() == ""
        assert "once" in second.getvalue()
