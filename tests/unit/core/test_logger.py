"""
Unit tests for core.logger module.

Tests:
- Logger initialization with name and output mode
- format_kv_pairs() escaping and truncation
- JSON formatting
- Level dispatch through the standard library logger
- StructuredFormatter output with real handlers
"""

import json
import logging
from unittest.mock import MagicMock

import pytest

from nostrfeed.core import Logger
from nostrfeed.core.logger import StructuredFormatter, format_kv_pairs


class TestInit:
    """Logger initialization."""

    def test_name(self):
        logger = Logger("multiplexer")
        assert logger.name == "multiplexer"
        assert logger._logger is logging.getLogger("multiplexer")

    def test_default_not_json(self):
        assert Logger("test")._json_output is False

    def test_json_mode(self):
        assert Logger("test", json_output=True)._json_output is True

    def test_default_max_value_length(self):
        assert Logger("test")._max_value_length == 1000


class TestFormatKvPairs:
    """Key-value pairs formatting and escaping."""

    def test_simple(self):
        assert format_kv_pairs({"url": "wss://relay.damus.io"}) == " url=wss://relay.damus.io"
        assert format_kv_pairs({"authors": 3}) == " authors=3"

    def test_with_spaces(self):
        assert format_kv_pairs({"error": "connection refused"}) == ' error="connection refused"'

    def test_with_equals(self):
        assert format_kv_pairs({"key": "foo=bar"}) == ' key="foo=bar"'

    def test_with_double_quotes(self):
        assert format_kv_pairs({"key": 'say "gm"'}) == ' key="say \\"gm\\""'

    def test_empty_value(self):
        assert format_kv_pairs({"key": ""}) == ' key=""'

    def test_empty_dict(self):
        assert format_kv_pairs({}) == ""

    def test_truncation(self):
        result = format_kv_pairs({"key": "x" * 1500}, max_value_length=1000)
        assert "truncated 500 chars" in result

    def test_no_truncation(self):
        result = format_kv_pairs({"key": "x" * 1500}, max_value_length=None)
        assert "truncated" not in result

    def test_custom_prefix(self):
        assert format_kv_pairs({"key": "val"}, prefix="") == "key=val"


class TestJsonFormat:
    """JSON message formatting."""

    def test_fields(self):
        logger = Logger("home_feed", json_output=True)
        parsed = json.loads(logger._format_json("listener_added", "debug", {"listeners": 2}))
        assert parsed["message"] == "listener_added"
        assert parsed["level"] == "debug"
        assert parsed["logger"] == "home_feed"
        assert parsed["listeners"] == 2
        assert "timestamp" in parsed

    def test_non_serializable_values(self):
        logger = Logger("test", json_output=True)
        parsed = json.loads(logger._format_json("msg", "info", {"value": object()}))
        assert parsed["value"].startswith("<object")


class TestMakeExtra:
    """Structured extra attached to records."""

    def test_empty(self):
        assert Logger("test")._make_extra({}) == {}

    def test_truncates_long_values(self):
        logger = Logger("test", max_value_length=10)
        extra = logger._make_extra({"short": "ok", "long": "y" * 20})
        assert extra["structured_kv"]["short"] == "ok"
        assert "truncated" in extra["structured_kv"]["long"]


class TestLogLevels:
    """All log levels route through ``logging.Logger.log``."""

    @pytest.fixture
    def mock_logger(self):
        logger = Logger("test")
        mock = MagicMock()
        mock.isEnabledFor.return_value = True
        logger._logger = mock
        return logger, mock

    @pytest.mark.parametrize(
        ("method", "level"),
        [
            ("debug", logging.DEBUG),
            ("info", logging.INFO),
            ("warning", logging.WARNING),
            ("error", logging.ERROR),
            ("critical", logging.CRITICAL),
        ],
    )
    def test_level(self, mock_logger, method, level):
        logger, mock = mock_logger
        getattr(logger, method)("relay_event", url="wss://r")
        mock.log.assert_called_once()
        args, kwargs = mock.log.call_args
        assert args == (level, "relay_event")
        assert kwargs["extra"] == {"structured_kv": {"url": "wss://r"}}
        assert kwargs["exc_info"] is False

    def test_exception(self, mock_logger):
        logger, mock = mock_logger
        logger.exception("listener_failed", error="boom")
        assert mock.log.call_args[0][0] == logging.ERROR
        assert mock.log.call_args[1]["exc_info"] is True

    def test_disabled_level_skipped(self, mock_logger):
        logger, mock = mock_logger
        mock.isEnabledFor.return_value = False
        logger.debug("noisy")
        mock.log.assert_not_called()


class TestIntegration:
    """Integration tests with real logging."""

    def test_structured_kv_on_record(self, caplog):
        with caplog.at_level(logging.INFO):
            Logger("integration_test").info("hello", world=True)

        assert len(caplog.records) == 1
        record = caplog.records[0]
        assert record.message == "hello"
        assert record.structured_kv == {"world": True}

    def test_json_log_to_handler(self, caplog):
        with caplog.at_level(logging.INFO):
            Logger("json_test", json_output=True).info("test", value=42)

        parsed = json.loads(caplog.records[0].message)
        assert parsed["message"] == "test"
        assert parsed["value"] == 42

    def test_structured_formatter(self):
        record = logging.LogRecord("client", logging.INFO, __file__, 1, "client_closed", (), None)
        record.structured_kv = {"relays": 2, "error": "a b"}
        assert StructuredFormatter().format(record) == 'info client client_closed relays=2 error="a b"'

    def test_structured_formatter_plain_record(self):
        record = logging.LogRecord("x", logging.WARNING, __file__, 1, "plain %s", ("msg",), None)
        assert StructuredFormatter().format(record) == "warning x plain msg"
