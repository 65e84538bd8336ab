import json
import logging

from sqlmetrics.common.logger import configure_logging, current_cycle_id, cycle_context, get_logger


class TestStructuredLogging:

    def test_json_formatter_includes_cycle_id(self):
        # Arrange
        configure_logging(json_format=True)
        handler = logging.getLogger().handlers[0]
        record = logging.LogRecord("test_json", logging.INFO, "path", 1, "test msg", {}, None)

        # Act
        with cycle_context("cycle-123"):
            handler.filter(record)
            formatted = handler.formatter.format(record)

        # Assert
        data = json.loads(formatted)
        assert data["message"] == "test msg"
        assert data["cycle_id"] == "cycle-123"
        assert data["level"] == "INFO"

    def test_json_formatter_keeps_extra_attributes(self):
        configure_logging(json_format=True)
        handler = logging.getLogger().handlers[0]
        record = logging.LogRecord("test_extra", logging.WARNING, "path", 1, "failed", {}, None)
        record.query_id = "custom_0"

        handler.filter(record)
        data = json.loads(handler.formatter.format(record))

        assert data["query_id"] == "custom_0"
        assert "cycle_id" not in data

    def test_text_format_has_single_handler(self):
        configure_logging(level="debug", json_format=False)
        root = logging.getLogger()

        assert len(root.handlers) == 1
        assert root.level == logging.DEBUG
        assert "%(cycle_id)s" in root.handlers[0].formatter._fmt

    def test_cycle_context_resets(self):
        assert current_cycle_id() is None
        with cycle_context("abc"):
            assert current_cycle_id() == "abc"
        assert current_cycle_id() is None

    def test_get_logger_returns_named_logger(self):
        assert get_logger("runner").name == "runner"
