"""Tests for the logging bootstrap."""

import logging

import pytest
from pythonjsonlogger.json import JsonFormatter
from uvicorn.logging import DefaultFormatter

from chatloop.configs.system import LoggingConfig
from chatloop.infra.logging import LLAMA_CPP_LOGGER, setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    llama = logging.getLogger(LLAMA_CPP_LOGGER)
    handlers, level, llama_level = root.handlers[:], root.level, llama.level
    yield root
    root.handlers = handlers
    root.setLevel(level)
    llama.setLevel(llama_level)


class TestSetupLogging:
    def test_json_output(self, restore_root_logger):
        setup_logging(LoggingConfig(level="debug", json_output=True))

        root = restore_root_logger
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JsonFormatter)

    def test_dev_output(self, restore_root_logger):
        setup_logging(LoggingConfig(level="WARNING"))

        root = restore_root_logger
        assert root.level == logging.WARNING
        assert isinstance(root.handlers[0].formatter, DefaultFormatter)

    def test_records_carry_trace_fields(self, restore_root_logger):
        setup_logging(LoggingConfig())
        handler = restore_root_logger.handlers[0]
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)

        assert handler.filter(record)
        assert record.trace_id == ""
        assert record.span_id == ""

    def test_llama_cpp_quiet_by_default(self, restore_root_logger):
        setup_logging(LoggingConfig(level="INFO"))
        assert logging.getLogger(LLAMA_CPP_LOGGER).level == logging.WARNING

    def test_llama_cpp_verbose_at_debug(self, restore_root_logger):
        setup_logging(LoggingConfig(level="DEBUG"))
        assert logging.getLogger(LLAMA_CPP_LOGGER).level == logging.DEBUG
