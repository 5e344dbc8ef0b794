"""Tests for structured logging."""

import json
import logging

import pytest

from fieldcrypt.logging import (
    HumanFormatter,
    StructuredFormatter,
    StructuredLogger,
    exchange_context,
    exchange_id_var,
    get_logger,
    log_operation,
    mask_sensitive,
)


def make_record(logger, level=logging.INFO, msg="hello", **fields):
    return logger.makeRecord(
        logger.name, level, __file__, 1, msg, (), None,
        extra={"extra_fields": fields} if fields else None,
    )


class TestMasking:

    def test_masks_sensitive_keys(self):
        masked = mask_sensitive({
            "keystore_password": "hunter2-very-long",
            "creditCardNr": "4111111111111111",
            "operation": "buyCart",
        })

        assert masked["keystore_password"] == "[REDACTED]"
        assert masked["creditCardNr"] == "[REDACTED]"
        assert masked["operation"] == "buyCart"

    def test_masks_nested(self):
        masked = mask_sensitive({"outer": {"private_key": "abc"}})
        assert masked["outer"]["private_key"] == "[REDACTED]"


class TestFormatters:

    def test_structured_output(self):
        logger = get_logger("tests.fieldcrypt.structured")
        record = make_record(logger, operation="buyCart", secret="x")

        with exchange_context(exchange_id="xchg-1", peer="supplierA"):
            entry = json.loads(StructuredFormatter().format(record))

        assert entry["message"] == "hello"
        assert entry["exchange_id"] == "xchg-1"
        assert entry["peer"] == "supplierA"
        assert entry["operation"] == "buyCart"
        assert entry["secret"] == "[REDACTED]"
        assert "source" not in entry

    def test_structured_output_source_on_warning(self):
        logger = get_logger("tests.fieldcrypt.warning")
        entry = json.loads(StructuredFormatter().format(make_record(logger, logging.WARNING)))
        assert entry["source"]["line"] == 1

    def test_human_output(self):
        logger = get_logger("tests.fieldcrypt.human")
        record = make_record(logger, direction="outbound")

        with exchange_context(exchange_id="abcdef123456"):
            line = HumanFormatter().format(record)

        assert "xchg=abcdef12" in line
        assert "direction=outbound" in line
        assert "hello" in line


class TestExchangeContext:

    def test_generates_and_resets_id(self):
        assert exchange_id_var.get() is None
        with exchange_context() as exchange_id:
            assert exchange_id_var.get() == exchange_id
            assert len(exchange_id) == 36
        assert exchange_id_var.get() is None


class TestStructuredLogger:

    def test_get_logger_type(self):
        assert isinstance(get_logger("tests.fieldcrypt.type"), StructuredLogger)

    def test_keyword_fields(self, caplog):
        logger = get_logger("tests.fieldcrypt.fields")
        with caplog.at_level(logging.INFO, logger="tests.fieldcrypt.fields"):
            logger.info("Field encrypted", operation="buyCart")

        [record] = [r for r in caplog.records if r.name == "tests.fieldcrypt.fields"]
        assert record.extra_fields == {"operation": "buyCart"}

    def test_log_operation_reraises(self, caplog):
        @log_operation("demo")
        def failing():
            raise RuntimeError("boom")

        with caplog.at_level(logging.ERROR):
            with pytest.raises(RuntimeError):
                failing()

        assert any(r.getMessage() == "demo failed" for r in caplog.records)

    def test_log_operation_returns(self):
        @log_operation("demo")
        def working(x):
            return x * 2

        assert working(21) == 42
