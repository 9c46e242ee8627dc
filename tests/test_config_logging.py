"""
Test suite for configuration and structured logging

Tests environment-driven settings, settings validation, the JSON formatter,
logger setup and the log_action helper.
"""

import json
import logging

import pytest
from pydantic import ValidationError

from call_money import config as config_module
from call_money.config import CallMoneyConfig, get_config, reload_config
from call_money.logging_config import (
    JSONFormatter, TEXT_FORMAT, setup_logging, setup_logging_from_config,
    get_logger, log_action
)


class ListHandler(logging.Handler):
    """Collects emitted records"""

    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


class TestCallMoneyConfig:
    """Test configuration loading"""

    def test_defaults(self):
        config = CallMoneyConfig()

        assert config.log_level == "INFO"
        assert config.log_format == "json"
        assert config.days_per_year == 365
        assert config.reject_backdated_accrual is True
        assert config.allow_repayment_after_repaid is False
        assert config.enable_audit_logging is True

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("CALL_MONEY_LOG_LEVEL", "debug")
        monkeypatch.setenv("CALL_MONEY_DAYS_PER_YEAR", "360")
        monkeypatch.setenv("CALL_MONEY_ALLOW_REPAYMENT_AFTER_REPAID", "true")

        config = CallMoneyConfig()

        assert config.log_level == "DEBUG"
        assert config.days_per_year == 360
        assert config.allow_repayment_after_repaid is True

    def test_keyword_override(self):
        config = CallMoneyConfig(log_format="TEXT", reject_backdated_accrual=False)
        assert config.log_format == "text"
        assert config.reject_backdated_accrual is False

    @pytest.mark.parametrize("overrides", [
        {"log_level": "LOUD"},
        {"log_format": "xml"},
        {"days_per_year": 0},
    ])
    def test_invalid_settings(self, overrides):
        with pytest.raises(ValidationError):
            CallMoneyConfig(**overrides)

    def test_get_and_reload(self, monkeypatch):
        assert get_config() is config_module.config

        monkeypatch.setenv("CALL_MONEY_DAYS_PER_YEAR", "360")
        reloaded = reload_config()
        try:
            assert reloaded.days_per_year == 360
            assert get_config() is reloaded
        finally:
            monkeypatch.undo()
            reload_config()

        assert get_config().days_per_year == 365


class TestJSONFormatter:
    """Test structured JSON output"""

    def setup_method(self):
        self.formatter = JSONFormatter()
        self.logger = logging.getLogger("call_money.test_formatter")

    def test_structured_fields(self):
        record = self.logger.makeRecord(
            self.logger.name, logging.INFO, __name__, 42, "Money called", (), None
        )
        record.contract_id = "CM-001"
        record.action = "call_money"
        record.extra = {"due_date": 86400}

        data = json.loads(self.formatter.format(record))

        assert data["level"] == "INFO"
        assert data["message"] == "Money called"
        assert data["contract_id"] == "CM-001"
        assert data["action"] == "call_money"
        assert data["extra"] == {"due_date": 86400}
        assert data["logger"] == "call_money.test_formatter"
        assert "timestamp" in data

    def test_missing_fields_dropped(self):
        record = self.logger.makeRecord(
            self.logger.name, logging.WARNING, __name__, 1, "plain", (), None
        )
        data = json.loads(self.formatter.format(record))

        assert "contract_id" not in data
        assert "action" not in data
        assert "extra" not in data

    def test_decimal_values_serialized(self):
        from decimal import Decimal

        record = self.logger.makeRecord(
            self.logger.name, logging.INFO, __name__, 1, "repay", (), None
        )
        record.extra = {"amount": Decimal('1050.00')}

        data = json.loads(self.formatter.format(record))
        assert data["extra"] == {"amount": "1050.00"}

    def test_exception_included(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            import sys
            record = self.logger.makeRecord(
                self.logger.name, logging.ERROR, __name__, 1, "failed", (), sys.exc_info()
            )

        data = json.loads(self.formatter.format(record))
        assert "RuntimeError: boom" in data["exception"]


class TestSetupLogging:
    """Test logger setup and log_action"""

    def test_json_setup(self):
        logger = setup_logging("DEBUG", "call_money_test.json")

        assert logger.level == logging.DEBUG
        assert logger.propagate is False
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, JSONFormatter)

    def test_text_setup(self):
        logger = setup_logging("warning", "call_money_test.text", log_format="text")

        assert logger.level == logging.WARNING
        assert logger.handlers[0].formatter._fmt == TEXT_FORMAT

    def test_repeated_setup_does_not_duplicate_handlers(self):
        setup_logging("INFO", "call_money_test.repeat")
        logger = setup_logging("INFO", "call_money_test.repeat")
        assert len(logger.handlers) == 1

    def test_get_logger(self):
        assert get_logger("call_money_test.named") is logging.getLogger("call_money_test.named")

    def test_log_action_attaches_fields(self):
        logger = logging.getLogger("call_money_test.action")
        logger.setLevel(logging.INFO)
        logger.propagate = False
        handler = ListHandler()
        logger.addHandler(handler)

        log_action(logger, "info", "Collateral added", contract_id="CM-9",
                   action="add_collateral", extra={"collateral": "TBILL"})

        assert len(handler.records) == 1
        record = handler.records[0]
        assert record.getMessage() == "Collateral added"
        assert record.levelno == logging.INFO
        assert record.contract_id == "CM-9"
        assert record.action == "add_collateral"
        assert record.extra == {"collateral": "TBILL"}

    def test_log_action_respects_level(self):
        logger = logging.getLogger("call_money_test.quiet")
        logger.setLevel(logging.WARNING)
        logger.propagate = False
        handler = ListHandler()
        logger.addHandler(handler)

        log_action(logger, "info", "ignored")
        log_action(logger, "warning", "kept")

        assert [r.getMessage() for r in handler.records] == ["kept"]

    def test_setup_from_config(self):
        package_logger = logging.getLogger("call_money")
        saved = (list(package_logger.handlers), package_logger.level, package_logger.propagate)
        try:
            logger = setup_logging_from_config(
                CallMoneyConfig(log_level="debug", log_format="text")
            )

            assert logger is package_logger
            assert logger.level == logging.DEBUG
            assert logger.handlers[0].formatter._fmt == TEXT_FORMAT
        finally:
            package_logger.handlers[:] = saved[0]
            package_logger.setLevel(saved[1])
            package_logger.propagate = saved[2]
