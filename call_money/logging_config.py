"""
Structured Logging Configuration Module

JSON log lines for contract operations. Each line carries the contract id and
the operation name next to the message so a log aggregator can follow one
loan through its lifecycle.
"""

import logging
import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .config import CallMoneyConfig, get_config


TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"

# Record attributes copied into the JSON line when set
STRUCTURED_FIELDS = ("contract_id", "action", "extra")


class JSONFormatter(logging.Formatter):
    """Render a LogRecord as one JSON object per line"""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "module": getattr(record, 'module', record.name),
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in STRUCTURED_FIELDS:
            value = getattr(record, name, None)
            if value is not None:
                payload[name] = value

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        return json.dumps(payload, default=str)


def setup_logging(
    level: str = "INFO",
    logger_name: str = "call_money",
    log_format: str = "json"
) -> logging.Logger:
    """
    Attach a single stream handler to the package logger.

    Calling it again replaces the previous handler instead of adding another.

    Args:
        level: Log level name, case-insensitive
        logger_name: Logger to configure
        log_format: "json" for JSONFormatter, "text" for TEXT_FORMAT lines

    Returns:
        The configured logger
    """
    logger = logging.getLogger(logger_name)
    for existing in list(logger.handlers):
        logger.removeHandler(existing)

    handler = logging.StreamHandler()
    formatter = logging.Formatter(TEXT_FORMAT) if log_format == "text" else JSONFormatter()
    handler.setFormatter(formatter)

    logger.addHandler(handler)
    logger.setLevel(level.upper())
    logger.propagate = False
    return logger


def setup_logging_from_config(config: Optional[CallMoneyConfig] = None) -> logging.Logger:
    """Configure the package logger from log_level and log_format settings"""
    config = config or get_config()
    return setup_logging(config.log_level, "call_money", config.log_format)


def get_logger(name: str = "call_money") -> logging.Logger:
    return logging.getLogger(name)


def log_action(logger: logging.Logger, level: str, message: str,
               contract_id: Optional[str] = None, action: Optional[str] = None,
               extra: Optional[dict] = None) -> None:
    """
    Emit one structured log line for a contract operation.

    Args:
        logger: Logger to emit on
        level: Level name (info, warning, ...)
        message: Human-readable message
        contract_id: Contract the operation ran against
        action: Operation name, e.g. "repay"
        extra: Operation-specific values (amounts, dates)
    """
    fields = {
        name: value
        for name, value in (("contract_id", contract_id), ("action", action), ("extra", extra))
        if value
    }
    logger.log(getattr(logging, level.upper()), message, extra=fields, stacklevel=2)
