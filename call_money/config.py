"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CallMoneyConfig(BaseSettings):
    """Call money contract configuration"""

    model_config = SettingsConfigDict(
        env_prefix="CALL_MONEY_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Logging configuration (applied by setup_logging_from_config)
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    enable_audit_logging: bool = True  # One structured log line per operation

    # Business rules configuration
    days_per_year: int = 365  # Day-count denominator for interest and penalties
    reject_backdated_accrual: bool = True  # Refuse dates before the last accrual
    allow_repayment_after_repaid: bool = False  # Accept repay() on a Repaid contract

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        value = value.upper()
        if value not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {value}")
        return value

    @field_validator("log_format")
    @classmethod
    def _check_log_format(cls, value: str) -> str:
        value = value.lower()
        if value not in ("json", "text"):
            raise ValueError(f"log_format must be 'json' or 'text', got {value}")
        return value

    @field_validator("days_per_year")
    @classmethod
    def _check_days_per_year(cls, value: int) -> int:
        if value <= 0:
            raise ValueError(f"days_per_year must be positive, got {value}")
        return value


# Global configuration instance
config = CallMoneyConfig()


def get_config() -> CallMoneyConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> CallMoneyConfig:
    """Reload configuration from environment"""
    global config
    config = CallMoneyConfig()
    return config
