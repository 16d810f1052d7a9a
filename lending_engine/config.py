"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic import field_validator
from pydantic_settings import BaseSettings


class EngineConfig(BaseSettings):
    """Lending engine configuration"""

    # Money
    currency: str = "USD"  # Picks the rounding unit for display/persistence
    settlement_tolerance: str = "0.01"  # Amounts closer than this count as settled

    # Delinquency policy (days past the oldest unpaid due date)
    non_performing_after_days: int = 30
    full_provision_after_days: int = 90

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text

    class Config:
        env_prefix = "LENDING_"
        env_file = ".env"
        case_sensitive = False

    @field_validator("currency")
    @classmethod
    def _upper_currency(cls, value: str) -> str:
        return value.upper()

    @field_validator("full_provision_after_days")
    @classmethod
    def _thresholds_ordered(cls, value: int, info) -> int:
        non_performing = info.data.get("non_performing_after_days", 0)
        if value < non_performing:
            raise ValueError("full_provision_after_days must not be below non_performing_after_days")
        return value


# Global configuration instance
config = EngineConfig()


def get_config() -> EngineConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> EngineConfig:
    """Reload configuration from environment"""
    global config
    config = EngineConfig()
    return config
