"""
Configuration management with environment variable support and validation.

Design principles:
- Environment-specific configs (dev, staging, prod)
- Validation at startup (fail fast)
- Type safety with Pydantic
- Clinical thresholds stay in code; only deployment knobs are configurable
"""

import logging
import os
from functools import lru_cache
from typing import Literal, cast

import structlog
from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

# Load environment variables from .env file
load_dotenv()


class StorageConfig(BaseModel):
    """Where records are persisted."""

    backend: Literal["memory", "json"] = Field(default="json", description="Store implementation")
    data_dir: str = Field(default="./data", description="Directory for JSON record files")


class RecoveryConfig(BaseModel):
    """Recovery protocol presentation settings."""

    hydration_goal_ml: int = Field(default=2000, gt=0, description="Daily fluid goal while sick")
    hydration_checkpoint_ml: int = Field(
        default=250, gt=0, description="Fluid intake that ticks the hydration checklist item"
    )
    default_prn_interval_hours: float = Field(
        default=4.0, gt=0.0, description="Minimum hours between as-needed doses"
    )
    alert_history_size: int = Field(
        default=100, gt=0, description="Number of medical-attention alerts kept in memory"
    )

    @model_validator(mode="after")
    def checkpoint_below_goal(self) -> "RecoveryConfig":
        if self.hydration_checkpoint_ml > self.hydration_goal_ml:
            raise ValueError("hydration checkpoint cannot exceed the hydration goal")
        return self


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    format: Literal["json", "console"] = Field(default="json", description="Logging format")


class AppConfig(BaseModel):
    """Main application configuration combining all subsystems."""

    # Environment
    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Environment"
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    # Component configs
    storage: StorageConfig = Field(default_factory=StorageConfig)
    recovery: RecoveryConfig = Field(default_factory=RecoveryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @model_validator(mode="after")
    def debug_only_in_dev(self) -> "AppConfig":
        """Ensure debug mode is only allowed in development environment."""
        if self.debug and self.environment != "development":
            raise ValueError("debug mode is only allowed in development environment")
        return self


def load_config_from_env() -> AppConfig:
    """Load configuration from environment variables with validation."""

    def _env_to_literal(val: str) -> Literal["development", "staging", "production"]:
        v = val.strip().lower()
        if v in {"dev", "development"}:
            return "development"
        if v in {"stage", "staging"}:
            return "staging"
        return "production"

    def _level_to_literal(val: str) -> Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
        v = val.strip().upper()
        return cast(
            Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
            v if v in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"} else "INFO",
        )

    def _backend_to_literal(val: str) -> Literal["memory", "json"]:
        return "memory" if val.strip().lower() in {"memory", "mem", "inmemory"} else "json"

    # Detect environment
    environment = _env_to_literal(os.getenv("ENVIRONMENT", "development"))
    debug = environment == "development"

    storage_config = StorageConfig(
        backend=_backend_to_literal(os.getenv("STORAGE_BACKEND", "json")),
        data_dir=os.getenv("SYNAPSE_DATA_DIR", "./data"),
    )

    recovery_config = RecoveryConfig(
        hydration_goal_ml=int(os.getenv("HYDRATION_GOAL_ML", "2000")),
        hydration_checkpoint_ml=int(os.getenv("HYDRATION_CHECKPOINT_ML", "250")),
        default_prn_interval_hours=float(os.getenv("PRN_INTERVAL_HOURS", "4.0")),
        alert_history_size=int(os.getenv("ALERT_HISTORY_SIZE", "100")),
    )

    logging_config = LoggingConfig(
        level=_level_to_literal(os.getenv("LOG_LEVEL", "INFO")),
        format="console" if debug else "json",
    )

    return AppConfig(
        environment=environment,
        debug=debug,
        storage=storage_config,
        recovery=recovery_config,
        logging=logging_config,
    )


@lru_cache
def get_config() -> AppConfig:
    """Get cached application configuration."""
    return load_config_from_env()


def configure_logging(config: LoggingConfig) -> None:
    """Apply level and renderer to the stdlib-backed structlog pipeline."""
    logging.basicConfig(format="%(message)s", level=getattr(logging, config.level))
    renderer = (
        structlog.dev.ConsoleRenderer()
        if config.format == "console"
        else structlog.processors.JSONRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


# Configuration validation and helpers
def validate_config() -> None:
    """Validate configuration at startup."""
    try:
        config = get_config()
        print(f"✅ Configuration loaded for {config.environment} environment")

        if config.storage.backend == "json":
            print(f"✅ Records stored in {config.storage.data_dir}")
        else:
            print("⚠️  In-memory storage: records are lost on exit")

    except Exception as e:
        print(f"❌ Configuration validation failed: {e}")
        raise


# Development helpers
def print_config_summary() -> None:
    """Print configuration summary for debugging."""
    config = get_config()

    print("\n🔧 CONFIGURATION SUMMARY")
    print(f"Environment: {config.environment}")
    print(f"Debug Mode: {config.debug}")
    print(f"Log Level: {config.logging.level}")

    print("\n💾 STORAGE")
    print(f"Backend: {config.storage.backend}")
    print(f"Data Dir: {config.storage.data_dir}")

    print("\n🤒 RECOVERY PROTOCOL")
    print(f"Hydration Goal: {config.recovery.hydration_goal_ml} ml")
    print(f"PRN Interval: {config.recovery.default_prn_interval_hours}h")


if __name__ == "__main__":
    # Test configuration loading
    validate_config()
    print_config_summary()
