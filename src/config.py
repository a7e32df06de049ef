"""
Configuration module for the reconciliation engine.

Loads configuration from environment variables.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_FINALIZER = "reconcile.example.org/finalizer"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class EngineConfig:
    """Settings shared by every reconcile request."""

    finalizer: str = DEFAULT_FINALIZER
    default_requeue_timeout: float = 1.0  # seconds

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(
            finalizer=os.getenv("RECONCILE_FINALIZER", DEFAULT_FINALIZER),
            default_requeue_timeout=float(os.getenv("RECONCILE_REQUEUE_TIMEOUT", "1.0")),
        )


@dataclass
class ControllerConfig:
    """Controller work queue configuration."""

    max_concurrent_reconciles: int = 5

    # Exponential backoff configuration for failed cycles
    backoff_base_delay: float = 1.0  # base delay in seconds
    backoff_max_delay: float = 300.0  # max delay in seconds
    backoff_jitter_factor: float = 0.1  # ±10% jitter

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(
            max_concurrent_reconciles=int(os.getenv("MAX_CONCURRENT_RECONCILES", "5")),
            backoff_base_delay=float(os.getenv("BACKOFF_BASE_DELAY", "1.0")),
            backoff_max_delay=float(os.getenv("BACKOFF_MAX_DELAY", "300.0")),
            backoff_jitter_factor=float(os.getenv("BACKOFF_JITTER_FACTOR", "0.1")),
        )


@dataclass
class LoggingConfig:
    """Logging configuration."""

    log_level: str = "INFO"

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(log_level=os.getenv("LOG_LEVEL", "INFO").upper())


@dataclass
class Config:
    """Main configuration object."""

    engine: EngineConfig
    controller: ControllerConfig
    logging: LoggingConfig

    @classmethod
    def from_env(cls):
        """Load all configuration from environment variables."""
        return cls(
            engine=EngineConfig.from_env(),
            controller=ControllerConfig.from_env(),
            logging=LoggingConfig.from_env(),
        )

    @classmethod
    def default(cls):
        """Return default configuration."""
        return cls(
            engine=EngineConfig(),
            controller=ControllerConfig(),
            logging=LoggingConfig(),
        )


# Global config instance
config: Optional[Config] = None


def load_config() -> Config:
    """Load configuration (singleton pattern)."""
    global config
    if config is None:
        config = Config.from_env()
    return config


def get_config() -> Config:
    """Get the current configuration."""
    if config is None:
        return load_config()
    return config


def reset_config() -> None:
    """Reset configuration (mainly for testing)."""
    global config
    config = None


def configure_logging(cfg: Optional[LoggingConfig] = None) -> None:
    """Set up the root logger with the configured level."""
    cfg = cfg or get_config().logging
    logging.basicConfig(level=cfg.log_level, format=LOG_FORMAT)
