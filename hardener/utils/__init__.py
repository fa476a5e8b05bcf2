"""Utility modules for AWS client management, configuration and logging."""

from hardener.utils.aws_client import AWSClientManager
from hardener.utils.config import ConfigurationError, HardenerConfig, TimingConfig
from hardener.utils.logging import (
    ConsoleFormatter,
    log_error_with_details,
    log_section,
)
from hardener.utils.security import InputValidator, LogSanitizer

__all__ = [
    "AWSClientManager",
    "ConfigurationError",
    "ConsoleFormatter",
    "HardenerConfig",
    "InputValidator",
    "LogSanitizer",
    "TimingConfig",
    "log_error_with_details",
    "log_section",
]
