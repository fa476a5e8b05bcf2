"""Configuration management for the instance hardener.

Configuration is read from environment variables and may be overridden by
command-line options. Key options:
- HARDENER_SSH_KEY_PATH / HARDENER_SSH_USER: SSH credentials for the instance
- HARDENER_ROLE_NAME / HARDENER_PROFILE_NAME: IAM role to attach
- AWS_REGION: region override for the AWS profile
- LOG_LEVEL: console log level
- HARDENER_REBOOT_*: reboot supervision timing
"""

import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from hardener.utils.logging import ConsoleFormatter
from hardener.utils.security import InputValidator

VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

DEFAULT_SSH_KEY_PATH = "~/.ssh/itop.pem"
DEFAULT_SSH_USER = "ubuntu"

_config_logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    """Exception raised for configuration validation errors."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.message = message
        self.errors = errors or []
        super().__init__(self.message)


@dataclass
class TimingConfig:
    """Fixed waits and bounds used by the workflow, in seconds."""

    ssh_connect_timeout: float = 10.0
    reboot_timeout: float = 300.0
    reboot_poll_interval: float = 10.0
    reboot_grace_period: float = 30.0
    reboot_settle: float = 10.0
    ssh_settle: float = 30.0
    disassociate_settle: float = 5.0
    profile_settle: float = 10.0


# Environment variable name for each TimingConfig field
_TIMING_ENV_VARS = {
    "ssh_connect_timeout": "HARDENER_SSH_CONNECT_TIMEOUT",
    "reboot_timeout": "HARDENER_REBOOT_TIMEOUT",
    "reboot_poll_interval": "HARDENER_REBOOT_POLL_INTERVAL",
    "reboot_grace_period": "HARDENER_REBOOT_GRACE_PERIOD",
    "reboot_settle": "HARDENER_REBOOT_SETTLE",
    "ssh_settle": "HARDENER_SSH_SETTLE",
    "disassociate_settle": "HARDENER_DISASSOCIATE_SETTLE",
    "profile_settle": "HARDENER_PROFILE_SETTLE",
}


@dataclass
class HardenerConfig:
    """Configuration for one hardening run.

    Attributes:
        ssh_key_path: Private key used to reach the instance over SSH.
        ssh_user: Login user on the instance.
        role_name: IAM role to attach. None skips role attachment.
        profile_name: Instance profile wrapping the role. Defaults to role_name.
        region: AWS region override. None uses the profile's region.
        log_level: Console log level.
        timing: Settle delays, poll interval and timeouts.
    """

    ssh_key_path: str = DEFAULT_SSH_KEY_PATH
    ssh_user: str = DEFAULT_SSH_USER
    role_name: Optional[str] = None
    profile_name: Optional[str] = None
    region: Optional[str] = None
    log_level: str = "INFO"
    timing: Optional[TimingConfig] = None

    def __post_init__(self) -> None:
        if self.timing is None:
            self.timing = TimingConfig()

    @classmethod
    def from_environment(cls, validate: bool = True) -> "HardenerConfig":
        """Create configuration from environment variables.

        Args:
            validate: If True, validates the configuration and raises
                ConfigurationError if invalid.

        Returns:
            HardenerConfig populated from environment variables.

        Raises:
            ConfigurationError: If validation is enabled and configuration is invalid.
        """
        config = cls()

        config.ssh_key_path = os.environ.get("HARDENER_SSH_KEY_PATH", DEFAULT_SSH_KEY_PATH)
        config.ssh_user = os.environ.get("HARDENER_SSH_USER", DEFAULT_SSH_USER)
        config.role_name = os.environ.get("HARDENER_ROLE_NAME") or None
        config.profile_name = os.environ.get("HARDENER_PROFILE_NAME") or None
        config.region = os.environ.get("AWS_REGION") or None

        log_level_value = os.environ.get("LOG_LEVEL", "INFO").upper().strip()
        if log_level_value in VALID_LOG_LEVELS:
            config.log_level = log_level_value
        else:
            _config_logger.warning(
                f"Invalid LOG_LEVEL '{log_level_value}', defaulting to INFO"
            )
            config.log_level = "INFO"

        defaults = TimingConfig()
        timing = TimingConfig()
        for field_name, env_var in _TIMING_ENV_VARS.items():
            default = getattr(defaults, field_name)
            setattr(timing, field_name, _parse_seconds(env_var, default))
        config.timing = timing

        if validate:
            config.ensure_valid()

        return config

    def validate(self) -> List[str]:
        """Validate configuration and return list of errors.

        Returns:
            List of error messages. Empty list if configuration is valid.
        """
        errors = []

        if not Path(self.expanded_ssh_key_path).is_file():
            errors.append(f"SSH key file not found: {self.expanded_ssh_key_path}")

        if not self.ssh_user:
            errors.append("SSH user cannot be empty")

        if self.role_name:
            errors.extend(InputValidator.validate_role_name(self.role_name).errors)
        if self.profile_name:
            errors.extend(InputValidator.validate_role_name(self.profile_name).errors)

        if self.region:
            errors.extend(InputValidator.validate_region(self.region).errors)

        if self.log_level not in VALID_LOG_LEVELS:
            errors.append(f"Invalid log level: {self.log_level}")

        timing = self.timing or TimingConfig()
        for field_name in _TIMING_ENV_VARS:
            if getattr(timing, field_name) < 0:
                errors.append(f"{field_name} cannot be negative")
        if timing.ssh_connect_timeout <= 0:
            errors.append("ssh_connect_timeout must be positive")
        if timing.reboot_poll_interval <= 0:
            errors.append("reboot_poll_interval must be positive")
        if timing.reboot_timeout <= 0:
            errors.append("reboot_timeout must be positive")
        elif timing.reboot_poll_interval > timing.reboot_timeout:
            errors.append("reboot_poll_interval cannot exceed reboot_timeout")

        return errors

    def ensure_valid(self) -> None:
        """Raise ConfigurationError if validate() reports any errors."""
        errors = self.validate()
        if errors:
            raise ConfigurationError(
                f"Configuration validation failed: {errors}", errors=errors
            )

    @property
    def expanded_ssh_key_path(self) -> str:
        """SSH key path with ~ expanded."""
        return os.path.expanduser(self.ssh_key_path)

    @property
    def effective_profile_name(self) -> Optional[str]:
        """Instance profile name; the role name unless set explicitly."""
        return self.profile_name or self.role_name

    def get_numeric_log_level(self) -> int:
        """Get the numeric log level for use with logging module."""
        return getattr(logging, self.log_level, logging.INFO)


def _parse_seconds(env_var: str, default: float) -> float:
    """Parse a non-negative number of seconds, falling back with a warning."""
    raw = os.environ.get(env_var)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw.strip())
    except ValueError:
        _config_logger.warning(
            f"Invalid {env_var} '{raw}' (not a number), defaulting to {default:g}"
        )
        return default
    if value < 0:
        _config_logger.warning(
            f"Invalid {env_var} '{raw}' (must not be negative), defaulting to {default:g}"
        )
        return default
    return value


def configure_logging(config: Optional["HardenerConfig"] = None) -> logging.Logger:
    """Configure console logging based on LOG_LEVEL or config.

    Progress output goes to stdout as plain, section-delimited text.

    Args:
        config: Optional HardenerConfig instance. If not provided, reads from environment.

    Returns:
        Configured logger instance for the hardener.
    """
    if config is None:
        log_level_str = os.environ.get("LOG_LEVEL", "INFO").upper().strip()
        if log_level_str not in VALID_LOG_LEVELS:
            logging.warning(f"Invalid LOG_LEVEL '{log_level_str}', defaulting to INFO")
            log_level_str = "INFO"
        log_level = getattr(logging, log_level_str)
    else:
        log_level = config.get_numeric_log_level()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ConsoleFormatter())
    logging.basicConfig(level=log_level, handlers=[handler], force=True)

    # boto and paramiko are noisy below WARNING
    for noisy in ("boto3", "botocore", "urllib3", "paramiko"):
        logging.getLogger(noisy).setLevel(max(log_level, logging.WARNING))

    hardener_logger = logging.getLogger("hardener")
    hardener_logger.setLevel(log_level)

    return hardener_logger
