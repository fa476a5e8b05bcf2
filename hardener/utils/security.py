"""Input validation and log sanitization for the instance hardener.

Values supplied on the command line and values read back from AWS (most
notably the ``Name`` tag, which ends up inside a privileged shell command on
the instance) are validated here before they are used.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, List

AWS_RESOURCE_PATTERNS = {
    "instance_id": re.compile(r"^i-[a-f0-9]{1,17}$"),
    "region": re.compile(r"^[a-z]{2}(-gov)?-[a-z]+-[0-9]$"),
    "role_name": re.compile(r"^[\w+=,.@-]{1,64}$"),
}

# Characters that could be used in injection attacks
DANGEROUS_CHARACTERS = set("<>{}[]|\\`$;!&*()\"'\n\r\t ")

MAX_LENGTHS = {
    "resource_id": 50,
    "hostname": 253,
    "hostname_label": 63,
}

HOSTNAME_LABEL_PATTERN = re.compile(r"^[A-Za-z0-9]([A-Za-z0-9-]*[A-Za-z0-9])?$")


@dataclass
class ValidationResult:
    """Result of input validation."""

    is_valid: bool
    errors: List[str]

    @classmethod
    def valid(cls) -> "ValidationResult":
        """Create a valid result."""
        return cls(is_valid=True, errors=[])

    @classmethod
    def invalid(cls, errors: List[str]) -> "ValidationResult":
        """Create an invalid result."""
        return cls(is_valid=False, errors=errors)


class InputValidator:
    """Validates operator input and provider-sourced values."""

    @staticmethod
    def validate_instance_id(instance_id: str) -> ValidationResult:
        """
        Validate an EC2 instance ID.

        Args:
            instance_id: The instance ID to validate

        Returns:
            ValidationResult with validation status and any errors
        """
        if not instance_id:
            return ValidationResult.invalid(["Instance ID cannot be empty"])

        errors = []
        if len(instance_id) > MAX_LENGTHS["resource_id"]:
            errors.append(
                f"Instance ID exceeds maximum length of {MAX_LENGTHS['resource_id']}"
            )

        if any(c in instance_id for c in DANGEROUS_CHARACTERS):
            errors.append("Instance ID contains potentially dangerous characters")
        elif not AWS_RESOURCE_PATTERNS["instance_id"].match(instance_id):
            errors.append(f"Instance ID does not look like an EC2 instance ID: {instance_id}")

        if errors:
            return ValidationResult.invalid(errors)
        return ValidationResult.valid()

    @staticmethod
    def validate_role_name(role_name: str) -> ValidationResult:
        """Validate an IAM role (or instance profile) name."""
        if not role_name:
            return ValidationResult.invalid(["Role name cannot be empty"])

        if not AWS_RESOURCE_PATTERNS["role_name"].match(role_name):
            return ValidationResult.invalid(
                [f"Invalid IAM role name: {role_name} (1-64 chars of [A-Za-z0-9+=,.@_-])"]
            )
        return ValidationResult.valid()

    @staticmethod
    def validate_region(region: str) -> ValidationResult:
        """Validate an AWS region."""
        if not region:
            return ValidationResult.invalid(["Region cannot be empty"])

        if not AWS_RESOURCE_PATTERNS["region"].match(region):
            return ValidationResult.invalid([f"Invalid AWS region format: {region}"])
        return ValidationResult.valid()

    @staticmethod
    def validate_hostname(hostname: str) -> ValidationResult:
        """
        Validate a hostname against RFC 1123.

        The hostname is written to /etc/hostname through a privileged shell,
        so anything outside letters, digits, hyphens and dots is rejected.

        Args:
            hostname: Candidate hostname (usually the instance Name tag)

        Returns:
            ValidationResult with validation status and any errors
        """
        if not hostname:
            return ValidationResult.invalid(["Hostname cannot be empty"])

        if len(hostname) > MAX_LENGTHS["hostname"]:
            return ValidationResult.invalid(
                [f"Hostname exceeds maximum length of {MAX_LENGTHS['hostname']}"]
            )

        errors = []
        for label in hostname.rstrip(".").split("."):
            if len(label) > MAX_LENGTHS["hostname_label"]:
                errors.append(f"Hostname label '{label}' exceeds 63 characters")
            elif not HOSTNAME_LABEL_PATTERN.match(label):
                errors.append(f"Hostname label '{label}' contains invalid characters")

        if errors:
            return ValidationResult.invalid(errors)
        return ValidationResult.valid()


class LogSanitizer:
    """Sanitizes log output to prevent sensitive data exposure."""

    SENSITIVE_PATTERNS = [
        (re.compile(r"AKIA[0-9A-Z]{16}"), "[REDACTED_ACCESS_KEY]"),
        (re.compile(r"ASIA[0-9A-Z]{16}"), "[REDACTED_ACCESS_KEY]"),
        (re.compile(r"(?i)password\s*[=:]\s*\S+"), "password=[REDACTED]"),
        (re.compile(r"(?i)secret\s*[=:]\s*\S+"), "secret=[REDACTED]"),
        (re.compile(r"(?i)token\s*[=:]\s*\S+"), "token=[REDACTED]"),
        (re.compile(r"-----BEGIN [A-Z ]*PRIVATE KEY-----"), "[REDACTED_PRIVATE_KEY]"),
    ]

    @classmethod
    def sanitize(cls, message: str) -> str:
        """
        Sanitize a log message to remove sensitive data.

        Args:
            message: The message to sanitize

        Returns:
            Sanitized message
        """
        sanitized = message
        for pattern, replacement in cls.SENSITIVE_PATTERNS:
            sanitized = pattern.sub(replacement, sanitized)
        return sanitized

    @classmethod
    def sanitize_dict(cls, data: Dict[str, Any]) -> Dict[str, Any]:
        """Sanitize a dictionary for logging."""
        sanitized: Dict[str, Any] = {}
        sensitive_keys = {"password", "secret", "token", "credential", "auth"}

        for key, value in data.items():
            key_lower = key.lower()
            if any(s in key_lower for s in sensitive_keys):
                sanitized[key] = "[REDACTED]"
            elif isinstance(value, str):
                sanitized[key] = cls.sanitize(value)
            elif isinstance(value, dict):
                sanitized[key] = cls.sanitize_dict(value)
            else:
                sanitized[key] = value

        return sanitized
