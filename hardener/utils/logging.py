"""Console logging helpers for the instance hardener.

All progress, warnings and errors are written as human-readable text to
stdout. Stages are separated by ``======`` rules so an operator can follow the
run in a terminal or a CI log. Everything that may contain provider error text
passes through LogSanitizer first.
"""

import logging
from typing import Any, Dict, Optional

from hardener.utils.security import LogSanitizer

logger = logging.getLogger(__name__)

SECTION_RULE = "=" * 38


class ConsoleFormatter(logging.Formatter):
    """Prints INFO records bare and prefixes every other level."""

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        if record.exc_info and logger.isEnabledFor(logging.DEBUG):
            message = f"{message}\n{self.formatException(record.exc_info)}"
        if record.levelno == logging.INFO:
            return message
        return f"{record.levelname.capitalize()}: {message}"


def log_rule() -> None:
    """Log a single section rule."""
    logger.info(SECTION_RULE)


def log_section(title: str) -> None:
    """Log a section header framed by rules."""
    logger.info(SECTION_RULE)
    logger.info(title)
    logger.info(SECTION_RULE)


def log_key_values(values: Dict[str, Any], indent: str = "") -> None:
    """Log aligned ``key: value`` lines."""
    if not values:
        return
    width = max(len(k) for k in values)
    for key, value in values.items():
        logger.info(f"{indent}{key + ':':<{width + 1}} {value}")


def log_tag_table(tags: Dict[str, str]) -> None:
    """Log tags as a two-column table sorted by key."""
    if not tags:
        logger.info("  (no tags)")
        return
    key_width = max(len("Key"), *(len(k) for k in tags))
    value_width = max(len("Value"), *(len(v) for v in tags.values()))
    border = f"+{'-' * (key_width + 2)}+{'-' * (value_width + 2)}+"
    logger.info(border)
    logger.info(f"| {'Key':<{key_width}} | {'Value':<{value_width}} |")
    logger.info(border)
    for key in sorted(tags):
        logger.info(f"| {key:<{key_width}} | {tags[key]:<{value_width}} |")
    logger.info(border)


def log_warning_with_hints(message: str, hints: list[str]) -> None:
    """Log a warning followed by an indented checklist for the operator."""
    logger.warning(LogSanitizer.sanitize(message))
    if hints:
        logger.info("Please verify:")
        for hint in hints:
            logger.info(f"  - {hint}")


def log_error_with_details(
    resource_type: str,
    resource_id: str,
    error: Exception,
) -> None:
    """Log error with detailed, sanitized information."""
    sanitized_id = LogSanitizer.sanitize(resource_id)
    sanitized_error = LogSanitizer.sanitize(str(error))

    error_type = type(error).__name__

    message = f"{resource_type} {sanitized_id}: {error_type} - {sanitized_error}"

    logger.error(message)


def log_debug_api_call(
    api_name: str,
    service: str,
    parameters: Optional[Dict[str, Any]] = None,
) -> None:
    """Log AWS API call at DEBUG level."""
    sanitized_params = LogSanitizer.sanitize_dict(parameters) if parameters else {}

    message = f"API call: {service}.{api_name}"
    if sanitized_params:
        params_str = ", ".join(f"{k}={v}" for k, v in sanitized_params.items())
        message += f" ({params_str})"

    logger.debug(message)
