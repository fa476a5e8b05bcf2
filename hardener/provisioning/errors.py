"""Errors that abort the provisioning workflow."""

from typing import Optional

from botocore.exceptions import ClientError


class ProvisioningError(Exception):
    """A fatal condition. The workflow stops and the process exits non-zero."""

    def __init__(self, stage: str, message: str, cause: Optional[BaseException] = None):
        self.stage = stage
        self.message = message
        self.cause = cause
        super().__init__(f"[{stage}] {message}")


def error_code(error: ClientError) -> str:
    """Return the AWS error code of a ClientError."""
    return error.response.get("Error", {}).get("Code", "")


def error_message(error: ClientError) -> str:
    """Return the AWS error message of a ClientError, or its string form."""
    return error.response.get("Error", {}).get("Message", "") or str(error)
