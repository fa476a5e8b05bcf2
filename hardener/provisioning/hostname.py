"""Hostname synchronization with the instance Name tag.

Only a missing address is fatal here. Every other problem (unreachable SSH,
a Name tag that is not a valid hostname, a failed write) is logged as a warning
and the workflow continues without a hostname change.
"""

import logging
import shlex
from typing import Optional

from hardener.models import HostnameResult, HostnameStatus, InstanceDescriptor
from hardener.provisioning.errors import ProvisioningError
from hardener.remote.ssh_executor import SSHExecutor
from hardener.utils.logging import log_section, log_warning_with_hints
from hardener.utils.security import InputValidator, LogSanitizer

logger = logging.getLogger(__name__)

STAGE = "hostname"

UNREACHABLE_HINTS = [
    "Security group allows SSH access",
    "SSH key is correct",
    "Instance is running",
]


def build_set_hostname_command(hostname: str) -> str:
    """Persist the hostname for boot and apply it to the running system."""
    quoted = shlex.quote(hostname)
    return f"echo {quoted} > /etc/hostname && hostnamectl set-hostname {quoted}"


class HostnameSynchronizer:
    """Makes the live hostname match the instance Name tag."""

    def __init__(self, executor: SSHExecutor, connect_timeout: float = 10.0):
        self.executor = executor
        self.connect_timeout = connect_timeout

    def sync(self, descriptor: InstanceDescriptor) -> HostnameResult:
        """
        Push the Name tag to the instance as its hostname.

        Args:
            descriptor: Instance read at workflow start

        Returns:
            HostnameResult; ``updated`` is True only after a successful write

        Raises:
            ProvisioningError: If the instance has neither a public nor a private address
        """
        target = descriptor.name_tag
        if not target:
            log_section("Skipping hostname update (no Name tag)")
            return HostnameResult(status=HostnameStatus.SKIPPED_NO_NAME)

        address = descriptor.reachable_address
        if not address:
            raise ProvisioningError(
                STAGE, f"Could not determine an IP address for {descriptor.instance_id}"
            )

        log_section(f"Updating hostname to: {target}")
        result = HostnameResult(status=HostnameStatus.UPDATE_FAILED, target=target, address=address)

        validation = InputValidator.validate_hostname(target)
        if not validation.is_valid:
            result.status = HostnameStatus.INVALID_NAME
            self._warn(
                result,
                f"Name tag '{target}' is not a valid hostname, skipping hostname update: "
                f"{'; '.join(validation.errors)}",
            )
            return result

        logger.info("Testing SSH connectivity...")
        if not self.executor.probe(address, timeout=self.connect_timeout):
            result.status = HostnameStatus.UNREACHABLE
            message = "Could not connect via SSH to update hostname"
            result.warnings.append(message)
            log_warning_with_hints(message, UNREACHABLE_HINTS)
            return result

        logger.info("Updating /etc/hostname...")
        if not self._write_hostname(address, target, result):
            return result

        result.status = HostnameStatus.UPDATED
        logger.info("Hostname updated successfully!")

        # Log only; the post-reboot check is the authoritative comparison
        logger.info("Verifying hostname change...")
        result.observed_hostname = self.executor.get_hostname(address)
        logger.info(f"Current hostname on instance: {result.observed_hostname or '(unavailable)'}")
        return result

    def _write_hostname(self, address: str, target: str, result: HostnameResult) -> bool:
        try:
            command_result = self.executor.run_privileged(
                address, build_set_hostname_command(target)
            )
        except Exception as e:
            self._warn(result, f"Failed to update hostname: {e}")
            return False

        if not command_result.ok:
            detail: Optional[str] = command_result.stderr.strip() or None
            self._warn(
                result,
                f"Failed to update hostname (exit code {command_result.exit_code})"
                + (f": {detail}" if detail else ""),
            )
            return False
        return True

    @staticmethod
    def _warn(result: HostnameResult, message: str) -> None:
        message = LogSanitizer.sanitize(message)
        result.warnings.append(message)
        logger.warning(message)
