"""Provisioning workflow orchestration.

Runs the stages in order against a single instance:
1. Describe the instance (fatal if missing or inaccessible)
2. Attach the IAM role through its instance profile (when a role is given)
3. Apply the required tags and enable termination protection
4. Synchronize the hostname with the Name tag
5. Supervise a reboot, only if the hostname was updated

Each stage returns a result object; fatal conditions raise ProvisioningError
and stop the run. Nothing is retried.
"""

import logging
import time
from typing import Any, Callable, Optional

from botocore.exceptions import ClientError

from hardener.models import (
    InstanceDescriptor,
    RoleAttachmentOutcome,
    RoleAttachmentResult,
    WorkflowResult,
)
from hardener.provisioning.confirmation import AutomatedConfirmation, ConfirmationProvider
from hardener.provisioning.ec2_manager import EC2Manager
from hardener.provisioning.errors import ProvisioningError, error_message
from hardener.provisioning.hostname import HostnameSynchronizer
from hardener.provisioning.iam_manager import IAMManager
from hardener.provisioning.reboot import RebootSupervisor
from hardener.provisioning.role_attachment import RoleAttachmentReconciler
from hardener.provisioning.tagging import TaggingApplier
from hardener.remote.ssh_executor import SSHExecutor
from hardener.utils.config import TimingConfig
from hardener.utils.logging import log_key_values, log_rule, log_section
from hardener.utils.security import LogSanitizer

logger = logging.getLogger(__name__)


class ProvisioningEngine:
    """Orchestrates the hardening stages for one instance."""

    def __init__(
        self,
        ec2_client: Any,
        iam_client: Any,
        executor: SSHExecutor,
        confirmer: Optional[ConfirmationProvider] = None,
        timing: Optional[TimingConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the engine.

        Args:
            ec2_client: Boto3 EC2 client
            iam_client: Boto3 IAM client
            executor: SSH executor for the instance
            confirmer: Operator confirmation provider (defaults to deny)
            timing: Settle delays and timeouts
            clock: Monotonic clock, injectable for tests
            sleep: Sleep function, injectable for tests
        """
        self.timing = timing or TimingConfig()
        self.confirmer = confirmer or AutomatedConfirmation(allow=False)

        self.ec2_manager = EC2Manager(ec2_client)
        self.iam_manager = IAMManager(iam_client)

        self.role_reconciler = RoleAttachmentReconciler(
            self.ec2_manager,
            self.iam_manager,
            self.confirmer,
            disassociate_settle=self.timing.disassociate_settle,
            profile_settle=self.timing.profile_settle,
            sleep=sleep,
        )
        self.tagging_applier = TaggingApplier(self.ec2_manager)
        self.hostname_synchronizer = HostnameSynchronizer(
            executor, connect_timeout=self.timing.ssh_connect_timeout
        )
        self.reboot_supervisor = RebootSupervisor(
            self.ec2_manager,
            executor,
            self.confirmer,
            timeout=self.timing.reboot_timeout,
            poll_interval=self.timing.reboot_poll_interval,
            grace_period=self.timing.reboot_grace_period,
            reboot_settle=self.timing.reboot_settle,
            ssh_settle=self.timing.ssh_settle,
            clock=clock,
            sleep=sleep,
        )

    def run(
        self,
        instance_id: str,
        role_name: Optional[str] = None,
        profile_name: Optional[str] = None,
    ) -> WorkflowResult:
        """
        Execute the full workflow.

        Args:
            instance_id: EC2 instance ID
            role_name: IAM role to attach; None skips role attachment
            profile_name: Instance profile name, defaults to role_name

        Returns:
            WorkflowResult with per-stage results and collected warnings

        Raises:
            ProvisioningError: On any fatal condition
        """
        result = WorkflowResult(instance_id=instance_id)

        descriptor = self.load_instance(instance_id)

        if role_name:
            log_section(f"Attaching IAM role {role_name}")
            result.role = self.role_reconciler.reconcile(instance_id, role_name, profile_name)
        else:
            logger.debug("No role requested, skipping role attachment")
            result.role = RoleAttachmentResult(outcome=RoleAttachmentOutcome.NOT_REQUESTED)

        log_rule()
        result.tagging = self.tagging_applier.apply(instance_id)

        result.hostname = self.hostname_synchronizer.sync(descriptor)

        if result.hostname.updated and result.hostname.address:
            result.reboot = self.reboot_supervisor.supervise(
                instance_id,
                result.hostname.address,
                result.hostname.target,
            )

        self.log_summary(result)
        return result

    def load_instance(self, instance_id: str) -> InstanceDescriptor:
        """Describe the instance and print what the workflow will act on."""
        logger.info("Verifying instance exists...")
        try:
            descriptor = self.ec2_manager.describe_instance(instance_id)
        except ClientError as e:
            raise ProvisioningError(
                "describe",
                f"Instance {instance_id} not found or access denied: "
                f"{LogSanitizer.sanitize(error_message(e))}",
                e,
            ) from e
        if descriptor is None:
            raise ProvisioningError(
                "describe", f"Instance {instance_id} not found or access denied"
            )

        logger.info("Instance verified successfully")
        if descriptor.name_tag:
            logger.info(f"Found Name tag: {descriptor.name_tag}")
        else:
            logger.warning("No Name tag found on instance")

        log_key_values(
            {
                "State": descriptor.state.value,
                "Instance type": descriptor.instance_type or "(unknown)",
                "Key pair": descriptor.key_name or "(none)",
                "Instance IP": descriptor.reachable_address or "(none)",
                "Instance profile": descriptor.iam_instance_profile_arn or "(none)",
            }
        )
        return descriptor

    def log_summary(self, result: WorkflowResult) -> None:
        log_section("Summary")
        summary = {
            "Role attachment": result.role.outcome.value if result.role else "-",
            "Tags applied": len(result.tagging.tags_applied) if result.tagging else 0,
            "Termination protection": (
                "enabled" if result.tagging and result.tagging.protection_enabled else "-"
            ),
            "Hostname": result.hostname.status.value if result.hostname else "-",
            "Reboot": result.reboot.state.value if result.reboot else "not required",
        }
        log_key_values(summary, indent="  ")

        warnings = result.warnings
        if warnings:
            logger.info(f"Completed with {len(warnings)} warning(s):")
            for warning in warnings:
                logger.info(f"  - {warning}")
