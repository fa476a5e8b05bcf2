"""Tagging and termination protection.

Both mutations are idempotent overwrites and both are fatal on failure. The
read-backs that follow are for the operator only and never gate the workflow.
"""

import logging
from typing import Dict, Optional

from botocore.exceptions import ClientError

from hardener.models import REQUIRED_TAGS, TaggingResult
from hardener.provisioning.ec2_manager import EC2Manager
from hardener.provisioning.errors import ProvisioningError, error_message
from hardener.utils.logging import log_section, log_tag_table
from hardener.utils.security import LogSanitizer

logger = logging.getLogger(__name__)

STAGE = "tagging"


class TaggingApplier:
    """Applies the required tag set and enables termination protection."""

    def __init__(self, ec2_manager: EC2Manager, tags: Optional[Dict[str, str]] = None):
        self.ec2_manager = ec2_manager
        self.tags = dict(tags if tags is not None else REQUIRED_TAGS)

    def apply(self, instance_id: str) -> TaggingResult:
        """
        Tag the instance, then enable termination protection.

        Raises:
            ProvisioningError: If the tag batch or the protection call fails
        """
        result = TaggingResult()
        self.apply_tags(instance_id, result)
        self.enable_protection(instance_id, result)
        return result

    def apply_tags(self, instance_id: str, result: TaggingResult) -> None:
        logger.info(f"Adding tags to instance {instance_id}...")
        try:
            self.ec2_manager.create_tags(instance_id, self.tags)
        except ClientError as e:
            raise ProvisioningError(
                STAGE,
                f"Failed to add tags: {LogSanitizer.sanitize(error_message(e))}",
                e,
            ) from e

        result.tags_applied = dict(self.tags)
        log_section("Tags added successfully!")
        logger.info("Added tags:")
        for key, value in self.tags.items():
            logger.info(f"  - {key}: {value}")
        logger.info("Current tags on instance:")

        try:
            result.current_tags = self.ec2_manager.describe_tags(instance_id)
        except ClientError as e:
            self._warn(result, f"Could not read back tags: {error_message(e)}")
            return
        log_tag_table(result.current_tags)

        missing = {
            k: v for k, v in self.tags.items() if result.current_tags.get(k) != v
        }
        if missing:
            self._warn(
                result,
                f"Tag read-back does not show {', '.join(sorted(missing))} yet",
            )

    def enable_protection(self, instance_id: str, result: TaggingResult) -> None:
        log_section("Enabling termination protection...")
        try:
            self.ec2_manager.set_termination_protection(instance_id, True)
        except ClientError as e:
            raise ProvisioningError(
                "protection",
                f"Failed to enable termination protection: "
                f"{LogSanitizer.sanitize(error_message(e))}",
                e,
            ) from e

        result.protection_enabled = True
        logger.info("Termination protection enabled successfully!")
        logger.info("Verifying termination protection status:")

        try:
            result.protection_verified = self.ec2_manager.get_termination_protection(
                instance_id
            )
        except ClientError as e:
            self._warn(result, f"Could not read back termination protection: {error_message(e)}")
            return
        logger.info(f"  DisableApiTermination: {result.protection_verified}")
        if not result.protection_verified:
            self._warn(result, "Termination protection read-back still reports False")

    @staticmethod
    def _warn(result: TaggingResult, message: str) -> None:
        message = LogSanitizer.sanitize(message)
        result.warnings.append(message)
        logger.warning(message)
