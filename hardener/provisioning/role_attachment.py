"""IAM role attachment with conflict reconciliation.

Sequence:
1. Resolve the role (missing role is fatal)
2. Ensure an instance profile wrapping the role exists and contains it
3. Reconcile with the instance's current profile association:
   - same profile: nothing to do
   - different profile: ask the operator, then disassociate, settle, associate
   - none: associate
4. Re-describe the instance and compare the reported profile (warning only)

At no point are two associations requested for the same instance.
"""

import logging
import time
from typing import Callable, Optional

from botocore.exceptions import ClientError

from hardener.models import (
    ProfileAssociation,
    RoleAttachmentOutcome,
    RoleAttachmentResult,
    RoleBinding,
)
from hardener.provisioning.confirmation import ConfirmationProvider
from hardener.provisioning.ec2_manager import EC2Manager
from hardener.provisioning.errors import ProvisioningError, error_message
from hardener.provisioning.iam_manager import IAMManager
from hardener.utils.security import LogSanitizer

logger = logging.getLogger(__name__)

STAGE = "role-attachment"


class RoleAttachmentReconciler:
    """Ensures exactly one profile association pointing at the requested role."""

    def __init__(
        self,
        ec2_manager: EC2Manager,
        iam_manager: IAMManager,
        confirmer: ConfirmationProvider,
        disassociate_settle: float = 5.0,
        profile_settle: float = 10.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the reconciler.

        Args:
            ec2_manager: EC2 calls for the target instance
            iam_manager: IAM role and instance profile calls
            confirmer: Asked before replacing an existing association
            disassociate_settle: Seconds to wait after a disassociation
            profile_settle: Seconds to wait after creating an instance profile
            sleep: Sleep function, injectable for tests
        """
        self.ec2_manager = ec2_manager
        self.iam_manager = iam_manager
        self.confirmer = confirmer
        self.disassociate_settle = disassociate_settle
        self.profile_settle = profile_settle
        self._sleep = sleep

    def reconcile(
        self,
        instance_id: str,
        role_name: str,
        profile_name: Optional[str] = None,
    ) -> RoleAttachmentResult:
        """
        Attach the role to the instance through its instance profile.

        Args:
            instance_id: EC2 instance ID
            role_name: IAM role to attach
            profile_name: Instance profile name, defaults to the role name

        Returns:
            RoleAttachmentResult with outcome ATTACHED_NEW, ATTACHED_UNCHANGED or SKIPPED

        Raises:
            ProvisioningError: On missing role or any failed mutation
        """
        binding = RoleBinding(role_name=role_name, profile_name=profile_name or role_name)

        self._resolve_role(binding)
        profile_created = self._ensure_instance_profile(binding)

        try:
            current = self.ec2_manager.get_profile_association(instance_id)
        except ClientError as e:
            raise ProvisioningError(
                STAGE,
                f"Could not read profile association of {instance_id}: "
                f"{LogSanitizer.sanitize(error_message(e))}",
                e,
            ) from e

        result = RoleAttachmentResult(
            outcome=RoleAttachmentOutcome.ATTACHED_NEW,
            binding=binding,
            profile_created=profile_created,
            previous_association=current,
        )

        if current is not None and self._is_same_profile(current, binding):
            logger.info(
                f"Instance profile {binding.profile_name} is already associated "
                f"({current.association_id}), nothing to change"
            )
            result.outcome = RoleAttachmentOutcome.ATTACHED_UNCHANGED
        elif current is not None:
            logger.warning(
                f"Instance {instance_id} already has instance profile "
                f"{current.profile_name} associated ({current.association_id})"
            )
            if not self.confirmer.confirm(
                f"Replace instance profile {current.profile_name} with {binding.profile_name}?"
            ):
                logger.info("Keeping the existing instance profile, skipping role attachment")
                result.outcome = RoleAttachmentOutcome.SKIPPED
                return result
            self._disassociate(current)
            self._associate(instance_id, binding)
        else:
            if profile_created and self.profile_settle > 0:
                logger.info(
                    f"Waiting {self.profile_settle:g}s for the new instance profile to propagate..."
                )
                self._sleep(self.profile_settle)
            self._associate(instance_id, binding)

        self._verify(instance_id, binding, result)
        return result

    def _resolve_role(self, binding: RoleBinding) -> None:
        try:
            role = self.iam_manager.get_role(binding.role_name)
        except ClientError as e:
            raise ProvisioningError(
                STAGE,
                f"Could not look up role {binding.role_name}: "
                f"{LogSanitizer.sanitize(error_message(e))}",
                e,
            ) from e
        if role is None:
            raise ProvisioningError(STAGE, f"IAM role {binding.role_name} not found")
        binding.role_arn = role.get("Arn", "")
        logger.info(f"Found IAM role {binding.role_name}")

    def _ensure_instance_profile(self, binding: RoleBinding) -> bool:
        """Make sure the profile exists and contains the role.

        Returns:
            True if the profile was created by this run
        """
        created = False
        try:
            profile = self.iam_manager.get_instance_profile(binding.profile_name)
            if profile is None:
                logger.info(f"Creating instance profile {binding.profile_name}...")
                created = self.iam_manager.create_instance_profile(binding.profile_name)
                profile = self.iam_manager.get_instance_profile(binding.profile_name) or {}

            roles = IAMManager.profile_role_names(profile)
            if binding.role_name not in roles:
                if roles:
                    raise ProvisioningError(
                        STAGE,
                        f"Instance profile {binding.profile_name} already contains "
                        f"role(s) {', '.join(roles)}; it can only hold one role",
                    )
                self.iam_manager.add_role_to_instance_profile(
                    binding.profile_name, binding.role_name
                )
            else:
                logger.info(
                    f"Instance profile {binding.profile_name} already contains role "
                    f"{binding.role_name}"
                )
        except ClientError as e:
            raise ProvisioningError(
                STAGE,
                f"Failed to prepare instance profile {binding.profile_name}: "
                f"{LogSanitizer.sanitize(error_message(e))}",
                e,
            ) from e

        binding.profile_arn = profile.get("Arn", "")
        binding.profile_id = profile.get("InstanceProfileId", "")
        return created

    @staticmethod
    def _is_same_profile(association: ProfileAssociation, binding: RoleBinding) -> bool:
        if binding.profile_arn and association.profile_arn:
            return association.profile_arn == binding.profile_arn
        if binding.profile_id and association.profile_id:
            return association.profile_id == binding.profile_id
        return association.profile_name == binding.profile_name

    def _disassociate(self, association: ProfileAssociation) -> None:
        logger.info(f"Disassociating instance profile {association.profile_name}...")
        try:
            self.ec2_manager.disassociate_profile(association.association_id)
        except ClientError as e:
            raise ProvisioningError(
                STAGE,
                f"Failed to disassociate {association.association_id}: "
                f"{LogSanitizer.sanitize(error_message(e))}",
                e,
            ) from e
        # The provider rejects a new association while the old one is still detaching
        if self.disassociate_settle > 0:
            logger.info(f"Waiting {self.disassociate_settle:g}s for disassociation to complete...")
            self._sleep(self.disassociate_settle)

    def _associate(self, instance_id: str, binding: RoleBinding) -> None:
        logger.info(
            f"Associating instance profile {binding.profile_name} with {instance_id}..."
        )
        try:
            association_id = self.ec2_manager.associate_profile(
                instance_id, binding.profile_name
            )
        except ClientError as e:
            raise ProvisioningError(
                STAGE,
                f"Failed to associate instance profile {binding.profile_name}: "
                f"{LogSanitizer.sanitize(error_message(e))}",
                e,
            ) from e
        logger.info(f"Instance profile associated ({association_id or 'pending'})")

    def _verify(
        self, instance_id: str, binding: RoleBinding, result: RoleAttachmentResult
    ) -> None:
        """Compare the profile the instance reports against the binding."""
        try:
            descriptor = self.ec2_manager.describe_instance(instance_id)
        except ClientError as e:
            descriptor = None
            logger.debug(f"Verification describe failed: {e}")

        reported = descriptor.iam_instance_profile_arn if descriptor else None
        logger.info(f"Instance profile reported by instance: {reported or '(none)'}")

        if reported and binding.profile_arn and reported == binding.profile_arn:
            result.verified = True
            logger.info("Role attachment verified")
            return

        result.verified = False
        message = (
            f"Instance {instance_id} reports profile {reported or '(none)'}, "
            f"expected {binding.profile_arn or binding.profile_name}; "
            f"the association may still be propagating"
        )
        result.warnings.append(message)
        logger.warning(message)
