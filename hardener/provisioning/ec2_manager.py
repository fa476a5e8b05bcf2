"""EC2 operations used by the provisioning workflow.

This module wraps the boto3 EC2 client with the handful of calls the workflow
needs: describing the target instance, tagging, termination protection, IAM
instance profile associations, rebooting and lifecycle state polling.
Mutating calls let ClientError propagate so the calling stage can decide
whether the failure is fatal.
"""

import logging
from typing import Any, Dict, Optional

from botocore.exceptions import ClientError

from hardener.models import InstanceDescriptor, LifecycleState, ProfileAssociation
from hardener.provisioning.errors import error_code
from hardener.utils.logging import log_debug_api_call

logger = logging.getLogger(__name__)


class EC2Manager:
    """Manages EC2 calls for a single target instance."""

    NOT_FOUND_CODES = {"InvalidInstanceID.NotFound", "InvalidInstanceID.Malformed"}

    # Association states that still occupy the instance's single profile slot
    ACTIVE_ASSOCIATION_STATES = ["associating", "associated"]

    def __init__(self, ec2_client: Any):
        """
        Initialize EC2 manager.

        Args:
            ec2_client: Boto3 EC2 client
        """
        self.ec2 = ec2_client

    def describe_instance(self, instance_id: str) -> Optional[InstanceDescriptor]:
        """
        Describe an instance.

        Args:
            instance_id: EC2 instance ID

        Returns:
            InstanceDescriptor, or None if the instance does not exist

        Raises:
            ClientError: For errors other than "not found" (e.g. access denied)
        """
        log_debug_api_call("describe_instances", "ec2", {"InstanceIds": [instance_id]})
        try:
            response = self.ec2.describe_instances(InstanceIds=[instance_id])
        except ClientError as e:
            if error_code(e) in self.NOT_FOUND_CODES:
                logger.debug(f"Instance {instance_id} not found")
                return None
            raise

        reservations = response.get("Reservations", [])
        if not reservations or not reservations[0].get("Instances"):
            return None
        return self._to_descriptor(reservations[0]["Instances"][0])

    @staticmethod
    def _to_descriptor(instance: Dict[str, Any]) -> InstanceDescriptor:
        tags = {t["Key"]: t["Value"] for t in instance.get("Tags", [])}
        profile = instance.get("IamInstanceProfile") or {}
        return InstanceDescriptor(
            instance_id=instance["InstanceId"],
            state=LifecycleState.parse(instance.get("State", {}).get("Name")),
            tags=tags,
            public_ip=instance.get("PublicIpAddress") or None,
            private_ip=instance.get("PrivateIpAddress") or None,
            iam_instance_profile_arn=profile.get("Arn"),
            iam_instance_profile_id=profile.get("Id"),
            instance_type=instance.get("InstanceType", ""),
            key_name=instance.get("KeyName"),
        )

    def create_tags(self, instance_id: str, tags: Dict[str, str]) -> None:
        """Apply all tags to the instance in a single batch call."""
        log_debug_api_call("create_tags", "ec2", {"Resources": [instance_id], "Tags": tags})
        self.ec2.create_tags(
            Resources=[instance_id],
            Tags=[{"Key": k, "Value": v} for k, v in tags.items()],
        )

    def describe_tags(self, instance_id: str) -> Dict[str, str]:
        """Read back every tag currently set on the instance."""
        log_debug_api_call("describe_tags", "ec2", {"resource-id": instance_id})
        tags: Dict[str, str] = {}
        paginator = self.ec2.get_paginator("describe_tags")
        for page in paginator.paginate(
            Filters=[{"Name": "resource-id", "Values": [instance_id]}]
        ):
            for tag in page.get("Tags", []):
                tags[tag["Key"]] = tag["Value"]
        return tags

    def set_termination_protection(self, instance_id: str, enabled: bool = True) -> None:
        """Set the disableApiTermination attribute."""
        log_debug_api_call(
            "modify_instance_attribute",
            "ec2",
            {"InstanceId": instance_id, "DisableApiTermination": enabled},
        )
        self.ec2.modify_instance_attribute(
            InstanceId=instance_id,
            DisableApiTermination={"Value": enabled},
        )

    def get_termination_protection(self, instance_id: str) -> bool:
        """Read the disableApiTermination attribute."""
        response = self.ec2.describe_instance_attribute(
            InstanceId=instance_id,
            Attribute="disableApiTermination",
        )
        return bool(response.get("DisableApiTermination", {}).get("Value", False))

    def get_profile_association(self, instance_id: str) -> Optional[ProfileAssociation]:
        """
        Get the active IAM instance profile association of an instance.

        Args:
            instance_id: EC2 instance ID

        Returns:
            ProfileAssociation or None if the instance has no active association
        """
        log_debug_api_call(
            "describe_iam_instance_profile_associations", "ec2", {"instance-id": instance_id}
        )
        response = self.ec2.describe_iam_instance_profile_associations(
            Filters=[
                {"Name": "instance-id", "Values": [instance_id]},
                {"Name": "state", "Values": self.ACTIVE_ASSOCIATION_STATES},
            ]
        )
        associations = response.get("IamInstanceProfileAssociations", [])
        if not associations:
            return None

        if len(associations) > 1:
            logger.warning(
                f"Instance {instance_id} reports {len(associations)} active profile "
                f"associations, using the first"
            )
        association = associations[0]
        profile = association.get("IamInstanceProfile", {})
        return ProfileAssociation(
            association_id=association["AssociationId"],
            instance_id=association.get("InstanceId", instance_id),
            profile_arn=profile.get("Arn", ""),
            profile_id=profile.get("Id", ""),
            state=association.get("State", "associated"),
        )

    def disassociate_profile(self, association_id: str) -> None:
        """Remove an IAM instance profile association."""
        log_debug_api_call(
            "disassociate_iam_instance_profile", "ec2", {"AssociationId": association_id}
        )
        self.ec2.disassociate_iam_instance_profile(AssociationId=association_id)

    def associate_profile(self, instance_id: str, profile_name: str) -> str:
        """
        Associate an IAM instance profile with an instance.

        Returns:
            The new association ID
        """
        log_debug_api_call(
            "associate_iam_instance_profile",
            "ec2",
            {"InstanceId": instance_id, "IamInstanceProfile": profile_name},
        )
        response = self.ec2.associate_iam_instance_profile(
            IamInstanceProfile={"Name": profile_name},
            InstanceId=instance_id,
        )
        association_id: str = response.get("IamInstanceProfileAssociation", {}).get(
            "AssociationId", ""
        )
        return association_id

    def reboot_instance(self, instance_id: str) -> None:
        """Request an instance reboot."""
        log_debug_api_call("reboot_instances", "ec2", {"InstanceIds": [instance_id]})
        self.ec2.reboot_instances(InstanceIds=[instance_id])

    def get_instance_state(self, instance_id: str) -> LifecycleState:
        """Get current lifecycle state of an instance.

        Read failures are reported as UNKNOWN so a poll loop can keep going.
        """
        try:
            response = self.ec2.describe_instances(InstanceIds=[instance_id])
            reservations = response.get("Reservations", [])
            if reservations and reservations[0].get("Instances"):
                return LifecycleState.parse(
                    reservations[0]["Instances"][0].get("State", {}).get("Name")
                )
        except Exception as e:
            logger.debug(f"Error getting state for instance {instance_id}: {e}")
        return LifecycleState.UNKNOWN
