"""IAM role and instance profile management.

Looks up the role to attach and makes sure an instance profile wrapping it
exists. Lookups return None for NoSuchEntity; every other ClientError
propagates so the reconciler can abort the workflow.
"""

import logging
from typing import Any, Dict, Optional

from botocore.exceptions import ClientError

from hardener.provisioning.errors import error_code
from hardener.utils.logging import log_debug_api_call

logger = logging.getLogger(__name__)


class IAMManager:
    """Manages IAM role lookups and instance profile setup."""

    def __init__(self, iam_client: Any):
        """
        Initialize IAM manager.

        Args:
            iam_client: Boto3 IAM client
        """
        self.iam = iam_client

    def get_role(self, role_name: str) -> Optional[Dict[str, Any]]:
        """
        Get an IAM role by name.

        Args:
            role_name: IAM role name

        Returns:
            Role description dict or None if not found
        """
        log_debug_api_call("get_role", "iam", {"RoleName": role_name})
        try:
            response = self.iam.get_role(RoleName=role_name)
        except ClientError as e:
            if error_code(e) == "NoSuchEntity":
                logger.debug(f"Role {role_name} not found")
                return None
            raise
        role: Optional[Dict[str, Any]] = response.get("Role")
        return role

    def get_instance_profile(self, profile_name: str) -> Optional[Dict[str, Any]]:
        """
        Get an instance profile by its name.

        Args:
            profile_name: Instance profile name

        Returns:
            Instance profile dict (with a "Roles" list) or None if not found
        """
        log_debug_api_call("get_instance_profile", "iam", {"InstanceProfileName": profile_name})
        try:
            response = self.iam.get_instance_profile(InstanceProfileName=profile_name)
        except ClientError as e:
            if error_code(e) == "NoSuchEntity":
                logger.debug(f"Instance profile {profile_name} not found")
                return None
            raise
        profile: Optional[Dict[str, Any]] = response.get("InstanceProfile")
        return profile

    def create_instance_profile(self, profile_name: str) -> bool:
        """
        Create an instance profile.

        Returns:
            True if the profile was created, False if it already existed
        """
        log_debug_api_call("create_instance_profile", "iam", {"InstanceProfileName": profile_name})
        try:
            self.iam.create_instance_profile(InstanceProfileName=profile_name)
        except ClientError as e:
            if error_code(e) == "EntityAlreadyExists":
                logger.info(f"Instance profile {profile_name} already exists")
                return False
            raise
        logger.info(f"Created instance profile {profile_name}")
        return True

    def add_role_to_instance_profile(self, profile_name: str, role_name: str) -> None:
        """Add a role to an instance profile."""
        log_debug_api_call(
            "add_role_to_instance_profile",
            "iam",
            {"InstanceProfileName": profile_name, "RoleName": role_name},
        )
        self.iam.add_role_to_instance_profile(
            InstanceProfileName=profile_name,
            RoleName=role_name,
        )
        logger.info(f"Added role {role_name} to instance profile {profile_name}")

    @staticmethod
    def profile_role_names(profile: Dict[str, Any]) -> list[str]:
        """Role names contained in an instance profile description."""
        return [role["RoleName"] for role in profile.get("Roles", [])]
