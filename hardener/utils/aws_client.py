"""AWS client management for the instance hardener."""

import logging
from typing import Any, Optional

import boto3
from botocore.config import Config

logger = logging.getLogger(__name__)


class AWSClientManager:
    """Manages boto3 clients for a named AWS CLI profile."""

    def __init__(
        self,
        profile_name: Optional[str] = None,
        region: Optional[str] = None,
    ):
        self.profile_name = profile_name
        self.region = region
        self._session: Optional[boto3.Session] = None
        self._clients: dict[str, Any] = {}

    def _get_session(self) -> boto3.Session:
        """Get or create the boto3 session for the configured profile.

        Raises botocore.exceptions.ProfileNotFound when the profile is not
        present in the local AWS configuration.
        """
        if self._session is not None:
            return self._session

        logger.debug(
            f"Creating boto3 session (profile={self.profile_name}, region={self.region})"
        )
        self._session = boto3.Session(
            profile_name=self.profile_name,
            region_name=self.region,
        )
        return self._session

    def get_client(self, service_name: str) -> Any:
        """Get boto3 client for specified service."""
        if service_name not in self._clients:
            session = self._get_session()
            config = Config(retries={"max_attempts": 0})  # No retries at any layer
            self._clients[service_name] = session.client(
                service_name,
                config=config,
                region_name=self.region,  # type: ignore[call-overload]
            )
        return self._clients[service_name]

    @property
    def ec2(self) -> Any:
        """Get EC2 client."""
        return self.get_client("ec2")

    @property
    def iam(self) -> Any:
        """Get IAM client."""
        return self.get_client("iam")

