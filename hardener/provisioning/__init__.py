"""Provisioning stages and workflow orchestration."""

from hardener.provisioning.confirmation import (
    AutomatedConfirmation,
    ConfirmationProvider,
    InteractiveConfirmation,
)
from hardener.provisioning.ec2_manager import EC2Manager
from hardener.provisioning.engine import ProvisioningEngine
from hardener.provisioning.errors import ProvisioningError
from hardener.provisioning.hostname import HostnameSynchronizer
from hardener.provisioning.iam_manager import IAMManager
from hardener.provisioning.reboot import RebootSupervisor
from hardener.provisioning.role_attachment import RoleAttachmentReconciler
from hardener.provisioning.tagging import TaggingApplier

__all__ = [
    "AutomatedConfirmation",
    "ConfirmationProvider",
    "EC2Manager",
    "HostnameSynchronizer",
    "IAMManager",
    "InteractiveConfirmation",
    "ProvisioningEngine",
    "ProvisioningError",
    "RebootSupervisor",
    "RoleAttachmentReconciler",
    "TaggingApplier",
]
