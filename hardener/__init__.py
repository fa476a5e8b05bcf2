"""EC2 Instance Hardener - role attachment, tagging, protection and hostname sync."""

__version__ = "1.0.0"

from hardener.models import (
    REQUIRED_TAGS,
    HostnameResult,
    HostnameStatus,
    InstanceDescriptor,
    LifecycleState,
    ProfileAssociation,
    RebootResult,
    RebootState,
    RoleAttachmentOutcome,
    RoleAttachmentResult,
    RoleBinding,
    TaggingResult,
    WorkflowResult,
)

__all__ = [
    "REQUIRED_TAGS",
    "HostnameResult",
    "HostnameStatus",
    "InstanceDescriptor",
    "LifecycleState",
    "ProfileAssociation",
    "RebootResult",
    "RebootState",
    "RoleAttachmentOutcome",
    "RoleAttachmentResult",
    "RoleBinding",
    "TaggingResult",
    "WorkflowResult",
]
