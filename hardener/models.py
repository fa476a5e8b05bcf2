"""Data models for the EC2 instance hardener."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

# Tags applied identically on every run. Applying them is a pure overwrite.
REQUIRED_TAGS: dict[str, str] = {
    "ansible-runner": "yes",
    "cno-patch-weekly": "sun",
    "ansible-managed": "yes",
    "BackupSchema": "local-nonprod",
}

NAME_TAG_KEY = "Name"


class LifecycleState(Enum):
    """EC2 instance lifecycle states."""

    PENDING = "pending"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"
    SHUTTING_DOWN = "shutting-down"
    TERMINATED = "terminated"
    REBOOTING = "rebooting"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Optional[str]) -> "LifecycleState":
        """Map a provider state string to a LifecycleState."""
        if not value:
            return cls.UNKNOWN
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.UNKNOWN


class RoleAttachmentOutcome(Enum):
    """Terminal outcomes of role reconciliation."""

    ATTACHED_NEW = "attached-new"
    ATTACHED_UNCHANGED = "attached-unchanged"
    SKIPPED = "skipped"
    NOT_REQUESTED = "not-requested"


class HostnameStatus(Enum):
    """Terminal outcomes of hostname synchronization."""

    SKIPPED_NO_NAME = "skipped-no-name"
    INVALID_NAME = "invalid-name"
    UNREACHABLE = "unreachable"
    UPDATED = "updated"
    UPDATE_FAILED = "update-failed"


class RebootState(Enum):
    """States of the reboot supervision state machine."""

    AWAIT_CONFIRMATION = "await-confirmation"
    REBOOTING = "rebooting"
    POLLING = "polling"
    CONFIRMED = "confirmed"
    SKIPPED = "skipped"
    FAILED = "failed"
    TIMED_OUT = "timed-out"

    @property
    def is_terminal(self) -> bool:
        return self in (
            RebootState.CONFIRMED,
            RebootState.SKIPPED,
            RebootState.FAILED,
            RebootState.TIMED_OUT,
        )


@dataclass
class InstanceDescriptor:
    """Snapshot of an EC2 instance, read fresh at workflow start."""

    instance_id: str
    state: LifecycleState
    tags: dict[str, str] = field(default_factory=dict)
    public_ip: Optional[str] = None
    private_ip: Optional[str] = None
    iam_instance_profile_arn: Optional[str] = None
    iam_instance_profile_id: Optional[str] = None
    instance_type: str = ""
    key_name: Optional[str] = None

    @property
    def name_tag(self) -> str:
        """Value of the Name tag, or an empty string when absent."""
        return (self.tags.get(NAME_TAG_KEY) or "").strip()

    @property
    def reachable_address(self) -> Optional[str]:
        """Public address if present, private address otherwise."""
        return self.public_ip or self.private_ip or None


@dataclass
class RoleBinding:
    """An IAM role and the instance profile wrapping it."""

    role_name: str
    profile_name: str
    role_arn: str = ""
    profile_arn: str = ""
    profile_id: str = ""


@dataclass
class ProfileAssociation:
    """An IAM instance profile association on an EC2 instance."""

    association_id: str
    instance_id: str
    profile_arn: str
    profile_id: str = ""
    state: str = "associated"

    @property
    def profile_name(self) -> str:
        """Profile name parsed from the ARN (last path segment)."""
        return self.profile_arn.rsplit("/", 1)[-1]


@dataclass
class RoleAttachmentResult:
    """Result of the role attachment stage."""

    outcome: RoleAttachmentOutcome
    binding: Optional[RoleBinding] = None
    profile_created: bool = False
    previous_association: Optional[ProfileAssociation] = None
    verified: Optional[bool] = None
    warnings: list[str] = field(default_factory=list)


@dataclass
class TaggingResult:
    """Result of the tagging and protection stage."""

    tags_applied: dict[str, str] = field(default_factory=dict)
    protection_enabled: bool = False
    current_tags: Optional[dict[str, str]] = None
    protection_verified: Optional[bool] = None
    warnings: list[str] = field(default_factory=list)


@dataclass
class HostnameResult:
    """Result of the hostname synchronization stage."""

    status: HostnameStatus
    target: str = ""
    address: Optional[str] = None
    observed_hostname: Optional[str] = None
    warnings: list[str] = field(default_factory=list)

    @property
    def updated(self) -> bool:
        """True only when the hostname write succeeded."""
        return self.status == HostnameStatus.UPDATED


@dataclass
class RebootResult:
    """Result of the reboot supervision stage."""

    state: RebootState
    elapsed: float = 0.0
    last_observed_state: Optional[LifecycleState] = None
    observed_hostname: Optional[str] = None
    hostname_matches: Optional[bool] = None
    warnings: list[str] = field(default_factory=list)


@dataclass
class WorkflowResult:
    """Aggregate result of one provisioning run."""

    instance_id: str
    role: Optional[RoleAttachmentResult] = None
    tagging: Optional[TaggingResult] = None
    hostname: Optional[HostnameResult] = None
    reboot: Optional[RebootResult] = None

    @property
    def warnings(self) -> list[str]:
        """All soft-failure warnings collected across stages."""
        collected: list[str] = []
        for stage in (self.role, self.tagging, self.hostname, self.reboot):
            if stage is not None:
                collected.extend(stage.warnings)
        return collected

    @property
    def degraded(self) -> bool:
        return bool(self.warnings)
