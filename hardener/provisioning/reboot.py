"""Supervised reboot after a hostname change.

State machine::

    AWAIT_CONFIRMATION --yes--> REBOOTING --ok--> POLLING --running after grace--> CONFIRMED
            |                       |                 |
            no                    error            budget spent
            v                       v                 v
         SKIPPED                 FAILED           TIMED_OUT

A "running" reading taken before the grace period has elapsed is ignored, since
the instance may not have gone down yet. The clock and sleep functions are
injected so tests can drive the machine without waiting.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from botocore.exceptions import ClientError

from hardener.models import LifecycleState, RebootResult, RebootState
from hardener.provisioning.confirmation import ConfirmationProvider
from hardener.provisioning.ec2_manager import EC2Manager
from hardener.provisioning.errors import ProvisioningError, error_message
from hardener.remote.ssh_executor import SSHExecutor
from hardener.utils.logging import log_section
from hardener.utils.security import LogSanitizer

logger = logging.getLogger(__name__)

STAGE = "reboot"


@dataclass
class RebootSession:
    """Ephemeral state of one supervised reboot."""

    instance_id: str
    address: str
    expected_hostname: str
    timeout: float
    state: RebootState = RebootState.AWAIT_CONFIRMATION
    elapsed: float = 0.0
    last_observed_state: Optional[LifecycleState] = None
    error: Optional[str] = None


class RebootSupervisor:
    """Reboots the instance and waits for it to come back."""

    def __init__(
        self,
        ec2_manager: EC2Manager,
        executor: SSHExecutor,
        confirmer: ConfirmationProvider,
        timeout: float = 300.0,
        poll_interval: float = 10.0,
        grace_period: float = 30.0,
        reboot_settle: float = 10.0,
        ssh_settle: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.ec2_manager = ec2_manager
        self.executor = executor
        self.confirmer = confirmer
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.grace_period = grace_period
        self.reboot_settle = reboot_settle
        self.ssh_settle = ssh_settle
        self._clock = clock
        self._sleep = sleep

        self._handlers: Dict[RebootState, Callable[[RebootSession], RebootState]] = {
            RebootState.AWAIT_CONFIRMATION: self._await_confirmation,
            RebootState.REBOOTING: self._request_reboot,
            RebootState.POLLING: self._poll,
        }

    def supervise(
        self, instance_id: str, address: str, expected_hostname: str
    ) -> RebootResult:
        """
        Run the state machine to a terminal state.

        Args:
            instance_id: EC2 instance ID
            address: Address used for the post-reboot hostname check
            expected_hostname: Hostname the instance should report after reboot

        Returns:
            RebootResult in state CONFIRMED, SKIPPED or TIMED_OUT

        Raises:
            ProvisioningError: If the reboot request fails (state FAILED)
        """
        session = RebootSession(
            instance_id=instance_id,
            address=address,
            expected_hostname=expected_hostname,
            timeout=self.timeout,
        )

        log_section("Hostname change requires a reboot to take full effect")
        while not session.state.is_terminal:
            previous = session.state
            session.state = self._handlers[previous](session)
            logger.debug(f"Reboot state {previous.value} -> {session.state.value}")

        result = RebootResult(
            state=session.state,
            elapsed=session.elapsed,
            last_observed_state=session.last_observed_state,
        )

        if session.state == RebootState.FAILED:
            raise ProvisioningError(
                STAGE,
                f"Failed to reboot instance: {session.error}. "
                f"Manual intervention may be needed.",
            )
        if session.state == RebootState.TIMED_OUT:
            message = (
                f"Timeout waiting for instance to restart after {session.elapsed:.0f}s; "
                f"please check the instance status manually"
            )
            result.warnings.append(message)
            logger.warning(message)
        elif session.state == RebootState.CONFIRMED:
            self._verify_hostname(session, result)

        return result

    def _await_confirmation(self, session: RebootSession) -> RebootState:
        if self.confirmer.confirm(f"Reboot instance {session.instance_id} now?"):
            return RebootState.REBOOTING
        logger.info("Reboot skipped. The new hostname is fully applied after the next reboot.")
        return RebootState.SKIPPED

    def _request_reboot(self, session: RebootSession) -> RebootState:
        logger.info(f"Rebooting instance {session.instance_id}...")
        try:
            self.ec2_manager.reboot_instance(session.instance_id)
        except ClientError as e:
            session.error = LogSanitizer.sanitize(error_message(e))
            logger.error(f"Reboot request failed: {session.error}")
            return RebootState.FAILED
        logger.info("Reboot initiated successfully")
        return RebootState.POLLING

    def _poll(self, session: RebootSession) -> RebootState:
        if self.reboot_settle > 0:
            logger.info("Waiting for instance to begin rebooting...")
            self._sleep(self.reboot_settle)

        logger.info(f"Waiting for instance to return to running (timeout: {session.timeout:.0f}s)...")
        started = self._clock()
        while True:
            session.elapsed = self._clock() - started
            if session.elapsed >= session.timeout:
                return RebootState.TIMED_OUT

            observed = self.ec2_manager.get_instance_state(session.instance_id)
            session.last_observed_state = observed
            logger.info(f"  Instance state: {observed.value} (elapsed: {session.elapsed:.0f}s)")

            if observed == LifecycleState.RUNNING and session.elapsed > self.grace_period:
                logger.info("Instance is running again")
                return RebootState.CONFIRMED

            self._sleep(self.poll_interval)

    def _verify_hostname(self, session: RebootSession, result: RebootResult) -> None:
        """Best-effort hostname check once SSH is back."""
        if self.ssh_settle > 0:
            logger.info(f"Waiting {self.ssh_settle:.0f}s for SSH to become available...")
            self._sleep(self.ssh_settle)

        logger.info("Verifying hostname after reboot...")
        try:
            observed = self.executor.get_hostname(session.address)
        except Exception as e:
            logger.debug(f"Post-reboot hostname check failed: {e}")
            observed = None

        result.observed_hostname = observed
        if observed is None:
            logger.info("Could not read hostname after reboot, skipping verification")
            return

        result.hostname_matches = observed == session.expected_hostname
        if result.hostname_matches:
            logger.info(f"Hostname verified after reboot: {observed}")
        else:
            message = (
                f"Hostname after reboot is '{observed}', expected '{session.expected_hostname}'"
            )
            result.warnings.append(message)
            logger.warning(message)
