"""Remote command execution over SSH.

Each call opens its own connection, runs one command and closes it, the way
``ssh user@host cmd`` does. Authentication uses the configured private key
only; agent forwarding, key discovery and password prompts are disabled so a
call never blocks on input.
"""

import logging
import shlex
from dataclasses import dataclass
from typing import Optional

import paramiko

logger = logging.getLogger(__name__)

DEFAULT_CONNECT_TIMEOUT = 10.0
PROBE_COMMAND = "echo 'SSH connection successful'"


@dataclass
class SSHCredentials:
    """Login user and private key for the target instance."""

    username: str
    key_path: str
    port: int = 22


@dataclass
class CommandResult:
    """Exit code and captured output of a remote command."""

    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class SSHExecutor:
    """Runs commands on a host over SSH with a private key."""

    KEY_CLASSES = (paramiko.RSAKey, paramiko.Ed25519Key, paramiko.ECDSAKey)

    def __init__(
        self,
        credentials: SSHCredentials,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
    ):
        self.credentials = credentials
        self.connect_timeout = connect_timeout
        self._pkey: Optional[paramiko.PKey] = None

    def _load_key(self) -> paramiko.PKey:
        if self._pkey is not None:
            return self._pkey

        last_error: Optional[Exception] = None
        for key_cls in self.KEY_CLASSES:
            try:
                self._pkey = key_cls.from_private_key_file(self.credentials.key_path)
                return self._pkey
            except paramiko.SSHException as e:
                last_error = e
                continue
        raise paramiko.SSHException(
            f"Unsupported or encrypted private key {self.credentials.key_path}: {last_error}"
        )

    def _connect(self, address: str, timeout: Optional[float] = None) -> paramiko.SSHClient:
        connect_timeout = timeout if timeout is not None else self.connect_timeout
        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        try:
            client.connect(
                hostname=address,
                port=self.credentials.port,
                username=self.credentials.username,
                pkey=self._load_key(),
                timeout=connect_timeout,
                banner_timeout=connect_timeout,
                auth_timeout=connect_timeout,
                allow_agent=False,
                look_for_keys=False,
            )
        except Exception:
            client.close()
            raise
        return client

    def run(
        self,
        address: str,
        command: str,
        *,
        sudo: bool = False,
        timeout: Optional[float] = None,
    ) -> CommandResult:
        """
        Run a command on the host.

        Args:
            address: Host address
            command: Shell command
            sudo: Run the command under ``sudo bash -c``
            timeout: Connect and channel timeout in seconds

        Returns:
            CommandResult with exit code and captured output

        Raises:
            paramiko.SSHException, OSError: When the connection fails
        """
        if sudo:
            command = f"sudo bash -c {shlex.quote(command)}"

        logger.debug(f"Running on {address}: {command}")
        client = self._connect(address, timeout)
        try:
            _, stdout, stderr = client.exec_command(command, timeout=timeout)
            out = stdout.read().decode(errors="replace")
            err = stderr.read().decode(errors="replace")
            rc = stdout.channel.recv_exit_status()
        finally:
            client.close()

        logger.debug(f"Exit code {rc} from {address}")
        return CommandResult(exit_code=rc, stdout=out, stderr=err)

    def run_privileged(self, address: str, command: str) -> CommandResult:
        """Run a command as root through sudo."""
        return self.run(address, command, sudo=True, timeout=self.connect_timeout)

    def probe(self, address: str, timeout: Optional[float] = None) -> bool:
        """
        Check that the host accepts an SSH session and runs a command.

        Returns:
            True if reachable, False otherwise. Never raises for connection errors.
        """
        try:
            result = self.run(address, PROBE_COMMAND, timeout=timeout or self.connect_timeout)
        except (paramiko.SSHException, OSError) as e:
            logger.debug(f"SSH probe of {address} failed: {e}")
            return False
        if result.ok:
            logger.info(result.stdout.strip() or "SSH connection successful")
        return result.ok

    def get_hostname(self, address: str) -> Optional[str]:
        """Read the live hostname, or None if it cannot be read."""
        try:
            result = self.run(address, "hostname", timeout=self.connect_timeout)
        except (paramiko.SSHException, OSError) as e:
            logger.debug(f"Could not read hostname from {address}: {e}")
            return None
        if not result.ok:
            return None
        return result.stdout.strip()
