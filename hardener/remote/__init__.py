"""Remote command execution on the target instance."""

from hardener.remote.ssh_executor import CommandResult, SSHCredentials, SSHExecutor

__all__ = ["CommandResult", "SSHCredentials", "SSHExecutor"]
