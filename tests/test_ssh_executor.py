"""Tests for the paramiko-backed SSH executor."""

import types
from unittest.mock import MagicMock, patch

import paramiko
import pytest

from hardener.remote.ssh_executor import (
    PROBE_COMMAND,
    CommandResult,
    SSHCredentials,
    SSHExecutor,
)

SSH_CLIENT = "hardener.remote.ssh_executor.paramiko.SSHClient"


class _FakeChannel:
    def __init__(self, rc=0):
        self._rc = rc

    def recv_exit_status(self):
        return self._rc


class _Buf:
    def __init__(self, s=""):
        self._s = s

    def read(self):
        return self._s.encode()


class FakeSSHClient:
    """Captures connect/exec_command calls and returns canned output."""

    def __init__(self, log, out="", err="", rc=0, connect_error=None):
        self.log = log
        self._out = out
        self._err = err
        self._rc = rc
        self._connect_error = connect_error

    def set_missing_host_key_policy(self, policy):
        self.log.append(("policy", type(policy).__name__))

    def connect(self, **kw):
        self.log.append(("connect", kw))
        if self._connect_error:
            raise self._connect_error

    def exec_command(self, cmd, timeout=None):
        self.log.append(("exec", cmd))
        self.log.append(("exec-timeout", timeout))
        stdout = _Buf(self._out)
        stdout.channel = _FakeChannel(self._rc)
        return types.SimpleNamespace(), stdout, _Buf(self._err)

    def close(self):
        self.log.append(("close",))


@pytest.fixture
def executor():
    ex = SSHExecutor(SSHCredentials(username="ubuntu", key_path="/keys/itop.pem"), connect_timeout=10)
    ex._pkey = MagicMock(spec=paramiko.PKey)
    return ex


def fake_client_factory(log, **kwargs):
    return MagicMock(side_effect=lambda: FakeSSHClient(log, **kwargs))


class TestSSHExecutorRun:
    """Tests for SSHExecutor.run."""

    def test_run_returns_output_and_closes(self, executor):
        log = []
        with patch(SSH_CLIENT, fake_client_factory(log, out="web-01\n", rc=0)):
            result = executor.run("203.0.113.10", "hostname")

        assert result == CommandResult(exit_code=0, stdout="web-01\n", stderr="")
        assert ("exec", "hostname") in log
        assert log[-1] == ("close",)

    def test_connect_options(self, executor):
        log = []
        with patch(SSH_CLIENT, fake_client_factory(log)):
            executor.run("203.0.113.10", "true", timeout=3)

        assert ("policy", "AutoAddPolicy") in log
        connect_kwargs = next(entry[1] for entry in log if entry[0] == "connect")
        assert connect_kwargs["hostname"] == "203.0.113.10"
        assert connect_kwargs["username"] == "ubuntu"
        assert connect_kwargs["port"] == 22
        assert connect_kwargs["timeout"] == 3
        assert connect_kwargs["allow_agent"] is False
        assert connect_kwargs["look_for_keys"] is False

    def test_sudo_wraps_command(self, executor):
        log = []
        with patch(SSH_CLIENT, fake_client_factory(log)):
            executor.run_privileged("203.0.113.10", "echo web-01 > /etc/hostname")

        assert ("exec", "sudo bash -c 'echo web-01 > /etc/hostname'") in log
        assert ("exec-timeout", 10) in log

    def test_nonzero_exit(self, executor):
        log = []
        with patch(SSH_CLIENT, fake_client_factory(log, err="denied", rc=1)):
            result = executor.run("203.0.113.10", "false")

        assert result.ok is False
        assert result.stderr == "denied"

    def test_connect_failure_closes_and_raises(self, executor):
        log = []
        error = paramiko.AuthenticationException("auth failed")
        with patch(SSH_CLIENT, fake_client_factory(log, connect_error=error)):
            with pytest.raises(paramiko.SSHException):
                executor.run("203.0.113.10", "hostname")

        assert log[-1] == ("close",)
        assert not any(entry[0] == "exec" for entry in log)


class TestSSHExecutorProbe:
    """Tests for probe and get_hostname."""

    def test_probe_success(self, executor):
        log = []
        with patch(SSH_CLIENT, fake_client_factory(log, out="SSH connection successful\n")):
            assert executor.probe("203.0.113.10") is True

        assert ("exec", PROBE_COMMAND) in log

    def test_probe_timeout_is_false(self, executor):
        with patch(SSH_CLIENT, fake_client_factory([], connect_error=TimeoutError("timed out"))):
            assert executor.probe("203.0.113.10", timeout=1) is False

    def test_probe_refused_is_false(self, executor):
        error = paramiko.ssh_exception.NoValidConnectionsError({("203.0.113.10", 22): OSError()})
        with patch(SSH_CLIENT, fake_client_factory([], connect_error=error)):
            assert executor.probe("203.0.113.10") is False

    def test_get_hostname(self, executor):
        with patch(SSH_CLIENT, fake_client_factory([], out="web-01\n")):
            assert executor.get_hostname("203.0.113.10") == "web-01"

    def test_get_hostname_failure_is_none(self, executor):
        with patch(SSH_CLIENT, fake_client_factory([], connect_error=OSError("unreachable"))):
            assert executor.get_hostname("203.0.113.10") is None

    def test_get_hostname_nonzero_is_none(self, executor):
        with patch(SSH_CLIENT, fake_client_factory([], rc=127)):
            assert executor.get_hostname("203.0.113.10") is None


class TestSSHExecutorKeyLoading:
    """Tests for private key loading."""

    def test_falls_through_key_types(self):
        rsa = MagicMock()
        rsa.from_private_key_file.side_effect = paramiko.SSHException("not rsa")
        ed25519 = MagicMock()
        ed25519.from_private_key_file.return_value = "PKEY"
        ex = SSHExecutor(SSHCredentials(username="ubuntu", key_path="/keys/id"))

        with patch.object(SSHExecutor, "KEY_CLASSES", (rsa, ed25519)):
            assert ex._load_key() == "PKEY"
            assert ex._load_key() == "PKEY"

        ed25519.from_private_key_file.assert_called_once_with("/keys/id")

    def test_unsupported_key_raises(self):
        rsa = MagicMock()
        rsa.from_private_key_file.side_effect = paramiko.SSHException("not rsa")
        ex = SSHExecutor(SSHCredentials(username="ubuntu", key_path="/keys/id"))

        with patch.object(SSHExecutor, "KEY_CLASSES", (rsa,)):
            with pytest.raises(paramiko.SSHException, match="Unsupported or encrypted"):
                ex._load_key()
