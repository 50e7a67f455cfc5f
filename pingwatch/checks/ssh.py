"""SSH checker — run a command on a remote host and compare its exit code.

The command is either given inline (``command``) or read once, at
construction, from a local script (``command_file``). Each check opens a
new SSH connection and closes it when done.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path

import paramiko
from pydantic import Field, field_validator, model_validator

from pingwatch.checks.base import Checker, CheckerError, CheckPayload, register_checker
from pingwatch.endpoints.durations import Duration, format_duration
from pingwatch.endpoints.registry import valid_host, valid_login_name, valid_port
from pingwatch.engine.models import CheckOutcome

logger = logging.getLogger(__name__)

DEFAULT_SSH_TIMEOUT = 30.0


class SSHAuth(CheckPayload):
    username: str
    password: str | None = None
    key: str | None = None  # path to a private key file
    agent: bool = False

    @field_validator("username")
    @classmethod
    def check_username(cls, v: str) -> str:
        if not valid_login_name(v):
            raise ValueError(f"illegal username: '{v}'")
        return v

    @model_validator(mode="after")
    def check_auth_method(self) -> SSHAuth:
        if self.key is None and self.password is None and not self.agent:
            raise ValueError(
                "no auth method given (at least one of password, key, or agent auth must be specified)"
            )
        return self


class SSHExpect(CheckPayload):
    exit_code: int = Field(default=0, alias="exitCode")

    @field_validator("exit_code")
    @classmethod
    def check_exit_code(cls, v: int) -> int:
        if not 0 <= v <= 255:
            raise ValueError("exit_code must be in the range [0,255]")
        return v


class SSHCheck(CheckPayload):
    host: str
    port: int = 22
    auth: SSHAuth
    command: str = ""
    command_file: str = Field(default="", alias="commandFile")
    expect: SSHExpect = Field(default_factory=SSHExpect)
    timeout: Duration = DEFAULT_SSH_TIMEOUT

    @field_validator("host")
    @classmethod
    def check_host(cls, v: str) -> str:
        if not valid_host(v):
            raise ValueError(f"illegal host: '{v}'")
        return v

    @field_validator("port")
    @classmethod
    def check_port(cls, v: int) -> int:
        if not valid_port(v):
            raise ValueError(f"illegal port: {v}")
        return v

    @model_validator(mode="after")
    def check_one_command(self) -> SSHCheck:
        if not self.command and not self.command_file:
            raise ValueError("neither command nor command_file given")
        if self.command and self.command_file:
            raise ValueError("only one of command and command_file is allowed, not both")
        return self


@register_checker
class SSHChecker(Checker):
    """Runs a command over SSH; OK when the exit code matches the expected one."""

    type_name = "ssh"
    payload_model = SSHCheck

    def __init__(self, check: SSHCheck) -> None:
        self.config = check
        self.command = _load_command(check)
        if check.auth.key and not Path(check.auth.key).is_file():
            raise CheckerError(f"ssh checker: key file not found: {check.auth.key}")

    def describe(self) -> str:
        return f"ssh {self.config.auth.username}@{self.config.host}:{self.config.port}"

    def check(self) -> CheckOutcome:
        try:
            exit_code, output = self._run()
        except (paramiko.SSHException, OSError) as e:
            return CheckOutcome.nok(f"check failed: {type(e).__name__}: {e}")

        expected = self.config.expect.exit_code
        if exit_code != expected:
            return CheckOutcome.nok(
                f"expected exit code ({expected}) differs from actual ({exit_code})",
                output,
            )
        return CheckOutcome.ok(output)

    def _run(self) -> tuple[int, bytes]:
        conf = self.config
        deadline = time.monotonic() + conf.timeout
        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        try:
            logger.debug("Connecting %s@%s:%d ...", conf.auth.username, conf.host, conf.port)
            client.connect(
                hostname=conf.host,
                port=conf.port,
                username=conf.auth.username,
                password=conf.auth.password,
                key_filename=conf.auth.key,
                allow_agent=conf.auth.agent,
                look_for_keys=False,
                timeout=conf.timeout,
                banner_timeout=conf.timeout,
                auth_timeout=conf.timeout,
            )
            channel = client.get_transport().open_session(timeout=conf.timeout)
            channel.set_combine_stderr(True)
            channel.exec_command(self.command)

            # the timeout covers the whole command, not each read
            chunks = []
            while True:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise TimeoutError(f"command did not finish within {format_duration(conf.timeout)}")
                channel.settimeout(remaining)
                data = channel.recv(32768)
                if not data:
                    break
                chunks.append(data)
            exit_code = channel.recv_exit_status()
            output = b"".join(chunks)
            logger.debug("ssh: exit status %d, %d bytes of output", exit_code, len(output))
            return exit_code, output
        finally:
            client.close()


def _load_command(check: SSHCheck) -> str:
    if check.command:
        return check.command
    try:
        return Path(check.command_file).read_text(encoding="utf-8")
    except OSError as e:
        raise CheckerError(f"ssh checker: command file: {e}") from e
