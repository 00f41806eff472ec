"""Handoff of a provisioned server to an external bootstrap command."""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Protocol

from provisioner.config import ProvisionSettings
from provisioner.errors import BootstrapError
from provisioner.providers.base import CloudProvider, ProvisioningResult

logger = logging.getLogger(__name__)

CommandRunner = Callable[[Sequence[str], str | None], subprocess.CompletedProcess[str]]

_REDACTED = "********"


def _run_local_command(
    command: Sequence[str],
    stdin_data: str | None,
) -> subprocess.CompletedProcess[str]:
    return subprocess.run(
        list(command),
        input=stdin_data,
        text=True,
        capture_output=True,
        check=False,
    )


@dataclass(frozen=True, slots=True)
class BootstrapTarget:
    address: str
    protocol: str
    node_name: str
    ssh_user: str = "root"
    ssh_port: int = 22
    identity_file: str | None = None
    ssh_key_name: str | None = None
    password: str | None = None
    winrm_user: str = "Administrator"


def resolve_bootstrap_password(
    *,
    settings: ProvisionSettings,
    provider: CloudProvider,
    result: ProvisioningResult,
) -> str | None:
    """Pick the credential handed to bootstrap.

    WinRM always uses the configured WinRM password. For SSH a configured key
    pair means no password; otherwise an explicit SSH password wins over the
    one generated by the provider.
    """
    if settings.bootstrap_protocol == "winrm":
        return settings.winrm_password
    if settings.ssh_key_name:
        return None
    if settings.ssh_password:
        return settings.ssh_password
    return provider.get_generated_password(result.instance_id)


def build_bootstrap_target(
    *,
    address: str,
    settings: ProvisionSettings,
    provider: CloudProvider,
    result: ProvisioningResult,
) -> BootstrapTarget:
    return BootstrapTarget(
        address=address,
        protocol=settings.bootstrap_protocol or "ssh",
        node_name=result.name,
        ssh_user=settings.ssh_user,
        ssh_port=settings.ssh_port,
        identity_file=settings.identity_file,
        ssh_key_name=settings.ssh_key_name,
        password=resolve_bootstrap_password(
            settings=settings,
            provider=provider,
            result=result,
        ),
        winrm_user=settings.winrm_user,
    )


class Bootstrapper(Protocol):
    def bootstrap(self, target: BootstrapTarget) -> None:
        """Configure the server reachable at target.address for management."""


class NullBootstrapper:
    def bootstrap(self, target: BootstrapTarget) -> None:
        logger.debug("bootstrap handoff skipped for address=%s", target.address)


class CommandBootstrapper:
    def __init__(
        self,
        *,
        command: str,
        command_runner: CommandRunner = _run_local_command,
    ) -> None:
        base_command = shlex.split(command)
        if not base_command:
            raise ValueError("bootstrap command cannot be empty")
        self._base_command = tuple(base_command)
        self._command_runner = command_runner

    def render_command(self, target: BootstrapTarget) -> list[str]:
        argv = [*self._base_command, target.address, "--node-name", target.node_name]
        if target.protocol == "winrm":
            argv.extend(["--connection-protocol", "winrm"])
            argv.extend(["--connection-user", target.winrm_user])
        else:
            argv.extend(["--connection-protocol", "ssh"])
            argv.extend(["--connection-user", target.ssh_user])
            argv.extend(["--connection-port", str(target.ssh_port)])
            if target.identity_file:
                argv.extend(["--ssh-identity-file", os.path.expanduser(target.identity_file)])
        if target.password:
            argv.extend(["--connection-password", target.password])
        return argv

    def bootstrap(self, target: BootstrapTarget) -> None:
        argv = self.render_command(target)
        logger.debug("running bootstrap command %s", _redact(argv, target.password))
        try:
            completed = self._command_runner(argv, None)
        except OSError as exc:
            raise BootstrapError(f"failed to start bootstrap command: {exc}") from exc

        if completed.returncode != 0:
            detail = (completed.stderr or completed.stdout or "").strip()
            message = f"bootstrap command exited with status={completed.returncode}"
            if detail:
                message = f"{message}; output={detail[:240]}"
            raise BootstrapError(message)


def create_bootstrapper(settings: ProvisionSettings) -> Bootstrapper:
    if not settings.bootstrap_command:
        return NullBootstrapper()
    return CommandBootstrapper(command=settings.bootstrap_command)


def _redact(argv: Sequence[str], password: str | None) -> str:
    if not password:
        return shlex.join(argv)
    return shlex.join(_REDACTED if item == password else item for item in argv)
