"""Running shell commands on a cluster node, with retries and error wrapping."""

import base64
import logging
import os
import sys
from dataclasses import dataclass, field
from typing import Sequence, Tuple

__all__ = [
    "CommandError",
    "CommandRunner",
    "DeployContext",
    "write_file_command",
    "run_or_raise",
]

logger = logging.getLogger(__name__)


class CommandError(Exception):
    """A command failed; ``output`` holds whatever it printed."""

    def __init__(self, message, command="", output=""):
        super().__init__(message)
        self.command = command
        self.output = output


class CommandRunner:
    """Runs commands on one node.

    ``executor(command)`` returns the command's output and raises
    :class:`CommandError` when the command fails. ``copier(src, dst)``
    transfers a local file to the node.
    """

    def __init__(self, executor, copier=None, out=None):
        self._executor = executor
        self._copier = copier
        self._out = out

    def execute(self, command, retries=1, print_output=False):
        """Run ``command``, trying up to ``retries`` times (at least once)."""
        attempts = max(1, retries)
        failure = None
        for attempt in range(1, attempts + 1):
            try:
                output = self._executor(command)
            except CommandError as err:
                failure = err
                logger.debug("attempt %d/%d failed: %s", attempt, attempts, command)
                continue
            if print_output and output:
                stream = self._out if self._out is not None else sys.stdout
                stream.write(output if output.endswith("\n") else output + "\n")
            return output
        raise failure

    def copy_file(self, src, dst):
        """Copy the local file ``src`` to ``dst`` on the node."""
        if self._copier is None:
            raise CommandError(f"cannot copy {src} to {dst}: no file transfer available")
        try:
            self._copier(src, dst)
        except OSError as err:
            raise CommandError(f"failed to copy {src} to {dst}: {err}") from err


@dataclass
class DeployContext:
    """What the KubeSphere deployment needs to know about the cluster.

    ``etcd_nodes`` holds ``(name, internal_address)`` pairs.
    """

    kubesphere_version: str
    etcd_nodes: Sequence[Tuple[str, str]]
    work_dir: str = ""
    kubernetes_version: str = ""
    arch: str = "amd64"
    private_registry: str = ""
    configurations: str = ""
    zone: str = field(default_factory=lambda: os.environ.get("KKZONE", ""))
    status_attempts: int = 180
    status_interval: float = 10.0


def write_file_command(content, path, append=False):
    """Build a command that writes ``content`` to ``path`` through base64."""
    encoded = base64.b64encode(content.encode()).decode()
    redirect = ">>" if append else ">"
    return f'sudo -E /bin/sh -c "echo {encoded} | base64 -d {redirect} {path}"'


def run_or_raise(runner, command, retries=1, print_output=False, message="Command failed"):
    """Run ``command``; on failure raise a :class:`CommandError` led by ``message``."""
    try:
        return runner.execute(command, retries, print_output)
    except CommandError as err:
        raise CommandError(f"{message}: {err}", command=err.command or command, output=err.output) from err