"""Git transport pinned to the deploy key."""

from __future__ import annotations

import logging
import shlex
from pathlib import Path

from nixboot.process import CommandResult, run_command
from nixboot.repository import RepositoryReference

logger = logging.getLogger(__name__)


def ssh_command(identity: Path) -> str:
    """SSH invocation that offers only *identity* and pins unknown hosts on first use."""
    return shlex.join([
        "ssh",
        "-i", str(identity),
        "-o", "IdentitiesOnly=yes",
        "-o", "StrictHostKeyChecking=accept-new",
    ])


class GitTransport:
    def __init__(
        self,
        identity: Path,
        *,
        executable: str = "git",
        probe_timeout_seconds: float | None = 60,
    ) -> None:
        self.identity = identity
        self._executable = executable
        self._probe_timeout = probe_timeout_seconds

    @property
    def env(self) -> dict[str, str]:
        # GIT_TERMINAL_PROMPT=0 keeps a failed probe from asking for a password.
        return {
            "GIT_SSH_COMMAND": ssh_command(self.identity),
            "GIT_TERMINAL_PROMPT": "0",
        }

    def probe(self, reference: RepositoryReference) -> CommandResult:
        result = run_command(
            [self._executable, "ls-remote", reference.transport_url],
            env=self.env,
            timeout=self._probe_timeout,
        )
        if not result.ok:
            logger.info(
                "Probe of %s failed (exit %d): %s",
                reference.transport_url,
                result.exit_code,
                result.stderr.strip(),
            )
        return result

    def clone(self, reference: RepositoryReference, destination: Path) -> CommandResult:
        return run_command(
            [self._executable, "clone", reference.transport_url, str(destination)],
            env=self.env,
            capture=False,
        )
