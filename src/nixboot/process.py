"""External process execution and the elevated-privilege capability."""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CommandResult:
    command: str
    exit_code: int
    ok: bool
    stdout: str
    stderr: str
    duration_ms: int


def _to_text(value: str | bytes | None) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="ignore")
    return value


def run_command(
    argv: Sequence[str],
    *,
    env: Mapping[str, str] | None = None,
    capture: bool = True,
    timeout: float | None = None,
) -> CommandResult:
    """Run *argv* to completion and report the outcome.

    A non-zero exit is returned, not raised. A missing executable raises
    OSError. With ``capture=False`` output goes straight to the terminal.
    """
    command = shlex.join(str(arg) for arg in argv)
    logger.debug("Run: %s", command)
    merged_env = None
    if env is not None:
        merged_env = os.environ.copy()
        merged_env.update(env)
    started = time.monotonic()
    try:
        proc = subprocess.run(
            list(argv),
            env=merged_env,
            capture_output=capture,
            stdin=subprocess.DEVNULL if capture else None,
            text=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as exc:
        duration_ms = int((time.monotonic() - started) * 1000)
        return CommandResult(
            command=command,
            exit_code=-1,
            ok=False,
            stdout=_to_text(exc.stdout),
            stderr=_to_text(exc.stderr) or f"timed out after {timeout}s",
            duration_ms=duration_ms,
        )
    duration_ms = int((time.monotonic() - started) * 1000)
    result = CommandResult(
        command=command,
        exit_code=proc.returncode,
        ok=proc.returncode == 0,
        stdout=_to_text(proc.stdout),
        stderr=_to_text(proc.stderr),
        duration_ms=duration_ms,
    )
    logger.debug("Exit %d after %dms: %s", result.exit_code, duration_ms, command)
    return result


@dataclass(frozen=True, slots=True)
class Privilege:
    """Capability to run commands in an elevated execution context.

    Stages that touch paths owned by another account take one of these
    explicitly. ``prefix`` is prepended to every elevated command; it is
    empty when the process already runs as root.
    """

    prefix: tuple[str, ...] = ("sudo",)

    @classmethod
    def detect(cls, command: str = "sudo") -> Privilege:
        if os.geteuid() == 0 or not command.strip():
            return cls(prefix=())
        return cls(prefix=tuple(shlex.split(command)))

    @property
    def is_root(self) -> bool:
        return not self.prefix

    def wrap(self, argv: Sequence[str]) -> list[str]:
        return [*self.prefix, *(str(arg) for arg in argv)]

    def run(
        self,
        argv: Sequence[str],
        *,
        capture: bool = True,
        timeout: float | None = None,
    ) -> CommandResult:
        return run_command(self.wrap(argv), capture=capture, timeout=timeout)
