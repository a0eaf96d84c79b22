"""Declarative system build invoked by the pivot."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from nixboot.process import CommandResult, Privilege


class SystemBuilder(Protocol):
    def command(self, config_dir: Path, target: str) -> list[str]:
        ...

    def build(self, config_dir: Path, target: str) -> CommandResult:
        ...


class NixosRebuild:
    """``nixos-rebuild switch --flake DIR#TARGET`` under elevated privilege."""

    def __init__(self, privilege: Privilege, executable: str = "nixos-rebuild") -> None:
        self._privilege = privilege
        self._executable = executable

    def _argv(self, config_dir: Path, target: str) -> list[str]:
        return [self._executable, "switch", "--flake", f"{config_dir}#{target}"]

    def command(self, config_dir: Path, target: str) -> list[str]:
        return self._privilege.wrap(self._argv(config_dir, target))

    def build(self, config_dir: Path, target: str) -> CommandResult:
        # Output is streamed to the terminal; the build may run for a long time.
        return self._privilege.run(self._argv(config_dir, target), capture=False)
