"""Deploy key provisioning: idempotent generation and transient cleanup."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from nixboot.errors import KeyGenerationError
from nixboot.process import run_command

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DeployCredential:
    private_path: Path
    reused: bool = False

    @property
    def public_path(self) -> Path:
        return self.private_path.with_name(self.private_path.name + ".pub")

    def exists(self) -> bool:
        return self.private_path.is_file()

    def public_key(self) -> str:
        return self.public_path.read_text().strip()


class KeyGenerator(Protocol):
    def generate(self, algorithm: str, path: Path, passphrase: str, label: str) -> None:
        ...


class SshKeygen:
    """Key generator backed by ``ssh-keygen``."""

    def __init__(self, executable: str = "ssh-keygen") -> None:
        self._executable = executable

    def generate(self, algorithm: str, path: Path, passphrase: str, label: str) -> None:
        if path.exists():
            return
        argv = [
            self._executable,
            "-q",
            "-t", algorithm,
            "-f", str(path),
            "-N", passphrase,
            "-C", label,
        ]
        try:
            result = run_command(argv)
        except OSError as exc:
            raise KeyGenerationError(f"{self._executable} unavailable: {exc}") from exc
        if not result.ok:
            detail = result.stderr.strip() or f"exit code {result.exit_code}"
            raise KeyGenerationError(f"{self._executable} failed: {detail}")


def provision_credential(
    key_path: Path,
    generator: KeyGenerator,
    *,
    algorithm: str = "ed25519",
    label: str = "nixos-bootstrap-key",
) -> DeployCredential:
    """Return the deploy key at *key_path*, generating it only if absent.

    An existing private key is never regenerated or overwritten. The key
    has no passphrase so later unattended fetches can use it.
    """
    key_path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
    if key_path.is_file():
        logger.info("Reusing existing deploy key at %s", key_path)
        credential = DeployCredential(private_path=key_path, reused=True)
        if not credential.public_path.is_file():
            raise KeyGenerationError(
                f"existing deploy key {key_path} has no public half "
                f"({credential.public_path}); remove it to generate a fresh pair"
            )
        return credential

    logger.info("Generating %s deploy key at %s", algorithm, key_path)
    generator.generate(algorithm, key_path, "", label)
    credential = DeployCredential(private_path=key_path)
    if not credential.exists() or not credential.public_path.is_file():
        raise KeyGenerationError(f"key generation reported success but {key_path} is missing")
    return credential


def remove_transient_credential(credential: DeployCredential) -> list[Path]:
    """Delete both halves of the transient keypair, returning what was removed.

    Runs after the system has already switched, so a file that cannot be
    deleted is logged and left for the operator rather than raised.
    """
    removed: list[Path] = []
    for path in (credential.private_path, credential.public_path):
        if not path.exists():
            continue
        try:
            path.unlink()
        except OSError as exc:
            logger.warning("Could not remove transient deploy key file %s: %s", path, exc)
            continue
        removed.append(path)
    logger.info("Removed transient deploy key files: %s", ", ".join(str(p) for p in removed))
    return removed
