"""Fixed filesystem layout used by the bootstrap run."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

DEPLOY_KEY_NAME = "bootstrap_deploy_key"
CLONE_DIR = Path("/tmp/real-config")
PERSIST_SECRETS_DIR = Path("/mnt/persist/secrets")
PERSISTED_KEY_NAME = "deploy_key"


@dataclass(frozen=True, slots=True)
class BootstrapLayout:
    key_path: Path
    clone_dir: Path = CLONE_DIR
    secrets_dir: Path = PERSIST_SECRETS_DIR

    @classmethod
    def default(cls, home: Path | None = None) -> BootstrapLayout:
        base = home if home is not None else Path.home()
        return cls(key_path=base / ".ssh" / DEPLOY_KEY_NAME)

    @property
    def public_key_path(self) -> Path:
        return self.key_path.with_name(self.key_path.name + ".pub")

    @property
    def persisted_key_path(self) -> Path:
        return self.secrets_dir / PERSISTED_KEY_NAME
