import logging
from pathlib import Path

import pytest
import structlog

from nixboot.config import get_settings
from nixboot.layout import BootstrapLayout
from nixboot.logging import clear_context
from nixboot.process import CommandResult

_NIXBOOT_ENV = (
    "APP_ENV",
    "LOG_LEVEL",
    "LOG_JSON",
    "NIXBOOT_GIT_HOST",
    "NIXBOOT_GIT_USER",
    "NIXBOOT_WEB_SCHEME",
    "NIXBOOT_KEY_ALGORITHM",
    "NIXBOOT_KEY_LABEL",
    "NIXBOOT_CONFIG_FILE",
    "NIXBOOT_HOSTNAME_KEY",
    "NIXBOOT_BUILD_COMMAND",
    "NIXBOOT_PRIVILEGE_COMMAND",
    "NIXBOOT_PROBE_TIMEOUT_SECONDS",
)


@pytest.fixture(autouse=True)
def test_env(tmp_path: Path, monkeypatch):
    for key in _NIXBOOT_ENV:
        monkeypatch.delenv(key, raising=False)
    # Keep a developer's .env out of the settings under test.
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
    clear_context()
    logging.getLogger().handlers.clear()
    structlog.reset_defaults()


def _result(exit_code: int = 0, stderr: str = "") -> CommandResult:
    return CommandResult(
        command="fake",
        exit_code=exit_code,
        ok=exit_code == 0,
        stdout="",
        stderr=stderr,
        duration_ms=0,
    )


class FakeOperator:
    """Scripted operator: answers prompts from a queue and records output."""

    def __init__(self, answers: list[str] | None = None) -> None:
        self.answers = list(answers or [])
        self.events: list[tuple[str, str]] = []
        self.acks = 0

    def _record(self, kind: str, message: str) -> None:
        self.events.append((kind, message))

    def info(self, message: str) -> None:
        self._record("info", message)

    def warn(self, message: str) -> None:
        self._record("warn", message)

    def success(self, message: str) -> None:
        self._record("success", message)

    def blank(self) -> None:
        self._record("blank", "")

    def link(self, url: str) -> None:
        self._record("link", url)

    def block(self, lines: list[str]) -> None:
        self._record("block", "\n".join(lines))

    def ask(self, question: str) -> str:
        self._record("ask", question)
        if not self.answers:
            raise AssertionError("operator was asked more questions than scripted")
        return self.answers.pop(0)

    def acknowledge(self, message: str) -> None:
        self._record("ack", message)
        self.acks += 1

    def messages(self, kind: str) -> list[str]:
        return [message for event_kind, message in self.events if event_kind == kind]


class FakeKeyGenerator:
    def __init__(self, fail: bool = False) -> None:
        self.calls: list[tuple[str, Path, str, str]] = []
        self.fail = fail

    def generate(self, algorithm: str, path: Path, passphrase: str, label: str) -> None:
        self.calls.append((algorithm, path, passphrase, label))
        if self.fail:
            from nixboot.errors import KeyGenerationError

            raise KeyGenerationError("ssh-keygen failed: simulated")
        path.write_text(f"PRIVATE {algorithm} {len(self.calls)}\n")
        path.with_name(path.name + ".pub").write_text(f"ssh-{algorithm} AAAAfake {label}\n")


class FakeTransport:
    """Probe answers come from *probe_outcomes*; clone writes *files*."""

    def __init__(
        self,
        probe_outcomes: list[bool] | None = None,
        files: dict[str, str] | None = None,
        clone_exit_code: int = 0,
    ) -> None:
        self.probe_outcomes = list(probe_outcomes or [True])
        self.files = files or {}
        self.clone_exit_code = clone_exit_code
        self.probes = 0
        self.clones: list[Path] = []
        self.identity: Path | None = None

    def probe(self, reference) -> CommandResult:
        self.probes += 1
        ok = self.probe_outcomes.pop(0)
        return _result(0 if ok else 128, "" if ok else "Permission denied (publickey).")

    def clone(self, reference, destination: Path) -> CommandResult:
        self.clones.append(destination)
        if self.clone_exit_code != 0:
            return _result(self.clone_exit_code)
        destination.mkdir(parents=True)
        for name, content in self.files.items():
            (destination / name).write_text(content)
        return _result(0)


class FakeBuilder:
    def __init__(self, exit_code: int = 0) -> None:
        self.exit_code = exit_code
        self.builds: list[tuple[Path, str]] = []

    def command(self, config_dir: Path, target: str) -> list[str]:
        return ["nixos-rebuild", "switch", "--flake", f"{config_dir}#{target}"]

    def build(self, config_dir: Path, target: str) -> CommandResult:
        self.builds.append((config_dir, target))
        return _result(self.exit_code)


@pytest.fixture
def layout(tmp_path: Path) -> BootstrapLayout:
    return BootstrapLayout(
        key_path=tmp_path / "home" / ".ssh" / "bootstrap_deploy_key",
        clone_dir=tmp_path / "tmp" / "real-config",
        secrets_dir=tmp_path / "mnt" / "persist" / "secrets",
    )


@pytest.fixture
def make_result():
    return _result


@pytest.fixture
def operator_factory():
    return FakeOperator


@pytest.fixture
def key_generator() -> FakeKeyGenerator:
    return FakeKeyGenerator()


@pytest.fixture
def transport_factory():
    return FakeTransport


@pytest.fixture
def builder_factory():
    return FakeBuilder
