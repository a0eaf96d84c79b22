"""Bootstrap pipeline: the eight ordered stages and their orchestration.

Each stage is a plain function taking its collaborators explicitly. Fatal
conditions raise a BootstrapError subclass and nothing after the raising
stage runs. The only loop that survives a failure is the connectivity
check, and it only moves on after the operator acknowledges.
"""

from __future__ import annotations

import logging
import shlex
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from nixboot.build import NixosRebuild, SystemBuilder
from nixboot.config import Settings
from nixboot.credential import (
    DeployCredential,
    KeyGenerator,
    SshKeygen,
    provision_credential,
    remove_transient_credential,
)
from nixboot.errors import (
    BuildError,
    ConnectivityError,
    FetchError,
    InvalidReferenceError,
    PersistError,
)
from nixboot.git import GitTransport
from nixboot.layout import BootstrapLayout
from nixboot.logging import bind_context
from nixboot.process import Privilege
from nixboot.repository import (
    RepositoryReference,
    deploy_keys_url,
    parse_repository_reference,
)
from nixboot.target import resolve_target

logger = logging.getLogger(__name__)

REFERENCE_QUESTION = "Please enter your GitHub repository (e.g., username/repo): "
INVALID_REFERENCE_WARNING = "Invalid format. Please use the format 'username/repo'."
REGISTERED_ACK = "Press [Enter] after you have added and saved the key on GitHub..."
RETRY_ACK = "Press [Enter] to try again..."
KEY_BEGIN_MARKER = "--- COPY THE KEY BELOW AND PASTE IT ON THAT PAGE ---"
KEY_END_MARKER = "--- END OF KEY ---"


class Operator(Protocol):
    def info(self, message: str) -> None: ...

    def warn(self, message: str) -> None: ...

    def success(self, message: str) -> None: ...

    def blank(self) -> None: ...

    def link(self, url: str) -> None: ...

    def block(self, lines: list[str]) -> None: ...

    def ask(self, question: str) -> str: ...

    def acknowledge(self, message: str) -> None: ...


@dataclass(slots=True)
class StageResult:
    name: str
    detail: str


@dataclass(slots=True)
class BootstrapReport:
    reference: RepositoryReference | None = None
    credential: DeployCredential | None = None
    target: str = ""
    probe_attempts: int = 0
    stages: list[StageResult] = field(default_factory=list)

    def record(self, name: str, detail: str) -> None:
        self.stages.append(StageResult(name=name, detail=detail))
        logger.info("bootstrap.%s.done: %s", name, detail)


# ---------------------------------------------------------------------------
# Stages
# ---------------------------------------------------------------------------


def resolve_input(
    operator: Operator,
    *,
    initial: str | None = None,
    host: str = "github.com",
    ssh_user: str = "git",
) -> RepositoryReference:
    """Prompt until the operator supplies a valid repository reference."""
    candidate = initial
    while True:
        if candidate is None:
            candidate = operator.ask(REFERENCE_QUESTION)
        try:
            reference = parse_repository_reference(candidate, host=host, ssh_user=ssh_user)
        except InvalidReferenceError:
            logger.info("Rejected repository reference %r", candidate)
            operator.warn(INVALID_REFERENCE_WARNING)
            candidate = None
            continue
        operator.info(f"Using repository URL: {reference.transport_url}")
        return reference


def provision(
    operator: Operator,
    key_path: Path,
    generator: KeyGenerator,
    *,
    algorithm: str = "ed25519",
    label: str = "nixos-bootstrap-key",
) -> DeployCredential:
    if key_path.is_file():
        operator.info(f"Reusing existing deploy key found at {key_path}")
    else:
        operator.info("Generating a new read-only deploy key...")
    credential = provision_credential(key_path, generator, algorithm=algorithm, label=label)
    if not credential.reused:
        operator.success(f"New deploy key generated at {key_path}")
    return credential


def registration_gate(
    operator: Operator,
    reference: RepositoryReference,
    credential: DeployCredential,
    *,
    scheme: str = "https",
) -> None:
    operator.info("Please add the following public key to your GitHub repository's Deploy Keys.")
    operator.warn("IMPORTANT: Do NOT check 'Allow write access'. This key should be read-only.")
    operator.blank()
    operator.info("Click this link to go directly to the Deploy Keys page:")
    operator.link(deploy_keys_url(reference, scheme=scheme))
    operator.blank()
    operator.block([KEY_BEGIN_MARKER, credential.public_key(), KEY_END_MARKER])
    operator.blank()
    operator.acknowledge(REGISTERED_ACK)


def verify_connectivity(
    operator: Operator,
    transport: GitTransport,
    reference: RepositoryReference,
) -> int:
    """Probe until the remote answers; every retry waits on the operator.

    Returns the number of probe attempts. There is no attempt limit and no
    sleep between attempts.
    """
    operator.info("Testing connection to GitHub... (This may take a moment)")
    attempts = 0
    while True:
        attempts += 1
        try:
            result = transport.probe(reference)
        except OSError as exc:
            # No operator action can fix a missing git binary.
            raise ConnectivityError(f"git unavailable: {exc}", retryable=False) from exc
        if result.ok:
            break
        logger.warning("Connectivity probe %d failed for %s", attempts, reference.slug)
        operator.warn("Connection failed. Please ensure you have correctly added the key and saved it.")
        operator.acknowledge(RETRY_ACK)
    operator.success("Connection successful!")
    return attempts


def fetch_configuration(
    operator: Operator,
    transport: GitTransport,
    reference: RepositoryReference,
    destination: Path,
    privilege: Privilege,
) -> Path:
    operator.info("Cloning your real configuration to a temporary location...")
    # A previous aborted run may have left this behind, possibly root-owned.
    removal = privilege.run(["rm", "-rf", str(destination)])
    if not removal.ok:
        raise FetchError(
            f"could not remove stale {destination}: "
            f"{removal.stderr.strip() or f'exit code {removal.exit_code}'}"
        )
    try:
        result = transport.clone(reference, destination)
    except OSError as exc:
        raise FetchError(f"git unavailable: {exc}") from exc
    if not result.ok:
        raise FetchError(
            f"git clone of {reference.transport_url} into {destination} failed "
            f"(exit code {result.exit_code})"
        )
    return destination


def persist_secret(
    operator: Operator,
    credential: DeployCredential,
    layout: BootstrapLayout,
    privilege: Privilege,
) -> Path:
    operator.info("Placing the permanent deploy key onto the persistent storage...")
    final_path = layout.persisted_key_path
    _run_persist_step(privilege, ["mkdir", "-p", str(layout.secrets_dir)])
    # install creates the copy at 0600, so it is never readable by group or other.
    try:
        _run_persist_step(
            privilege,
            ["install", "-m", "600", str(credential.private_path), str(final_path)],
        )
    except PersistError:
        cleanup = privilege.run(["rm", "-f", str(final_path)])
        if not cleanup.ok:
            logger.error("Could not remove partial secret %s: %s", final_path, cleanup.stderr.strip())
        raise
    operator.success("Permanent deploy key has been securely stored for the new system.")
    return final_path


def _run_persist_step(privilege: Privilege, argv: list[str]) -> None:
    try:
        result = privilege.run(argv)
    except OSError as exc:
        raise PersistError(f"{argv[0]} unavailable: {exc}") from exc
    if not result.ok:
        raise PersistError(
            f"{shlex.join(argv)} failed: {result.stderr.strip() or f'exit code {result.exit_code}'}"
        )


def resolve_build_target(
    operator: Operator,
    config_dir: Path,
    *,
    config_file: str = "configuration.nix",
    key: str = "networking.hostName",
) -> str:
    operator.info("Discovering hostname for the build from your configuration...")
    target = resolve_target(config_dir, config_file=config_file, key=key)
    operator.info(f"Found hostname: {target}")
    return target


def pivot(
    operator: Operator,
    builder: SystemBuilder,
    config_dir: Path,
    target: str,
    credential: DeployCredential,
) -> None:
    """Build the fetched configuration and retire the transient key on success.

    On failure nothing is deleted, so a rerun reuses the same key.
    """
    operator.info(
        "Pivoting to your real configuration. This will now build your final system. "
        "This may take a while..."
    )
    operator.info(f"The command being run is: {shlex.join(builder.command(config_dir, target))}")
    try:
        result = builder.build(config_dir, target)
    except OSError as exc:
        raise BuildError(f"The final build could not be started: {exc}") from exc
    if not result.ok:
        raise BuildError(
            f"The final build failed (exit code {result.exit_code}). "
            "The system has not been changed. "
            "Please check the errors above. Your real configuration may have a problem."
        )
    operator.success("Bootstrap complete! Your system is now managed by your private repository.")
    operator.info(
        "The automation service (e.g., deploy-rs) defined in your repository will now take over."
    )
    operator.info("This temporary bootstrap script and its key have served their purpose.")
    removed = remove_transient_credential(credential)
    for path in (credential.private_path, credential.public_path):
        if path not in removed and path.exists():
            operator.warn(f"Could not delete the temporary key file {path}; remove it manually.")


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------


def run_bootstrap(
    operator: Operator,
    settings: Settings,
    layout: BootstrapLayout,
    privilege: Privilege,
    *,
    initial_reference: str | None = None,
    generator: KeyGenerator | None = None,
    builder: SystemBuilder | None = None,
    transport_factory: Callable[[Path], GitTransport] | None = None,
) -> BootstrapReport:
    """Run every stage in order and return what was done.

    Fatal errors propagate to the caller after the failing stage; the
    stages after it never run.
    """
    report = BootstrapReport()
    generator = generator or SshKeygen()
    builder = builder or NixosRebuild(privilege, settings.build_command)
    if transport_factory is None:
        def transport_factory(identity: Path) -> GitTransport:
            return GitTransport(identity, probe_timeout_seconds=settings.probe_timeout_seconds)

    operator.info("Welcome to the interactive NixOS GitOps Bootstrapper!")
    operator.info(
        "This script will guide you through setting up this server to be managed "
        "by your private configuration repository."
    )

    reference = resolve_input(
        operator,
        initial=initial_reference,
        host=settings.git_host,
        ssh_user=settings.git_user,
    )
    report.reference = reference
    bind_context(repository=reference.slug)
    report.record("input", reference.transport_url)

    credential = provision(
        operator,
        layout.key_path,
        generator,
        algorithm=settings.key_algorithm,
        label=settings.key_label,
    )
    report.credential = credential
    report.record("credential", "reused" if credential.reused else "generated")

    registration_gate(operator, reference, credential, scheme=settings.web_scheme)
    report.record("registration", deploy_keys_url(reference, scheme=settings.web_scheme))

    transport = transport_factory(credential.private_path)
    report.probe_attempts = verify_connectivity(operator, transport, reference)
    report.record("connectivity", f"{report.probe_attempts} attempt(s)")

    config_dir = fetch_configuration(operator, transport, reference, layout.clone_dir, privilege)
    report.record("fetch", str(config_dir))

    persisted = persist_secret(operator, credential, layout, privilege)
    report.record("persist", str(persisted))

    target = resolve_build_target(
        operator,
        config_dir,
        config_file=settings.config_file,
        key=settings.hostname_key,
    )
    report.target = target
    report.record("target", target)

    pivot(operator, builder, config_dir, target, credential)
    report.record("pivot", target)
    return report
