"""Click CLI group: run, deploy-key-url, and doctor commands."""

from __future__ import annotations

import logging

import click

from nixboot.cli.console import Console
from nixboot.config import get_settings, validate_settings
from nixboot.errors import BootstrapError, InvalidReferenceError
from nixboot.layout import BootstrapLayout
from nixboot.logging import clear_context, configure_logging
from nixboot.pipeline import run_bootstrap
from nixboot.process import Privilege
from nixboot.repository import deploy_keys_url, parse_repository_reference

logger = logging.getLogger(__name__)


def _default_layout() -> BootstrapLayout:
    return BootstrapLayout.default()


@click.group()
@click.option("--log-level", default=None, help="Override LOG_LEVEL for this invocation.")
def cli(log_level: str | None) -> None:
    """Interactive NixOS GitOps bootstrapper."""
    settings = get_settings()
    configure_logging(log_level or settings.log_level, json_output=settings.json_logs)


@cli.command()
@click.option(
    "--repo",
    "repo",
    type=str,
    default=None,
    help="Repository as owner/name or git@host:owner/name.git (prompted if omitted).",
)
def run(repo: str | None) -> None:
    """Provision the deploy key, fetch the configuration, and pivot to it."""
    console = Console()
    settings = get_settings()
    try:
        validate_settings(settings)
        privilege = Privilege.detect(settings.privilege_command)
        report = run_bootstrap(
            console,
            settings,
            _default_layout(),
            privilege,
            initial_reference=repo,
        )
    except BootstrapError as exc:
        logger.error("Bootstrap failed at stage %s: %s", exc.stage, exc)
        console.fail(f"{exc.stage}: {exc}")
        raise SystemExit(1) from exc
    finally:
        clear_context()
    logger.info(
        "Bootstrap finished for %s on target %s after %d probe attempt(s)",
        report.reference.slug if report.reference else "?",
        report.target,
        report.probe_attempts,
    )


@cli.command("deploy-key-url")
@click.argument("repository")
def deploy_key_url(repository: str) -> None:
    """Print the deploy key settings link for REPOSITORY."""
    settings = get_settings()
    try:
        reference = parse_repository_reference(
            repository, host=settings.git_host, ssh_user=settings.git_user
        )
    except InvalidReferenceError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(deploy_keys_url(reference, scheme=settings.web_scheme))


@cli.command()
@click.option("--json", "json_output", is_flag=True, help="Append JSON output to the report.")
@click.option("--fix", is_flag=True, help="Try to auto-fix supported failed checks.")
def doctor(json_output: bool, fix: bool) -> None:
    """Run preflight checks for the installer environment."""
    from nixboot.cli.doctor import run_doctor

    run_doctor(json_output=json_output, fix=fix, layout=_default_layout())
