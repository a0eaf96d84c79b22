"""Doctor command: preflight checks for the installer, grouped by what they cover."""

from __future__ import annotations

import json
from collections.abc import Callable

import click

from nixboot.cli.checks import (
    CheckResult,
    check_config_validates,
    check_http_service,
    check_key_dir,
    check_persist_mount,
    check_privilege,
    check_python_version,
    check_tool_exists,
)
from nixboot.layout import BootstrapLayout

_PASS = click.style("✓", fg="green")
_FAIL = click.style("✗", fg="red")


class _Report:
    def __init__(self, fix: bool) -> None:
        self.fix = fix
        self.results: list[CheckResult] = []

    def section(self, title: str) -> None:
        click.echo()
        click.secho(title, bold=True)

    def add(self, result: CheckResult) -> bool:
        self.results.append(result)
        click.echo(f"  {_PASS if result.passed else _FAIL} {result.name}: {result.message}")
        if result.passed:
            return True
        if result.fix_hint:
            click.echo(f"    {click.style('Fix:', fg='yellow')} {result.fix_hint}")
        if self.fix and result.fix_fn is not None:
            applied = result.fix_fn()
            click.echo(f"    {click.style('Auto-fix:', fg='yellow')} {'applied' if applied else 'failed'}")
        return False

    @property
    def failures(self) -> int:
        return sum(1 for r in self.results if not r.passed)


def _settings_targets() -> tuple[str, str, str]:
    """Build command, privilege command and git host web base from settings."""
    from nixboot.config import get_settings

    settings = get_settings()
    return (
        settings.build_command,
        settings.privilege_command,
        f"{settings.web_scheme}://{settings.git_host}",
    )


def run_doctor(
    *,
    json_output: bool = False,
    fix: bool = False,
    layout: BootstrapLayout | None = None,
) -> None:
    layout = layout or BootstrapLayout.default()
    report = _Report(fix)

    report.section("Configuration")
    if report.add(check_config_validates()):
        build_command, privilege_command, web_base = _settings_targets()
    else:
        build_command, privilege_command, web_base = "nixos-rebuild", "sudo", "https://github.com"

    sections: list[tuple[str, list[Callable[[], CheckResult]]]] = [
        (
            "System Tools",
            [check_python_version]
            + [
                (lambda tool=tool: check_tool_exists(tool))
                for tool in ("git", "ssh", "ssh-keygen", build_command)
            ]
            + [lambda: check_privilege(privilege_command)],
        ),
        (
            "Filesystem",
            [
                lambda: check_key_dir(layout.key_path.parent),
                lambda: check_persist_mount(layout.secrets_dir),
            ],
        ),
        ("Network", [lambda: check_http_service("Git host", web_base)]),
    ]
    for title, checks in sections:
        report.section(title)
        for check in checks:
            report.add(check())

    click.echo()
    if report.failures == 0:
        click.secho("All checks passed!", fg="green")
    else:
        click.secho(f"{report.failures} check(s) failed.", fg="red")

    if json_output:
        data = [
            {"name": r.name, "passed": r.passed, "message": r.message, "fix_hint": r.fix_hint}
            for r in report.results
        ]
        click.echo("\n" + json.dumps(data, indent=2))

    if report.failures:
        raise SystemExit(1)
