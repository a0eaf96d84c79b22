"""Preflight check primitives for the doctor command."""

from __future__ import annotations

import os
import shutil
import sys
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

import httpx

MIN_PYTHON = (3, 11)


@dataclass(frozen=True, slots=True)
class CheckResult:
    name: str
    passed: bool
    message: str
    fix_hint: str = ""
    fix_fn: Callable[[], bool] | None = None


def _create_private_dir(path: Path) -> bool:
    path.mkdir(mode=0o700, parents=True, exist_ok=True)
    path.chmod(0o700)
    return path.is_dir()


def check_tool_exists(name: str) -> CheckResult:
    found = shutil.which(name) is not None
    return CheckResult(
        name=f"{name} on PATH",
        passed=found,
        message=f"{name} found" if found else f"{name} not found",
        fix_hint=f"Install {name} and ensure it is on your PATH (e.g. nix-shell -p {name}).",
    )


def check_python_version() -> CheckResult:
    v = sys.version_info
    ok = (v.major, v.minor) >= MIN_PYTHON
    version_str = f"{v.major}.{v.minor}.{v.micro}"
    return CheckResult(
        name="Python version is 3.11+",
        passed=ok,
        message=f"Python {version_str}",
        fix_hint="Requires Python 3.11 or newer.",
    )


def check_config_validates() -> CheckResult:
    try:
        from nixboot.config import Settings, validate_settings

        validate_settings(Settings())
        return CheckResult(name="Settings load and validate", passed=True, message="ok")
    except Exception as exc:
        return CheckResult(
            name="Settings load and validate",
            passed=False,
            message=str(exc),
            fix_hint="Check NIXBOOT_* environment variables and .env for typos.",
        )


def check_privilege(command: str) -> CheckResult:
    if os.geteuid() == 0:
        return CheckResult(name="Elevated privilege available", passed=True, message="running as root")
    tool = command.split()[0] if command.strip() else ""
    if not tool:
        return CheckResult(
            name="Elevated privilege available",
            passed=False,
            message="not root and NIXBOOT_PRIVILEGE_COMMAND is empty",
            fix_hint="Run as root or set NIXBOOT_PRIVILEGE_COMMAND=sudo.",
        )
    found = shutil.which(tool) is not None
    return CheckResult(
        name="Elevated privilege available",
        passed=found,
        message=f"via {tool}" if found else f"{tool} not found",
        fix_hint=f"Install {tool} or run nixboot as root.",
    )


def check_key_dir(path: Path) -> CheckResult:
    exists = path.is_dir()
    return CheckResult(
        name="Deploy key directory exists",
        passed=exists,
        message=str(path) if exists else f"{path} missing",
        fix_hint=f"Create it with: mkdir -m 700 -p {path}",
        fix_fn=None if exists else (lambda: _create_private_dir(path)),
    )


def check_persist_mount(secrets_dir: Path) -> CheckResult:
    # The secrets directory itself is created during the run; its mount point must exist.
    mount = secrets_dir.parent
    ok = mount.is_dir()
    return CheckResult(
        name="Persistent storage mounted",
        passed=ok,
        message=str(mount) if ok else f"{mount} missing",
        fix_hint=f"Mount the target's persistent volume at {mount} before bootstrapping.",
    )


_DNS_MARKERS = (
    "name resolution",
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo",
)

_NETWORK_HINTS = {
    "timeout": "Connection to {url} timed out. The installer may be behind a captive portal.",
    "dns_resolution": "DNS lookup failed for {url}. Check the DHCP lease or /etc/resolv.conf.",
    "network_unreachable": "No route to {url}. Bring up a link first (nmtui, wpa_cli or ip link).",
    "connect_error": "Could not connect to {url}. Check firewalls between the installer and the host.",
    "http_error": "Request to {url} failed.",
}


def check_http_service(name: str, url: str, path: str = "/") -> CheckResult:
    """Reachability of the git host's web side, where deploy keys are registered."""
    label = f"{name} reachable"
    try:
        resp = httpx.get(url.rstrip("/") + path, timeout=5, follow_redirects=True)
    except httpx.HTTPError as exc:
        kind = _classify_http_error(exc)
        return CheckResult(
            name=label,
            passed=False,
            message=f"[{kind}] {exc}",
            fix_hint=_NETWORK_HINTS[kind].format(url=url),
        )
    return CheckResult(
        name=label,
        passed=resp.status_code < 500,
        message=f"HTTP {resp.status_code}",
        fix_hint=f"{url} answered with a server error; retry later.",
    )


def _classify_http_error(exc: httpx.HTTPError) -> str:
    if isinstance(exc, httpx.TimeoutException):
        return "timeout"
    text = str(exc).lower()
    if isinstance(exc, httpx.ConnectError) and any(m in text for m in _DNS_MARKERS):
        return "dns_resolution"
    if isinstance(exc, httpx.TransportError):
        if "unreachable" in text or "no route to host" in text:
            return "network_unreachable"
        return "connect_error"
    return "http_error"
