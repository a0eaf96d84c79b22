"""Host target discovery inside the fetched configuration."""

from __future__ import annotations

import logging
import re
from pathlib import Path

from nixboot.errors import TargetResolutionError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "configuration.nix"
DEFAULT_HOSTNAME_KEY = "networking.hostName"

_QUOTED_RE = re.compile(r'"([^"]*)"')


def extract_quoted_value(text: str, key: str) -> str | None:
    """Return the first double-quoted value on the first line mentioning *key*.

    This is a textual lookup, not a Nix parse.
    """
    for line in text.splitlines():
        if key not in line:
            continue
        match = _QUOTED_RE.search(line)
        if match is None:
            return None
        return match.group(1).strip() or None
    return None


def resolve_target(
    config_dir: Path,
    *,
    config_file: str = DEFAULT_CONFIG_FILE,
    key: str = DEFAULT_HOSTNAME_KEY,
) -> str:
    path = config_dir / config_file
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except FileNotFoundError as exc:
        raise TargetResolutionError(
            f"Could not automatically determine hostname: {path} does not exist."
        ) from exc
    value = extract_quoted_value(text, key)
    if not value:
        raise TargetResolutionError(
            f"Could not automatically determine hostname from your {config_file}: "
            f"no quoted {key} assignment found."
        )
    logger.info("Resolved build target %s from %s", value, path)
    return value
