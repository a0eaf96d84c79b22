from pathlib import Path

import pytest

from nixboot.errors import TargetResolutionError
from nixboot.target import extract_quoted_value, resolve_target

CONFIG = """\
{ config, pkgs, ... }:
{
  imports = [ ./hardware-configuration.nix ];
  networking.hostName = "nixbox";
  networking.networkmanager.enable = true;
}
"""


def test_extracts_hostname(tmp_path: Path) -> None:
    (tmp_path / "configuration.nix").write_text(CONFIG)
    assert resolve_target(tmp_path) == "nixbox"


def test_first_matching_line_wins() -> None:
    text = 'networking.hostName = "first";\nnetworking.hostName = "second";\n'
    assert extract_quoted_value(text, "networking.hostName") == "first"


def test_unquoted_value_is_not_accepted() -> None:
    assert extract_quoted_value("networking.hostName = name;\n", "networking.hostName") is None


def test_empty_quoted_value_is_not_accepted() -> None:
    assert extract_quoted_value('networking.hostName = "";\n', "networking.hostName") is None


def test_missing_key_is_fatal(tmp_path: Path) -> None:
    (tmp_path / "configuration.nix").write_text("{ ... }: { }\n")
    with pytest.raises(TargetResolutionError, match="networking.hostName"):
        resolve_target(tmp_path)


def test_missing_file_is_fatal(tmp_path: Path) -> None:
    with pytest.raises(TargetResolutionError, match="does not exist"):
        resolve_target(tmp_path)


def test_custom_file_and_key(tmp_path: Path) -> None:
    (tmp_path / "host.nix").write_text('my.target = "edge-01";\n')
    assert resolve_target(tmp_path, config_file="host.nix", key="my.target") == "edge-01"
