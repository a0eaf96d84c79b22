"""Interactive NixOS GitOps bootstrapper."""

__version__ = "0.1.0"
