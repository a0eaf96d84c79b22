"""nixboot exception hierarchy.

All bootstrapper exceptions inherit from BootstrapError. Each carries the
name of the pipeline stage that raised it so the CLI can report a labeled
failure without inspecting the concrete type.
"""


class BootstrapError(Exception):
    """Base exception for all nixboot errors."""

    stage = "bootstrap"

    def __init__(self, message: str = "", *, retryable: bool = False, stage: str = "") -> None:
        super().__init__(message)
        self.retryable = retryable
        if stage:
            self.stage = stage


class ConfigError(BootstrapError):
    """Invalid or missing configuration."""

    stage = "config"


class InvalidReferenceError(BootstrapError):
    """Operator input is not a recognised repository reference."""

    stage = "input"


class KeyGenerationError(BootstrapError):
    """The deploy keypair could not be generated."""

    stage = "credential"


class ConnectivityError(BootstrapError):
    """The remote repository did not answer the reachability probe."""

    stage = "connectivity"

    def __init__(self, message: str = "", *, retryable: bool = True, stage: str = "") -> None:
        super().__init__(message, retryable=retryable, stage=stage)


class FetchError(BootstrapError):
    """Cloning the configuration repository failed."""

    stage = "fetch"


class PersistError(BootstrapError):
    """The deploy key could not be written to persistent storage."""

    stage = "persist"


class TargetResolutionError(BootstrapError):
    """No build target could be read from the fetched configuration."""

    stage = "target"


class BuildError(BootstrapError):
    """The final system build failed."""

    stage = "pivot"
