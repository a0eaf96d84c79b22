"""Application configuration contract."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from nixboot.errors import ConfigError

SUPPORTED_KEY_ALGORITHMS = ("ed25519", "ecdsa", "rsa")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = Field(alias="APP_ENV", default="dev")
    log_level: str = Field(alias="LOG_LEVEL", default="WARNING")
    log_json: bool | None = Field(alias="LOG_JSON", default=None)

    git_host: str = Field(alias="NIXBOOT_GIT_HOST", default="github.com")
    git_user: str = Field(alias="NIXBOOT_GIT_USER", default="git")
    web_scheme: str = Field(alias="NIXBOOT_WEB_SCHEME", default="https")

    key_algorithm: str = Field(alias="NIXBOOT_KEY_ALGORITHM", default="ed25519")
    key_label: str = Field(alias="NIXBOOT_KEY_LABEL", default="nixos-bootstrap-key")

    config_file: str = Field(alias="NIXBOOT_CONFIG_FILE", default="configuration.nix")
    hostname_key: str = Field(alias="NIXBOOT_HOSTNAME_KEY", default="networking.hostName")

    build_command: str = Field(alias="NIXBOOT_BUILD_COMMAND", default="nixos-rebuild")
    privilege_command: str = Field(alias="NIXBOOT_PRIVILEGE_COMMAND", default="sudo")
    probe_timeout_seconds: int = Field(alias="NIXBOOT_PROBE_TIMEOUT_SECONDS", default=60)

    @property
    def json_logs(self) -> bool:
        """LOG_JSON wins when set; otherwise JSON only in prod."""
        if self.log_json is not None:
            return self.log_json
        return self.app_env == "prod"


def validate_settings(settings: Settings) -> None:
    missing: list[str] = []
    required_non_empty = {
        "NIXBOOT_GIT_HOST": settings.git_host,
        "NIXBOOT_GIT_USER": settings.git_user,
        "NIXBOOT_WEB_SCHEME": settings.web_scheme,
        "NIXBOOT_KEY_LABEL": settings.key_label,
        "NIXBOOT_CONFIG_FILE": settings.config_file,
        "NIXBOOT_HOSTNAME_KEY": settings.hostname_key,
        "NIXBOOT_BUILD_COMMAND": settings.build_command,
    }
    for key, value in required_non_empty.items():
        if not value.strip():
            missing.append(key)
    if settings.key_algorithm not in SUPPORTED_KEY_ALGORITHMS:
        missing.append("NIXBOOT_KEY_ALGORITHM(one of " + ", ".join(SUPPORTED_KEY_ALGORITHMS) + ")")
    if "/" in settings.config_file or settings.config_file.startswith("."):
        missing.append("NIXBOOT_CONFIG_FILE(bare file name required)")
    if settings.probe_timeout_seconds <= 0:
        missing.append("NIXBOOT_PROBE_TIMEOUT_SECONDS(must be > 0)")

    if missing:
        keys = ", ".join(sorted(set(missing)))
        raise ConfigError(f"invalid configuration: {keys}")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
