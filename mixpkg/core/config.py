import logging
from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import PositiveInt, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from mixpkg.core.errors import UsageError

log = logging.getLogger(__name__)


class Config(BaseSettings):
    """Singleton that provides default configuration for the mixpkg process."""

    model_config = SettingsConfigDict(case_sensitive=False, env_prefix="mixpkg_", extra="forbid")

    requests_timeout: int = 300
    concurrency_limit: PositiveInt = 1
    subprocess_timeout: int = 3600

    verify_signatures: bool = True
    signature_extensions: list[str] = [".sig"]
    signature_command: list[str] = ["gpg", "--batch", "--verify"]

    privilege_wrapper: list[str] = ["fakeroot", "--"]
    stage_shell: list[str] = ["/bin/sh", "-e", "-c"]

    archive_compression: Literal["xz", "gz", "bz2"] = "xz"

    @field_validator("signature_command", "stage_shell")
    @classmethod
    def _command_not_empty(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("command must not be empty")
        return value

    @field_validator("signature_extensions")
    @classmethod
    def _dotted_extensions(cls, value: list[str]) -> list[str]:
        return [ext if ext.startswith(".") else f".{ext}" for ext in value]


config: Optional[Config] = None


def get_config() -> Config:
    """Get the configuration singleton."""
    global config

    if not config:
        config = Config()

    return config


def set_config(path: Path) -> None:
    """Set global config variable using input from file."""
    global config

    try:
        data = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as e:
        raise UsageError(f"Config file {path} is not valid YAML: {e}") from e

    if not isinstance(data, dict):
        raise UsageError(f"Config file {path} must contain a mapping of options")

    try:
        config = Config(**data)
    except ValidationError as e:
        loc = ".".join(str(part) for part in e.errors()[0]["loc"])
        msg = e.errors()[0]["msg"]
        raise UsageError(
            f"Config file {path} is not valid: '{loc}: {msg}'",
            solution="Check the option names and types in the config file.",
        ) from e

    log.debug("Loaded configuration from %s", path)
