"""Configuration management for apogee.

Two layers:
  - ApogeeSettings: tool settings from APOGEE_* environment variables
    (pydantic-settings).
  - The declarative module tree (apogee.models.Config), loaded from a
    YAML or TOML file.

Config file locations, first existing wins:
  - $APOGEE_CONFIG (must exist when set)
  - $XDG_CONFIG_HOME/apogee/config.{yaml,yml,toml}
  - platform config dir (e.g. ~/Library/Application Support/apogee on macOS)
"""

import logging
import tomllib
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from apogee.core.context import ContextEnv
from apogee.core.errors import ConfigurationError
from apogee.core.platform import Shell
from apogee.models import Config

logger = logging.getLogger(__name__)


class ApogeeSettings(BaseSettings):
    """Tool settings.

    Loaded from environment variables with the APOGEE_ prefix; values passed
    as keyword arguments (from CLI options) take precedence.
    """

    model_config = SettingsConfigDict(
        env_prefix="APOGEE_",
        case_sensitive=False,
        env_ignore_empty=True,
        extra="ignore",
    )

    config: Optional[Path] = Field(
        default=None,
        description="Explicit config file path",
    )

    shell: Optional[str] = Field(
        default=None,
        description="Target shell override (zsh, bash, fish, pwsh)",
    )

    probe_timeout: float = Field(
        default=5.0,
        gt=0,
        description="Timeout in seconds for detection subprocesses",
    )

    debug: bool = Field(
        default=False,
        description="Enable debug logging",
    )

    log_file: Optional[Path] = Field(
        default=None,
        description="Also write logs to this file",
    )


def load_config(path: Path) -> Config:
    """Load and validate a config file.

    Args:
        path: YAML (.yaml/.yml) or TOML (.toml) file

    Returns:
        Validated Config

    Raises:
        ConfigurationError: If the file cannot be read, parsed or validated
    """
    data = read_config_data(path)
    try:
        config = Config.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"invalid config {path}:\n{e}") from e

    logger.debug(
        f"Loaded {path}: {len(config.modules.cloud.items)} cloud, "
        f"{len(config.modules.apps.items)} apps, "
        f"{len(config.modules.hooks.items)} hooks, "
        f"{len(config.modules.templates.items)} templates"
    )
    return config


def read_config_data(path: Path) -> dict[str, Any]:
    """Parse a config file into plain data without validating it."""
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"failed to read config {path}: {e}") from e

    suffix = path.suffix.lower()
    try:
        if suffix == ".toml":
            data = tomllib.loads(raw)
        elif suffix in (".yaml", ".yml"):
            data = yaml.safe_load(raw) or {}
        else:
            raise ConfigurationError(
                f"unsupported config format '{suffix}' for {path} (use .yaml or .toml)"
            )
    except (tomllib.TOMLDecodeError, yaml.YAMLError) as e:
        raise ConfigurationError(f"failed to parse config {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"config {path} must contain a mapping at the top level")
    return data


def load_for_context(ctx: ContextEnv, settings: ApogeeSettings) -> Config:
    """Locate the config for a context (recording it there) and load it."""
    path = ctx.locate_config(settings.config)
    return load_config(path)


def select_shell(
    cli_shell: Optional[str],
    settings: ApogeeSettings,
    ctx: ContextEnv,
    config: Optional[Config] = None,
) -> Shell:
    """Pick the target shell.

    Precedence: --shell, APOGEE_SHELL, detected shell, config default_shell.

    Raises:
        ConfigurationError: If an explicitly requested shell is unknown
    """
    for source, raw in (("--shell", cli_shell), ("APOGEE_SHELL", settings.shell)):
        if raw and raw.strip():
            shell = Shell.parse(raw)
            if shell is None:
                raise ConfigurationError(
                    f"unsupported shell '{raw}' from {source} (use zsh, bash, fish or pwsh)"
                )
            return shell

    if ctx.shell_type is not None:
        return ctx.shell_type
    if config is not None:
        return config.apogee.default_shell
    return Shell.ZSH
