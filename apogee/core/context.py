"""Host context: environment snapshot, home/XDG paths, platform, shell, host.

The context is built once per invocation and shared read-only afterwards,
except for the config location which is recorded when the config file is
located.
"""

import logging
import os
import socket
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from platformdirs import user_config_dir

from apogee.core.errors import ConfigurationError
from apogee.core.platform import Platform, Shell

logger = logging.getLogger(__name__)

CONFIG_FILENAMES = ("config.yaml", "config.yml", "config.toml")


@dataclass
class ContextEnv:
    """Snapshot of the host the shell code is generated for.

    Attributes:
        vars: Environment variables, normalized (HOME, USERPROFILE, XDG_CONFIG_HOME)
        home: User home directory
        xdg_config_home: XDG config root, defaults to ~/.config
        platform: Detected platform
        shell_type: Best-effort guess of the calling shell
        host: Short hostname
        config_path: Located config file, once known
        config_dir: Directory holding the config file, once known
    """

    vars: dict[str, str]
    home: Path
    xdg_config_home: Path
    platform: Platform
    shell_type: Optional[Shell] = None
    host: str = "unknown"
    config_path: Optional[Path] = None
    config_dir: Optional[Path] = None

    @classmethod
    def from_environ(cls, environ: Optional[Mapping[str, str]] = None) -> "ContextEnv":
        """Build a context from the process environment.

        Args:
            environ: Environment mapping. Defaults to os.environ.

        Returns:
            Populated ContextEnv

        Raises:
            ConfigurationError: If the home directory cannot be determined
        """
        env = dict(os.environ if environ is None else environ)

        home = detect_home(env)
        if home is None:
            raise ConfigurationError("could not determine home directory")
        home_str = str(home)

        env.setdefault("HOME", home_str)
        env.setdefault("USERPROFILE", home_str)

        xdg_raw = env.get("XDG_CONFIG_HOME", "").strip()
        xdg_config_home = Path(xdg_raw) if xdg_raw else home / ".config"
        env["XDG_CONFIG_HOME"] = str(xdg_config_home)

        platform = detect_platform(env)
        shell_type = detect_shell(env)
        host = detect_hostname(env) or "unknown"

        env["APOGEE_PLATFORM"] = platform.value
        if shell_type is not None:
            env["APOGEE_SHELL"] = shell_type.value
        env["APOGEE_HOST"] = host

        return cls(
            vars=env,
            home=home,
            xdg_config_home=xdg_config_home,
            platform=platform,
            shell_type=shell_type,
            host=host,
        )

    def default_config_dir(self) -> Path:
        return self.xdg_config_home / "apogee"

    def config_candidates(self) -> list[Path]:
        """Config file locations in search order, without the explicit override."""
        dirs = [self.default_config_dir()]
        native = Path(user_config_dir("apogee", appauthor=False))
        if native not in dirs:
            dirs.append(native)
        return [d / name for d in dirs for name in CONFIG_FILENAMES]

    def locate_config(self, explicit: Optional[Path] = None) -> Path:
        """Find the config file and record its location.

        Precedence: explicit path, APOGEE_CONFIG, XDG config dir, native
        platform config dir. An explicit or APOGEE_CONFIG path must exist.

        Args:
            explicit: Path given on the command line or via settings

        Returns:
            Path of the config file

        Raises:
            ConfigurationError: If no config file exists
        """
        override = explicit
        if override is None:
            raw = self.vars.get("APOGEE_CONFIG", "").strip()
            override = Path(raw) if raw else None

        if override is not None:
            if not override.exists():
                raise ConfigurationError(
                    f"config not found: {override} (set APOGEE_CONFIG to override)"
                )
            self.set_config_path(override)
            return override

        for candidate in self.config_candidates():
            if candidate.is_file():
                self.set_config_path(candidate)
                return candidate

        raise ConfigurationError(
            f"config not found under {self.default_config_dir()} "
            "(run `apogee init` or set APOGEE_CONFIG)"
        )

    def set_config_path(self, path: Path) -> None:
        self.config_path = path
        self.config_dir = path.parent
        self.vars["APOGEE_CONFIG"] = str(path)
        self.vars["APOGEE_CONFIG_DIR"] = str(path.parent)
        logger.debug(f"Using config {path}")

    def describe(self) -> dict[str, str]:
        """Key facts as display strings."""
        return {
            "host": self.host,
            "platform": self.platform.value,
            "shell": self.shell_type.value if self.shell_type else "unknown",
            "home": str(self.home),
            "xdg_config_home": str(self.xdg_config_home),
            "config_path": str(self.config_path) if self.config_path else "<unset>",
            "config_dir": str(self.config_dir) if self.config_dir else "<unset>",
        }


def detect_home(env: Mapping[str, str]) -> Optional[Path]:
    for key in ("HOME", "USERPROFILE"):
        value = env.get(key, "").strip()
        if value:
            return Path(value)
    try:
        return Path.home()
    except RuntimeError:
        return None


def detect_platform(env: Mapping[str, str]) -> Platform:
    if "WSL_DISTRO_NAME" in env or "WSL_INTEROP" in env:
        return Platform.WSL
    if sys.platform == "darwin":
        return Platform.MAC
    if sys.platform.startswith("win"):
        return Platform.WINDOWS
    if sys.platform.startswith("linux"):
        return Platform.LINUX
    return Platform.OTHER


def detect_shell(env: Mapping[str, str]) -> Optional[Shell]:
    """Guess the calling shell.

    PowerShell signals win over SHELL, which often still points at zsh on
    macOS and Linux when pwsh is launched from it.
    """
    if "PSModulePath" in env or "POWERSHELL_DISTRIBUTION_CHANNEL" in env:
        return Shell.PWSH

    sh = env.get("SHELL", "").lower()
    for candidate in (Shell.ZSH, Shell.BASH, Shell.FISH):
        if candidate.value in sh:
            return candidate
    return None


def detect_hostname(env: Mapping[str, str]) -> Optional[str]:
    for key in ("HOSTNAME", "COMPUTERNAME"):
        value = env.get(key, "").strip()
        if value:
            return short_hostname(value)
    try:
        name = socket.gethostname().strip()
    except OSError:
        return None
    return short_hostname(name) if name else None


def short_hostname(name: str) -> str:
    return name.split(".", 1)[0]
