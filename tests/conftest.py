"""Shared fixtures: an isolated host context under tmp_path."""

from pathlib import Path

import pytest

from apogee.core.context import ContextEnv
from apogee.core.platform import Platform, Shell


@pytest.fixture
def home(tmp_path) -> Path:
    path = tmp_path / "home"
    path.mkdir()
    return path


@pytest.fixture
def make_ctx(home):
    """Build a ContextEnv without touching the real environment."""

    def _make(
        platform: Platform = Platform.LINUX,
        shell: Shell = Shell.ZSH,
        vars: dict = None,
        host: str = "testhost",
    ) -> ContextEnv:
        env = {
            "HOME": str(home),
            "USERPROFILE": str(home),
            "XDG_CONFIG_HOME": str(home / ".config"),
            "PATH": "",
            "APOGEE_SHELL": shell.value,
        }
        env.update(vars or {})
        return ContextEnv(
            vars=env,
            home=home,
            xdg_config_home=home / ".config",
            platform=platform,
            shell_type=shell,
            host=host,
        )

    return _make


@pytest.fixture
def ctx(make_ctx) -> ContextEnv:
    return make_ctx()


@pytest.fixture
def make_exe():
    """Create an executable shell script."""

    def _make(directory: Path, name: str, body: str = "echo ok") -> Path:
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / name
        path.write_text(f"#!/bin/sh\n{body}\n")
        path.chmod(0o755)
        return path

    return _make
