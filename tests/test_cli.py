"""Test CLI commands."""

from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from apogee.cli import app


runner = CliRunner()

CONFIG = """
modules:
  hooks:
    items:
      - name: local
        script: "{config_dir}/hooks/local.{shell_family_ext}"
global:
  aliases:
    shell:
      zsh:
        g: git
"""


@pytest.fixture
def env(tmp_path):
    """Environment for an isolated home with a config file."""
    home = tmp_path / "home"
    home.mkdir()
    config_dir = home / ".config" / "apogee"
    config_dir.mkdir(parents=True)
    (config_dir / "config.yaml").write_text(CONFIG)
    return {
        "HOME": str(home),
        "XDG_CONFIG_HOME": str(home / ".config"),
        "HOSTNAME": "testhost",
        "SHELL": "/bin/zsh",
        "APOGEE_CONFIG": None,
        "APOGEE_SHELL": None,
    }


def expected_zsh(env) -> str:
    script = f"{env['XDG_CONFIG_HOME']}/apogee/hooks/local.sh"
    return (
        "# apogee (global)\n\n"
        "alias g='git'\n"
        "\n"
        "\n"
        "# apogee (hooks)\n\n"
        "# --- hook: local ---\n"
        f'if [ -r "{script}" ]; then source "{script}"; fi\n'
        "\n"
    )


def test_version():
    """Test version flag."""
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert "0.4.0" in result.stdout


def test_emit(env):
    """Test emit command writes shell code to stdout."""
    result = runner.invoke(app, ["emit", "--shell", "zsh"], env=env)
    assert result.exit_code == 0
    assert result.stdout == expected_zsh(env)


def test_bare_invocation_emits(env):
    """Test that apogee with no subcommand behaves like emit."""
    result = runner.invoke(app, ["--shell", "zsh"], env=env)
    assert result.exit_code == 0
    assert result.stdout == expected_zsh(env)


def test_emit_shell_from_env(env):
    """Test APOGEE_SHELL picks the dialect."""
    env["APOGEE_SHELL"] = "fish"
    result = runner.invoke(app, ["emit"], env=env)
    assert result.exit_code == 0
    assert "# --- hook: local ---" in result.stdout
    assert "local.fish" in result.stdout
    assert "alias g=" not in result.stdout


def test_emit_explicit_config(env, tmp_path):
    """Test --config overrides the default location."""
    other = tmp_path / "other.toml"
    other.write_text('[global.aliases.shell.bash]\nll = "ls -l"\n')
    result = runner.invoke(app, ["emit", "--shell", "bash", "--config", str(other)], env=env)
    assert result.exit_code == 0
    assert result.stdout == "# apogee (global)\n\nalias ll='ls -l'\n\n"


def test_emit_missing_config(env, tmp_path):
    """Test a missing config fails with exit code 1."""
    env["APOGEE_CONFIG"] = str(tmp_path / "missing.yaml")
    result = runner.invoke(app, ["emit", "--shell", "zsh"], env=env)
    assert result.exit_code == 1
    assert "config not found" in result.output


def test_emit_unknown_shell(env):
    """Test an unsupported shell name fails."""
    result = runner.invoke(app, ["emit", "--shell", "tcsh"], env=env)
    assert result.exit_code == 1


def test_emit_invalid_config(env, tmp_path):
    """Test a config that fails validation."""
    bad = tmp_path / "bad.yaml"
    bad.write_text("modules:\n  apps:\n    x:\n      priority: high\n")
    result = runner.invoke(app, ["emit", "--shell", "zsh", "--config", str(bad)], env=env)
    assert result.exit_code == 1


def test_init(env, tmp_path):
    """Test init writes config, starter dirs and the rc hook."""
    home = tmp_path / "home"
    config_dir = home / ".config" / "apogee"
    (config_dir / "config.yaml").unlink()

    result = runner.invoke(app, ["init", "--shell", "bash"], env=env)

    assert result.exit_code == 0
    assert (config_dir / "config.yaml").exists()
    assert (config_dir / "hooks").is_dir()
    assert "# >>> apogee >>>" in (home / ".bashrc").read_text()


def test_init_keeps_config(env, tmp_path):
    """Test init leaves an existing config alone without --force."""
    config_path = tmp_path / "home" / ".config" / "apogee" / "config.yaml"
    result = runner.invoke(app, ["init", "--shell", "zsh"], env=env)
    assert result.exit_code == 0
    assert config_path.read_text() == CONFIG


def test_init_warns_on_existing_config(env, tmp_path):
    """Test init warns that the existing config was not overwritten."""
    with patch("apogee.utils.display.print_warning") as warn:
        result = runner.invoke(app, ["init", "--shell", "zsh"], env=env)
    assert result.exit_code == 0
    warn.assert_called_once()
    assert "--force" in warn.call_args[0][0]


def test_report(env):
    """Test report prints the context and module tables."""
    result = runner.invoke(app, ["report", "--shell", "zsh"], env=env)
    assert result.exit_code == 0
    assert "Context" in result.stdout
    assert "Modules" in result.stdout
    assert "hooks.local" in result.stdout


def test_report_full(env):
    """Test report --mode full includes the parsed config."""
    result = runner.invoke(app, ["report", "--mode", "FULL", "--shell", "zsh"], env=env)
    assert result.exit_code == 0
    assert '"schema_version": 1' in result.stdout


def test_help():
    """Test help lists the commands."""
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    for name in ("emit", "init", "report"):
        assert name in result.stdout
